import logging

import pytest

from ecc_app.services import prompt_registry
from ecc_app.services.generation_service import (
    EMPTY_GENERATION_TEXT,
    GenerationUnavailable,
    InvalidContentsError,
    build_gemini_contents,
    extract_last_message,
    generate_with_fallback,
)

CONTENTS = [
    {"role": "user", "parts": [{"text": "Earlier question"}]},
    {"role": "model", "parts": [{"text": "Earlier answer"}]},
    {"role": "user", "parts": [{"text": "Write a lesson on fractions"}]},
]


class _StatusError(Exception):
    def __init__(self, code):
        super().__init__(f"status {code}")
        self.code = code


class _Response:
    def __init__(self, text):
        self.text = text


class _ScriptedModels:
    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append(model)
        outcome = self.script.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return _Response(outcome)


class _FakeClient:
    def __init__(self, script):
        self.models = _ScriptedModels(script)


def _run(client, sleeps=None, models=("m1", "m2", "m3")):
    sleeps = sleeps if sleeps is not None else []
    return generate_with_fallback(
        client,
        CONTENTS,
        models=models,
        sleep_fn=sleeps.append,
        logger=logging.getLogger("test"),
    )


def test_first_model_success():
    client = _FakeClient(["Lesson text"])

    result = _run(client)

    assert (result.text, result.model, result.attempt) == ("Lesson text", "m1", 1)


def test_quota_and_not_found_skip_to_next_model():
    client = _FakeClient([_StatusError(429), _StatusError(404), "From third"])

    result = _run(client)

    assert client.models.calls == ["m1", "m2", "m3"]
    assert result.model == "m3"
    assert result.attempt == 1


def test_overload_backs_off_and_retries_same_model():
    sleeps = []
    client = _FakeClient([_StatusError(503), _StatusError(503), "Recovered"])

    result = _run(client, sleeps=sleeps)

    assert client.models.calls == ["m1", "m1", "m1"]
    assert sleeps == [2, 4]
    assert result.attempt == 3


def test_timeouts_consume_attempts_then_move_on():
    client = _FakeClient([TimeoutError(), TimeoutError(), TimeoutError(), "Second model"])

    result = _run(client)

    assert client.models.calls == ["m1", "m1", "m1", "m2"]
    assert result.model == "m2"


def test_all_models_failing_raises_unavailable():
    client = _FakeClient([_StatusError(429), _StatusError(429)])

    with pytest.raises(GenerationUnavailable) as excinfo:
        _run(client, models=("m1", "m2"))

    assert excinfo.value.last_error.code == 429


def test_empty_response_text_is_replaced():
    client = _FakeClient([None])

    assert _run(client).text == EMPTY_GENERATION_TEXT


def test_extract_last_message_validates_shape():
    assert extract_last_message(CONTENTS) == "Write a lesson on fractions"
    for bad in (None, [], [{"parts": []}], [{"parts": [{"text": ""}]}]):
        with pytest.raises(InvalidContentsError):
            extract_last_message(bad)


def test_build_gemini_contents_drops_roles():
    converted = build_gemini_contents(CONTENTS)

    assert len(converted) == 3
    assert all(item.role is None for item in converted)
    assert converted[-1].parts[0].text == "Write a lesson on fractions"


def test_fallback_story_and_outline():
    story = prompt_registry.build_fallback_content("Tell a Story about a king")
    outline = prompt_registry.build_fallback_content('Explain volcanoes at "Beginner" level')
    graded = prompt_registry.build_fallback_content("Explain volcanoes for grade 5 pupils")

    assert "Educational Story Framework" in story
    assert "Topic Overview:** Explain volcanoes" in outline
    assert "matters for Beginner" in outline
    assert "matters for 5" in graded


def test_summary_prompt_defaults():
    prompt = prompt_registry.build_summary_prompt("x" * 1000)

    assert "Reduce the content by 55%" in prompt
    assert "Maximum length: 450 characters" in prompt
    assert "Include specific examples" not in prompt
    detailed = prompt_registry.build_summary_prompt("abc", detail_level="detailed", max_length=10)
    assert "Include specific examples" in detailed
    assert "Maximum length: 10 characters" in detailed
