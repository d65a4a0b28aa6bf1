"""Gemini calls with per-model retries and a model fallback chain."""

from dataclasses import dataclass

import httpx
from google.genai import errors as genai_errors
from google.genai import types

DEFAULT_MODELS = ('gemini-1.5-flash', 'gemini-2.0-flash', 'gemini-1.5-flash-8b')
MAX_ATTEMPTS_PER_MODEL = 3
ATTEMPT_TIMEOUT_SECONDS = 20
OVERLOAD_BACKOFF_SECONDS = 2
SKIP_MODEL_STATUS_CODES = {404, 429}
RETRY_STATUS_CODES = {503}
EMPTY_GENERATION_TEXT = 'No content generated'


class InvalidContentsError(ValueError):
    pass


class GenerationUnavailable(RuntimeError):
    """Every model and attempt in the chain failed."""

    def __init__(self, message, last_error=None):
        super().__init__(message)
        self.last_error = last_error


@dataclass
class GenerationResult:
    text: str
    model: str
    attempt: int


def extract_last_message(contents):
    if not isinstance(contents, list) or not contents:
        raise InvalidContentsError('Invalid request format')
    last = contents[-1] if isinstance(contents[-1], dict) else {}
    parts = last.get('parts') or []
    first_part = parts[0] if parts and isinstance(parts[0], dict) else {}
    text = first_part.get('text')
    if not isinstance(text, str) or not text:
        raise InvalidContentsError('Invalid request format')
    return text


def build_gemini_contents(contents):
    """Convert client history into SDK contents, dropping client roles."""
    converted = []
    for item in contents:
        parts = []
        for part in (item or {}).get('parts') or []:
            text = (part or {}).get('text')
            if isinstance(text, str) and text:
                parts.append(types.Part.from_text(text=text))
        if parts:
            converted.append(types.Content(parts=parts))
    return converted


def build_generation_config(timeout_seconds=ATTEMPT_TIMEOUT_SECONDS):
    return types.GenerateContentConfig(
        temperature=0.7,
        top_k=40,
        top_p=0.95,
        max_output_tokens=2048,
        http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
    )


def error_status_code(exc):
    if isinstance(exc, genai_errors.APIError):
        return getattr(exc, 'code', None)
    code = getattr(exc, 'code', None)
    return code if isinstance(code, int) else None


def is_timeout_error(exc):
    return isinstance(exc, (httpx.TimeoutException, TimeoutError))


def generate_with_fallback(
    client,
    contents,
    *,
    models=DEFAULT_MODELS,
    max_attempts=MAX_ATTEMPTS_PER_MODEL,
    timeout_seconds=ATTEMPT_TIMEOUT_SECONDS,
    sleep_fn,
    logger,
):
    """Try each model in order; return the first successful generation.

    404/429 skip straight to the next model, 503 backs off and retries the
    same model, timeouts and other errors consume an attempt.
    """
    sdk_contents = build_gemini_contents(contents)
    config = build_generation_config(timeout_seconds)
    last_error = None
    for model in models:
        logger.info(f"Trying model: {model}")
        for attempt in range(1, max_attempts + 1):
            try:
                response = client.models.generate_content(
                    model=model,
                    contents=sdk_contents,
                    config=config,
                )
                text = getattr(response, 'text', None) or EMPTY_GENERATION_TEXT
                logger.info(f"✅ Generated {len(text)} chars with {model} on attempt {attempt}")
                return GenerationResult(text=text, model=model, attempt=attempt)
            except Exception as exc:
                last_error = exc
                status = error_status_code(exc)
                logger.info(f"❌ {model} attempt {attempt} failed (status={status}): {exc}")
                if status in SKIP_MODEL_STATUS_CODES:
                    break
                if status in RETRY_STATUS_CODES and attempt < max_attempts:
                    sleep_fn(OVERLOAD_BACKOFF_SECONDS * attempt)
                    continue
                if is_timeout_error(exc):
                    continue
    raise GenerationUnavailable('All AI models temporarily unavailable', last_error=last_error)


def generate_text(client, model, prompt_text, *, timeout_seconds=ATTEMPT_TIMEOUT_SECONDS * 3):
    response = client.models.generate_content(
        model=model,
        contents=[types.Content(role='user', parts=[types.Part.from_text(text=prompt_text)])],
        config=types.GenerateContentConfig(http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000))),
    )
    return (getattr(response, 'text', None) or '').strip()
