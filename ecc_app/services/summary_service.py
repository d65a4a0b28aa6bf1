"""Conversation summarization helpers."""

from ecc_app.services import prompt_registry
from ecc_app.services.generation_service import generate_text

DEFAULT_TARGET_REDUCTION = 0.55
DETAIL_LEVELS = {'concise', 'detailed'}


def parse_summary_request(payload):
    text = payload.get('text')
    if not isinstance(text, str) or not text.strip():
        raise ValueError('Text is required')
    try:
        target_reduction = float(payload.get('targetReduction', DEFAULT_TARGET_REDUCTION))
    except (TypeError, ValueError):
        target_reduction = DEFAULT_TARGET_REDUCTION
    target_reduction = min(max(target_reduction, 0.0), 0.95)
    max_length = payload.get('maxLength')
    if not isinstance(max_length, int) or isinstance(max_length, bool) or max_length <= 0:
        max_length = None
    detail_level = str(payload.get('detailLevel') or 'concise').strip().lower()
    if detail_level not in DETAIL_LEVELS:
        detail_level = 'concise'
    instructions = payload.get('instructions')
    instructions = str(instructions).strip()[:1000] if instructions else None
    return {
        'text': text,
        'target_reduction': target_reduction,
        'max_length': max_length,
        'detail_level': detail_level,
        'instructions': instructions,
    }


def summarize(client, model, request_args):
    text = request_args['text']
    prompt = prompt_registry.build_summary_prompt(
        text,
        target_reduction=request_args['target_reduction'],
        max_length=request_args['max_length'],
        detail_level=request_args['detail_level'],
        instructions=request_args['instructions'],
    )
    summary = generate_text(client, model, prompt)
    return {
        'summary': summary,
        'originalLength': len(text),
        'summaryLength': len(summary),
        'actualReduction': (len(text) - len(summary)) / len(text),
        'targetReduction': request_args['target_reduction'],
        'success': True,
    }
