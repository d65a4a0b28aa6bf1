"""Business logic handlers for content and summary generation APIs."""

import logging

from ecc_app.services import job_state_service, prompt_registry, summary_service
from ecc_app.services.generation_service import (
    GenerationUnavailable,
    InvalidContentsError,
    extract_last_message,
)


def _rate_limit_generation(app_ctx, request, decoded_token):
    actor = (decoded_token or {}).get('uid') or app_ctx.client_ip(request)
    allowed, retry_after = app_ctx.check_rate_limit(app_ctx.GENERATION_RATE_LIMIT, actor)
    if allowed:
        return None
    return app_ctx.build_rate_limited_response(
        'Too many generation requests. Please wait before trying again.',
        retry_after,
    )


def _parse_contents(request):
    data = request.get_json(silent=True) or {}
    contents = data.get('contents')
    message = extract_last_message(contents)
    return contents, message


def build_generation_payload(app_ctx, contents, message):
    """Run the model chain; fall back to canned content when every model fails."""
    try:
        result = app_ctx.generate_content_with_fallback(contents)
    except GenerationUnavailable as exc:
        app_ctx.log_event(logging.WARNING, 'generation_fallback', reason=str(exc), last_error=str(exc.last_error or ''))
        return {
            'generatedContent': prompt_registry.build_fallback_content(message),
            'isFallback': True,
            'reason': str(exc),
        }
    app_ctx.log_event(logging.INFO, 'generation_success', model=result.model, attempt=result.attempt, chars=len(result.text))
    return {
        'generatedContent': result.text,
        'model': result.model,
        'attempt': result.attempt,
    }


def generate_content(app_ctx, request):
    try:
        contents, message = _parse_contents(request)
    except InvalidContentsError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'API key not configured'}), 500

    decoded_token = app_ctx.verify_firebase_token(request)
    limited = _rate_limit_generation(app_ctx, request, decoded_token)
    if limited is not None:
        return limited

    app_ctx.logger.info(f"Starting content generation for message length: {len(message)}")
    try:
        payload = build_generation_payload(app_ctx, contents, message)
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Content generation error: {exc}")
        return app_ctx.jsonify({'error': 'Service temporarily unavailable', 'retryable': True}), 500
    return app_ctx.jsonify(payload)


def run_generation_job(app_ctx, job_id, contents, message):
    def _set_status(status):
        def _mutate(job):
            job['status'] = status
        return _mutate

    snapshot = app_ctx.mutate_job(job_id, _set_status('processing'))
    if snapshot is None:
        return
    progress = app_ctx.get_job_progress(job_id)
    try:
        if progress is not None:
            progress.advance('processing')
        payload = build_generation_payload(app_ctx, contents, message)
        if progress is not None:
            progress.advance('handling')

        def _complete(job):
            job['status'] = 'complete'
            job['result'] = payload
            job['finished_at'] = app_ctx.time.time()

        app_ctx.mutate_job(job_id, _complete)
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Generation job {job_id} failed: {exc}")

        def _fail(job):
            job['status'] = 'error'
            job['error'] = 'Service temporarily unavailable'
            job['finished_at'] = app_ctx.time.time()

        app_ctx.mutate_job(job_id, _fail)
    finally:
        if progress is not None:
            progress.finish()


def start_generation_job(app_ctx, request):
    try:
        contents, message = _parse_contents(request)
    except InvalidContentsError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'API key not configured'}), 500

    decoded_token = app_ctx.verify_firebase_token(request)
    uid = (decoded_token or {}).get('uid', '')
    if uid and app_ctx.count_active_jobs_for_user(uid) >= app_ctx.MAX_ACTIVE_JOBS_PER_USER:
        return app_ctx.jsonify({'error': 'You already have generations in progress. Please wait for them to finish.'}), 429
    limited = _rate_limit_generation(app_ctx, request, decoded_token)
    if limited is not None:
        return limited

    job_id, _progress = app_ctx.create_job(uid)
    app_ctx.start_background_job(run_generation_job, app_ctx, job_id, contents, message)
    return app_ctx.jsonify({'job_id': job_id}), 202


def get_generation_job(app_ctx, request, job_id):
    snapshot = app_ctx.get_job_snapshot(job_id)
    if snapshot is None:
        return app_ctx.jsonify({'error': 'Job not found', 'job_lost': True}), 404
    owner = snapshot.get('user_id', '')
    if owner:
        decoded_token = app_ctx.verify_firebase_token(request)
        if not decoded_token or decoded_token.get('uid') != owner:
            return app_ctx.jsonify({'error': 'Job not found', 'job_lost': True}), 404
    snapshot.pop('user_id', None)
    return app_ctx.jsonify(snapshot)


def generate_summary(app_ctx, request):
    data = request.get_json(silent=True) or {}
    try:
        summary_args = summary_service.parse_summary_request(data)
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'API key not configured'}), 500

    decoded_token = app_ctx.verify_firebase_token(request)
    limited = _rate_limit_generation(app_ctx, request, decoded_token)
    if limited is not None:
        return limited

    try:
        payload = summary_service.summarize(app_ctx.client, app_ctx.SUMMARY_MODEL, summary_args)
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Summary generation error: {exc}")
        return app_ctx.jsonify({'error': 'Failed to generate summary', 'details': str(exc)}), 500
    return app_ctx.jsonify(payload)


def describe_job_store(app_ctx):
    return {
        'active_jobs': sum(
            1 for job in list(app_ctx.jobs.values())
            if job.get('status') in job_state_service.ACTIVE_STATES
        ),
        'total_jobs': len(app_ctx.jobs),
    }
