"""Thread-safe in-memory state for background generation jobs."""

import time
import uuid

from ecc_app.services.progress_service import GenerationProgress

ACTIVE_STATES = {'queued', 'processing'}
FINISHED_STATES = {'complete', 'error'}


def job_progress(clock=time.monotonic):
    """Job machines hold their final state until the job is evicted."""
    return GenerationProgress(clock=clock, auto_reset=False)


def create_job(user_id, *, jobs_store, lock, time_module, progress_factory=job_progress):
    job_id = uuid.uuid4().hex
    progress = progress_factory()
    progress.start()
    job = {
        'job_id': job_id,
        'user_id': user_id or '',
        'status': 'queued',
        'progress': progress,
        'result': None,
        'error': '',
        'started_at': time_module.time(),
        'finished_at': None,
    }
    with lock:
        jobs_store[job_id] = job
    return job_id, progress


def public_view(job):
    view = {key: value for key, value in job.items() if key != 'progress'}
    progress = job.get('progress')
    view['progress'] = progress.snapshot() if progress is not None else None
    return view


def get_job_snapshot(job_id, *, jobs_store, lock):
    with lock:
        job = jobs_store.get(job_id)
        if not isinstance(job, dict):
            return None
        return public_view(job)


def mutate_job(job_id, mutator_fn, *, jobs_store, lock):
    with lock:
        job = jobs_store.get(job_id)
        if not isinstance(job, dict):
            return None
        mutator_fn(job)
        return public_view(job)


def count_active_jobs_for_user(uid, *, jobs_store, lock):
    if not uid:
        return 0
    with lock:
        return sum(
            1 for job in jobs_store.values()
            if job.get('user_id') == uid and job.get('status') in ACTIVE_STATES
        )


def cleanup_finished_jobs(*, jobs_store, lock, ttl_seconds, now_ts):
    with lock:
        expired = [
            job_id for job_id, job in jobs_store.items()
            if job.get('status') in FINISHED_STATES
            and now_ts - (job.get('finished_at') or job.get('started_at') or now_ts) > ttl_seconds
        ]
        for job_id in expired:
            jobs_store.pop(job_id, None)
        return len(expired)
