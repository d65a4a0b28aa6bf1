import os
import sys
import json
import time
import uuid
import logging
import threading

from flask import Flask, request, jsonify, g
from google import genai
from dotenv import load_dotenv
try:
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
except Exception:
    sentry_sdk = None
    FlaskIntegration = None
import firebase_admin
from firebase_admin import credentials, auth, firestore

from ecc_app.services import (
    auth_service,
    chats_api_service,
    generation_api_service,
    generation_service,
    job_state_service,
    mail_service,
    notices_api_service,
    otp_api_service,
    otp_service,
    prompt_registry,
    rate_limit_service,
)
from ecc_app.services.database_optimizer import DatabaseOptimizer, DEFAULT_APP_ID
from ecc_app.services.rate_limit_service import RateLimitRule

load_dotenv()
app = Flask(__name__)
app.secret_key = os.getenv('FLASK_SECRET_KEY', os.urandom(32).hex())
logger = logging.getLogger('ecc_app')


def log_event(level, event, **fields):
    payload = {'event': event}
    for key, value in fields.items():
        payload[str(key)] = value
    logger.log(level, json.dumps(payload, ensure_ascii=True, default=str))


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def env_flag(name, default='0'):
    return str(os.getenv(name, default)).strip().lower() in {'1', 'true', 'yes', 'on'}


def parse_model_chain():
    raw = (os.getenv('GEMINI_MODELS', '') or '').strip()
    models = tuple(part.strip() for part in raw.split(',') if part.strip())
    return models or generation_service.DEFAULT_MODELS


# --- Gemini Setup ---
GEMINI_API_KEY = (os.getenv('GEMINI_API_KEY', '') or '').strip()
GEMINI_MODELS = parse_model_chain()
SUMMARY_MODEL = (os.getenv('GEMINI_SUMMARY_MODEL', 'gemini-2.0-flash') or 'gemini-2.0-flash').strip()
GENERATION_ATTEMPT_TIMEOUT_SECONDS = safe_int_env('GENERATION_ATTEMPT_TIMEOUT_SECONDS', 20, minimum=5, maximum=120)
if GEMINI_API_KEY:
    try:
        client = genai.Client(api_key=GEMINI_API_KEY)
    except Exception as e:
        client = None
        logger.info(f"⚠️ Gemini client disabled: {e}")
else:
    client = None
    logger.info("⚠️ GEMINI_API_KEY not set; content generation is disabled.")

# --- Firebase Setup ---
db = None
firebase_init_error = ''
try:
    if os.path.exists('firebase-credentials.json'):
        cred = credentials.Certificate('firebase-credentials.json')
    else:
        firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
        if not firebase_creds_raw:
            raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
        cred = credentials.Certificate(json.loads(firebase_creds_raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    db = firestore.client()
except Exception as e:
    db = None
    firebase_init_error = str(e)
    logger.info(f"⚠️ Firebase disabled: {e}")

ECC_APP_ID = (os.getenv('ECC_APP_ID', DEFAULT_APP_ID) or DEFAULT_APP_ID).strip()
database_optimizer = DatabaseOptimizer(db, app_id=ECC_APP_ID, firestore_module=firestore, logger=logger) if db is not None else None

# --- Mail / OTP ---
OTP_SECRET_KEY = (os.getenv('OTP_SECRET_KEY', '') or '').strip() or app.secret_key
SMTP_SETTINGS = mail_service.SmtpSettings(
    host=(os.getenv('SMTP_HOST', 'smtp.gmail.com') or '').strip(),
    port=safe_int_env('SMTP_PORT', 465, minimum=1, maximum=65535),
    username=(os.getenv('SMTP_USER', '') or '').strip(),
    password=(os.getenv('SMTP_PASSWORD', '') or '').strip(),
    use_ssl=env_flag('SMTP_USE_SSL', '1'),
)
FEEDBACK_RECIPIENT = (os.getenv('FEEDBACK_RECIPIENT', SMTP_SETTINGS.username) or '').strip()
PAYMENT_NOTICE_RECIPIENT = (os.getenv('PAYMENT_NOTICE_RECIPIENT', FEEDBACK_RECIPIENT) or '').strip()
OTP_STORE_FIRESTORE_ENABLED = env_flag('OTP_STORE_FIRESTORE_ENABLED', '1')
MEMORY_OTP_STORE = otp_service.MemoryOtpStore()

# --- Rate limits ---
GENERATION_RATE_LIMIT = RateLimitRule(
    'generate',
    safe_int_env('GENERATION_RATE_LIMIT_MAX_REQUESTS', 30, minimum=1, maximum=1000),
    safe_int_env('GENERATION_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400),
)
OTP_EMAIL_RATE_LIMIT = RateLimitRule(
    'otp_email',
    safe_int_env('OTP_EMAIL_RATE_LIMIT_MAX_REQUESTS', 3, minimum=1, maximum=50),
    safe_int_env('OTP_EMAIL_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=30, maximum=86400),
)
OTP_IP_RATE_LIMIT = RateLimitRule(
    'otp_ip',
    safe_int_env('OTP_IP_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=500),
    safe_int_env('OTP_IP_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=30, maximum=86400),
)
OTP_VERIFY_EMAIL_RATE_LIMIT = RateLimitRule(
    'otp_verify_email',
    safe_int_env('OTP_VERIFY_EMAIL_RATE_LIMIT_MAX_REQUESTS', 10, minimum=3, maximum=100),
    safe_int_env('OTP_VERIFY_EMAIL_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=30, maximum=86400),
)
OTP_VERIFY_IP_RATE_LIMIT = RateLimitRule(
    'otp_verify_ip',
    safe_int_env('OTP_VERIFY_IP_RATE_LIMIT_MAX_REQUESTS', 30, minimum=3, maximum=1000),
    safe_int_env('OTP_VERIFY_IP_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=30, maximum=86400),
)
FEEDBACK_RATE_LIMIT = RateLimitRule('feedback', 5, 600)
PAYMENT_RATE_LIMIT = RateLimitRule('payment', 5, 3600)
MAX_ACTIVE_JOBS_PER_USER = safe_int_env('MAX_ACTIVE_JOBS_PER_USER', 2, minimum=1, maximum=20)
RATE_LIMIT_EVENTS = {}
RATE_LIMIT_LOCK = threading.Lock()
RATE_LIMIT_COUNTER_COLLECTION = 'rate_limit_counters'
RATE_LIMIT_FIRESTORE_ENABLED = env_flag('RATE_LIMIT_FIRESTORE_ENABLED', '1')

# --- Jobs ---
jobs = {}
JOBS_LOCK = threading.RLock()
JOB_TTL_SECONDS = 30 * 60
MAINTENANCE_INTERVAL_SECONDS = 30

# --- Sentry / CORS ---
SENTRY_BACKEND_DSN = os.getenv('SENTRY_DSN_BACKEND', '').strip()
SENTRY_ENVIRONMENT = (os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip()
SENTRY_RELEASE = (os.getenv('SENTRY_RELEASE', 'ecc-app') or 'ecc-app').strip()
APP_BOOT_TS = time.time()


def parse_cors_allowed_origins():
    raw = (os.getenv('CORS_ALLOWED_ORIGINS', '') or '').strip()
    if raw:
        return {part.strip().lower() for part in raw.split(',') if part.strip()}
    return {
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'http://localhost:5000',
        'http://127.0.0.1:5000',
    }


CORS_ALLOWED_ORIGINS = parse_cors_allowed_origins()

if SENTRY_BACKEND_DSN and sentry_sdk and FlaskIntegration:
    sentry_sdk.init(
        dsn=SENTRY_BACKEND_DSN,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.0,
        send_default_pii=False,
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
    )


def apply_cors_headers(response):
    origin = str(request.headers.get('Origin', '') or '').strip()
    if not origin or not request.path.startswith('/api/'):
        return response
    if origin.lower() not in CORS_ALLOWED_ORIGINS:
        return response
    response.headers['Access-Control-Allow-Origin'] = origin
    response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, OPTIONS'
    return response


@app.before_request
def handle_api_options_preflight():
    if request.method == 'OPTIONS' and request.path.startswith('/api/'):
        return apply_cors_headers(app.make_default_options_response())


@app.before_request
def attach_request_context():
    request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
    g.request_id = request_id
    if not sentry_sdk:
        return
    try:
        scope = sentry_sdk.get_current_scope()
        scope.set_tag('request.id', request_id)
        scope.set_tag('route.path', request.path)
        scope.set_tag('route.method', request.method)
    except Exception as exc:
        logger.debug(f"Could not tag Sentry scope: {exc}")


@app.after_request
def attach_response_context(response):
    request_id = str(getattr(g, 'request_id', '') or '').strip()
    if request_id:
        response.headers['X-Request-ID'] = request_id
    return apply_cors_headers(response)


@app.route('/healthz')
def healthz():
    return jsonify({
        'status': 'ok',
        'firebase_ready': db is not None,
        'gemini_ready': client is not None,
        'uptime_seconds': int(time.time() - APP_BOOT_TS),
        'jobs': generation_api_service.describe_job_store(_APP_CTX),
        'prompts': prompt_registry.get_prompt_metadata(),
    }), 200


# =============================================
# HELPER FUNCTIONS
# =============================================

def capture_exception(exc):
    if sentry_sdk and SENTRY_BACKEND_DSN:
        sentry_sdk.capture_exception(exc)


def verify_firebase_token(req):
    return auth_service.verify_firebase_token(req, auth_module=auth if db is not None else None, logger=logger)


def client_ip(req):
    forwarded = str(req.headers.get('X-Forwarded-For', '') or '').split(',')[0].strip()
    return forwarded or req.remote_addr or 'unknown'


def check_rate_limit(rule, actor):
    return rate_limit_service.check_rate_limit(
        rule,
        actor,
        db=db if RATE_LIMIT_FIRESTORE_ENABLED else None,
        firestore_module=firestore,
        counter_collection=RATE_LIMIT_COUNTER_COLLECTION,
        in_memory_events=RATE_LIMIT_EVENTS,
        in_memory_lock=RATE_LIMIT_LOCK,
        time_module=time,
        logger=logger,
    )


def build_rate_limited_response(message, retry_after):
    response = jsonify({
        'error': message,
        'retry_after_seconds': int(max(1, retry_after)),
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(int(max(1, retry_after)))
    return response


def generate_content_with_fallback(contents):
    return generation_service.generate_with_fallback(
        client,
        contents,
        models=GEMINI_MODELS,
        timeout_seconds=GENERATION_ATTEMPT_TIMEOUT_SECONDS,
        sleep_fn=time.sleep,
        logger=logger,
    )


def send_mail(to, subject, html_body=None, text_body=None, sender_name='ECC App', reply_to=None):
    return mail_service.send_mail(
        SMTP_SETTINGS,
        to=to,
        subject=subject,
        html_body=html_body,
        text_body=text_body,
        sender_name=sender_name,
        reply_to=reply_to,
    )


def get_otp_store():
    if db is not None and OTP_STORE_FIRESTORE_ENABLED:
        return otp_service.FirestoreOtpStore(db, firestore)
    return MEMORY_OTP_STORE


def get_database_optimizer():
    return database_optimizer


def create_job(uid):
    return job_state_service.create_job(uid, jobs_store=jobs, lock=JOBS_LOCK, time_module=time)


def get_job_snapshot(job_id):
    return job_state_service.get_job_snapshot(job_id, jobs_store=jobs, lock=JOBS_LOCK)


def get_job_progress(job_id):
    with JOBS_LOCK:
        job = jobs.get(job_id)
        return job.get('progress') if isinstance(job, dict) else None


def mutate_job(job_id, mutator_fn):
    return job_state_service.mutate_job(job_id, mutator_fn, jobs_store=jobs, lock=JOBS_LOCK)


def count_active_jobs_for_user(uid):
    return job_state_service.count_active_jobs_for_user(uid, jobs_store=jobs, lock=JOBS_LOCK)


def start_background_job(target, *args):
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def run_maintenance():
    """Evict finished jobs and expired OTPs, trim the read cache, flush queued writes."""
    now_ts = time.time()
    job_state_service.cleanup_finished_jobs(jobs_store=jobs, lock=JOBS_LOCK, ttl_seconds=JOB_TTL_SECONDS, now_ts=now_ts)
    MEMORY_OTP_STORE.purge_expired(now_ts)
    if database_optimizer is not None:
        database_optimizer.cleanup_cache()
        database_optimizer.flush_batch_operations()


def _run_periodic_maintenance():
    while True:
        time.sleep(MAINTENANCE_INTERVAL_SECONDS)
        try:
            run_maintenance()
        except Exception as exc:
            logger.info(f"⚠️ Periodic maintenance failed: {exc}")


_maintenance_thread = threading.Thread(target=_run_periodic_maintenance, daemon=True)
_maintenance_thread.start()

_APP_CTX = sys.modules[__name__]


# =============================================
# ROUTE IMPLEMENTATIONS (wired by blueprints)
# =============================================

def generate_content_impl():
    return generation_api_service.generate_content(_APP_CTX, request)


def start_generation_job_impl():
    return generation_api_service.start_generation_job(_APP_CTX, request)


def get_generation_job_impl(job_id):
    return generation_api_service.get_generation_job(_APP_CTX, request, job_id)


def generate_summary_impl():
    return generation_api_service.generate_summary(_APP_CTX, request)


def send_otp_impl():
    return otp_api_service.send_otp(_APP_CTX, request)


def verify_otp_impl():
    return otp_api_service.verify_otp(_APP_CTX, request)


def send_feedback_impl():
    return notices_api_service.send_feedback(_APP_CTX, request)


def submit_payment_impl():
    return notices_api_service.submit_payment(_APP_CTX, request)


def list_chats_impl():
    return chats_api_service.list_chats(_APP_CTX, request)


def get_chat_messages_impl(chat_id):
    return chats_api_service.get_chat_messages(_APP_CTX, request, chat_id)


def search_content_impl():
    return chats_api_service.search_content(_APP_CTX, request)


def update_user_preferences_impl():
    return chats_api_service.update_preferences(_APP_CTX, request)


def record_analytics_event_impl():
    return chats_api_service.record_event(_APP_CTX, request)
