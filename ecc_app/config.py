import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


def _env(name, default=''):
    return (os.getenv(name, default) or default).strip()


@dataclass(frozen=True)
class AppConfig:
    """Central config object read once at app-factory time."""

    flask_secret_key: str = field(default_factory=lambda: os.getenv('FLASK_SECRET_KEY', ''))
    log_level: str = field(default_factory=lambda: _env('LOG_LEVEL', 'INFO').upper())
    app_id: str = field(default_factory=lambda: _env('ECC_APP_ID', 'ecc-app-ab284'))
    otp_secret_key: str = field(default_factory=lambda: os.getenv('OTP_SECRET_KEY', ''))
    sentry_environment: str = field(default_factory=lambda: _env('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production') or 'production'))


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('NETLIFY') or os.getenv('RENDER') else 'development')
    ).strip().lower()


def load_config() -> AppConfig:
    load_dotenv()
    config = AppConfig()
    is_dev_like = runtime_environment() in {'development', 'dev', 'local', 'test'}
    if not is_dev_like:
        if not config.flask_secret_key.strip():
            raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
        if not config.otp_secret_key.strip():
            raise RuntimeError('OTP_SECRET_KEY must be set in non-development environments.')
    return config
