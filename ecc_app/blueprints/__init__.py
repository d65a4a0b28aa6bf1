from .generation import generation_bp
from .otp import otp_bp
from .notices import notices_bp
from .chats import chats_bp

ALL_BLUEPRINTS = (generation_bp, otp_bp, notices_bp, chats_bp)

__all__ = ['generation_bp', 'otp_bp', 'notices_bp', 'chats_bp', 'ALL_BLUEPRINTS']
