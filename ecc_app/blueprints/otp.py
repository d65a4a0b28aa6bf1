from flask import Blueprint

otp_bp = Blueprint('otp_api', __name__)


@otp_bp.route('/api/send-otp', methods=['POST'])
def send_otp():
    from ecc_app import runtime

    return runtime.send_otp_impl()


@otp_bp.route('/api/verify-otp', methods=['POST'])
def verify_otp():
    from ecc_app import runtime

    return runtime.verify_otp_impl()
