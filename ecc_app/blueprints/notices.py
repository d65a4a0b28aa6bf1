from flask import Blueprint

notices_bp = Blueprint('notices_api', __name__)


@notices_bp.route('/api/send-feedback', methods=['POST'])
def send_feedback():
    from ecc_app import runtime

    return runtime.send_feedback_impl()


@notices_bp.route('/api/submit-payment', methods=['POST'])
def submit_payment():
    from ecc_app import runtime

    return runtime.submit_payment_impl()
