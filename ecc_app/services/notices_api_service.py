"""Business logic handlers for feedback and manual payment notices."""

from ecc_app.repositories import payments_repo
from ecc_app.services import mail_service, otp_service

PAYMENT_REQUIRED_FIELDS = ('senderName', 'senderEmail', 'senderPhone', 'paymentMethod', 'transactionId')
MAX_FIELD_LENGTH = 500
MAX_FEEDBACK_LENGTH = 5000


def send_feedback(app_ctx, request):
    data = request.get_json(silent=True) or {}
    message = str(data.get('message') or '').strip()
    if not message:
        return app_ctx.jsonify({'error': 'Message is required.'}), 400
    email = otp_service.normalize_email(data.get('email'))
    reply_to = email if otp_service.is_valid_email(email) else None

    allowed, retry_after = app_ctx.check_rate_limit(app_ctx.FEEDBACK_RATE_LIMIT, app_ctx.client_ip(request))
    if not allowed:
        return app_ctx.build_rate_limited_response('Too many feedback messages. Please wait.', retry_after)

    try:
        app_ctx.send_mail(
            to=app_ctx.FEEDBACK_RECIPIENT,
            subject='ECC App - User Feedback',
            text_body=f"From: {email or 'anonymous'}\n\n{message[:MAX_FEEDBACK_LENGTH]}",
            reply_to=reply_to,
        )
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Email send error: {exc}")
        return app_ctx.jsonify({'error': 'Failed to send feedback email'}), 500
    return app_ctx.jsonify({'success': True})


def parse_payment_form(data):
    form = {}
    for key in PAYMENT_REQUIRED_FIELDS + ('additionalNotes',):
        form[key] = str(data.get(key) or '').strip()[:MAX_FIELD_LENGTH]
    missing = [key for key in PAYMENT_REQUIRED_FIELDS if not form[key]]
    return form, missing


def submit_payment(app_ctx, request):
    data = request.get_json(silent=True) or {}
    form, missing = parse_payment_form(data)
    if missing:
        return app_ctx.jsonify({'error': 'Missing required fields'}), 400

    allowed, retry_after = app_ctx.check_rate_limit(app_ctx.PAYMENT_RATE_LIMIT, app_ctx.client_ip(request))
    if not allowed:
        return app_ctx.build_rate_limited_response('Too many payment submissions. Please wait.', retry_after)

    try:
        app_ctx.send_mail(
            to=app_ctx.PAYMENT_NOTICE_RECIPIENT,
            subject=f"🎓 New PRO Purchase Request - {form['senderName']}",
            html_body=mail_service.build_payment_admin_email(form),
            sender_name='ECC Payment System',
        )
        app_ctx.send_mail(
            to=form['senderEmail'],
            subject='🎓 PRO Purchase Request Received - ECC Educational Platform',
            html_body=mail_service.build_payment_confirmation_email(form),
            sender_name='ECC Educational Platform',
        )
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Payment notice email error: {exc}")
        return app_ctx.jsonify({'error': 'Failed to submit payment details', 'details': str(exc)}), 500

    if app_ctx.db is not None:
        try:
            payments_repo.add_request(app_ctx.db, {
                **form,
                'paymentMethodLabel': mail_service.payment_method_label(form['paymentMethod']),
                'amount': mail_service.PAYMENT_AMOUNT_LABEL,
                'status': 'pending',
                'created_at': app_ctx.time.time(),
            })
        except Exception as exc:
            app_ctx.logger.info(f"⚠️ Could not store payment request for {form['transactionId']}: {exc}")

    return app_ctx.jsonify({'success': True, 'message': 'Payment details submitted successfully'})
