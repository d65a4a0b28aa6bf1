"""Business logic handlers for e-mail OTP APIs."""

import logging

from ecc_app.services import mail_service, otp_service


def send_otp(app_ctx, request):
    data = request.get_json(silent=True) or {}
    email = otp_service.normalize_email(data.get('email'))
    if not email:
        return app_ctx.jsonify({'error': 'Email is required'}), 400
    if not otp_service.is_valid_email(email):
        return app_ctx.jsonify({'error': 'Invalid email format'}), 400

    for rule, actor in (
        (app_ctx.OTP_EMAIL_RATE_LIMIT, email),
        (app_ctx.OTP_IP_RATE_LIMIT, app_ctx.client_ip(request)),
    ):
        allowed, retry_after = app_ctx.check_rate_limit(rule, actor)
        if not allowed:
            return app_ctx.build_rate_limited_response(
                'Too many verification codes requested. Please wait before trying again.',
                retry_after,
            )

    store = app_ctx.get_otp_store()
    try:
        otp = otp_service.issue_otp(email, store=store, secret_key=app_ctx.OTP_SECRET_KEY, time_module=app_ctx.time)
        app_ctx.send_mail(
            to=email,
            subject='ECC App - Email Verification Code',
            html_body=mail_service.build_otp_email(otp, ttl_minutes=otp_service.OTP_TTL_SECONDS // 60),
            text_body=f"Your ECC App verification code is {otp}. It expires in 5 minutes.",
        )
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Error sending OTP: {exc}")
        return app_ctx.jsonify({'error': 'Failed to send OTP'}), 500

    app_ctx.log_event(logging.INFO, 'otp_sent', email_domain=email.split('@', 1)[1])
    return app_ctx.jsonify({
        'message': 'OTP sent successfully',
        'expiresIn': otp_service.OTP_TTL_SECONDS,
    })


def verify_otp(app_ctx, request):
    data = request.get_json(silent=True) or {}
    email = otp_service.normalize_email(data.get('email'))
    otp = str(data.get('otp') or '').strip()
    if not email or not otp:
        return app_ctx.jsonify({'error': 'Email and OTP are required'}), 400

    for rule, actor in (
        (app_ctx.OTP_VERIFY_EMAIL_RATE_LIMIT, email),
        (app_ctx.OTP_VERIFY_IP_RATE_LIMIT, app_ctx.client_ip(request)),
    ):
        allowed, retry_after = app_ctx.check_rate_limit(rule, actor)
        if not allowed:
            return app_ctx.build_rate_limited_response(
                'Too many verification attempts. Please wait before trying again.',
                retry_after,
            )

    try:
        outcome = otp_service.verify_otp(
            email,
            otp,
            store=app_ctx.get_otp_store(),
            secret_key=app_ctx.OTP_SECRET_KEY,
            time_module=app_ctx.time,
        )
    except Exception as exc:
        app_ctx.capture_exception(exc)
        app_ctx.logger.error(f"Error verifying OTP: {exc}")
        return app_ctx.jsonify({'error': 'Failed to verify OTP'}), 500

    if not outcome.verified:
        body = {'error': outcome.error}
        if outcome.attempts_left is not None:
            body['attemptsLeft'] = outcome.attempts_left
        return app_ctx.jsonify(body), 400
    return app_ctx.jsonify({'message': 'OTP verified successfully', 'verified': True})
