import smtplib

import pytest

from ecc_app.services import mail_service
from ecc_app.services.mail_service import MailDeliveryError, SmtpSettings

SETTINGS = SmtpSettings(host="smtp.test", port=465, username="bot@ecc.test", password="pw")


class _RecordingSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.sent = []
        self.logged_in = None
        _RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        self.sent.append(message)


class _FailingSMTP(_RecordingSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({})


def test_send_mail_builds_multipart_message():
    _RecordingSMTP.instances.clear()

    mail_service.send_mail(
        SETTINGS,
        to="educator@school.edu",
        subject="Hello",
        html_body="<b>Hi</b>",
        text_body="Hi",
        reply_to="reply@school.edu",
        smtp_factory=_RecordingSMTP,
    )

    smtp = _RecordingSMTP.instances[-1]
    message = smtp.sent[0]
    assert smtp.logged_in == ("bot@ecc.test", "pw")
    assert message["To"] == "educator@school.edu"
    assert message["Reply-To"] == "reply@school.edu"
    assert "bot@ecc.test" in message["From"]
    assert message.get_body(preferencelist=("html",)).get_content().strip() == "<b>Hi</b>"


def test_send_mail_wraps_smtp_errors():
    with pytest.raises(MailDeliveryError):
        mail_service.send_mail(SETTINGS, to="x@y.z", subject="s", text_body="t", smtp_factory=_FailingSMTP)


def test_send_mail_requires_configuration():
    with pytest.raises(MailDeliveryError, match="not configured"):
        mail_service.send_mail(SmtpSettings("", 465, "", ""), to="x@y.z", subject="s")


def test_payment_emails_escape_user_input():
    form = {
        "senderName": "<script>alert(1)</script>",
        "senderEmail": "p@x.org",
        "senderPhone": "123",
        "paymentMethod": "meezan_bank",
        "transactionId": "TX-1",
        "additionalNotes": "<i>note</i>",
    }

    admin_html = mail_service.build_payment_admin_email(form)
    user_html = mail_service.build_payment_confirmation_email(form)

    assert "<script>" not in admin_html
    assert "&lt;script&gt;" in user_html
    assert "Meezan Bank" in admin_html
    assert "219 PKR" in user_html
    assert "&lt;i&gt;note&lt;/i&gt;" in admin_html


def test_payment_method_label_defaults_to_jazzcash():
    assert mail_service.payment_method_label("jazzcash") == "JazzCash"
    assert mail_service.payment_method_label("anything") == "JazzCash"
