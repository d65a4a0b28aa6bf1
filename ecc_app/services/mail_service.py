"""Outbound e-mail over SMTP plus the message bodies the app sends."""

import html
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr

PAYMENT_AMOUNT_LABEL = '219 PKR'
PAYMENT_METHOD_LABELS = {'meezan_bank': 'Meezan Bank'}
DEFAULT_PAYMENT_METHOD_LABEL = 'JazzCash'


class MailDeliveryError(RuntimeError):
    pass


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    username: str
    password: str
    use_ssl: bool = True
    timeout_seconds: float = 20.0

    @property
    def configured(self):
        return bool(self.host and self.username and self.password)


def send_mail(settings, *, to, subject, html_body=None, text_body=None, sender_name='ECC App', reply_to=None, smtp_factory=None):
    if not settings.configured:
        raise MailDeliveryError('SMTP is not configured')
    message = EmailMessage()
    message['From'] = formataddr((sender_name, settings.username))
    message['To'] = to
    message['Subject'] = subject
    if reply_to:
        message['Reply-To'] = reply_to
    message.set_content(text_body or 'This message requires an HTML-capable mail client.')
    if html_body:
        message.add_alternative(html_body, subtype='html')

    factory = smtp_factory or (smtplib.SMTP_SSL if settings.use_ssl else smtplib.SMTP)
    try:
        with factory(settings.host, settings.port, timeout=settings.timeout_seconds) as smtp:
            if not settings.use_ssl:
                smtp.starttls()
            smtp.login(settings.username, settings.password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDeliveryError(str(exc)) from exc


def payment_method_label(method):
    return PAYMENT_METHOD_LABELS.get(method, DEFAULT_PAYMENT_METHOD_LABEL)


def build_otp_email(otp, ttl_minutes=5):
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(135deg, #3B82F6 0%, #8B5CF6 100%); padding: 20px; border-radius: 10px; text-align: center; margin-bottom: 30px;">
    <h1 style="color: white; margin: 0; font-size: 24px;">ECC App</h1>
    <p style="color: white; margin: 10px 0 0 0; opacity: 0.9;">Educational Content Creator</p>
  </div>
  <div style="background: #f8f9fa; padding: 30px; border-radius: 10px; border: 1px solid #e9ecef;">
    <h2 style="color: #333; margin-top: 0; text-align: center;">Email Verification Required</h2>
    <p style="color: #666; font-size: 16px; line-height: 1.6;">
      Thank you for signing up with ECC App! To complete your registration, please verify your email address by entering the following verification code:
    </p>
    <div style="background: white; border: 2px solid #3B82F6; border-radius: 8px; padding: 20px; margin: 25px 0; text-align: center;">
      <div style="font-size: 32px; font-weight: bold; color: #3B82F6; letter-spacing: 5px; font-family: 'Courier New', monospace;">{html.escape(otp)}</div>
    </div>
    <p style="color: #666; font-size: 14px;"><strong>Important:</strong> This verification code will expire in {ttl_minutes} minutes for security reasons.</p>
    <p style="color: #666; font-size: 14px; margin-bottom: 0;">If you didn't request this verification code, please ignore this email.</p>
  </div>
  <p style="color: #999; font-size: 12px; text-align: center; margin-top: 30px;">This is an automated message from ECC App. Please do not reply to this email.</p>
</div>
"""


def _row(label, value, color='#64748b'):
    return (
        f'<tr><td style="padding: 8px 0; font-weight: bold; color: #475569;">{label}:</td>'
        f'<td style="padding: 8px 0; color: {color};">{value}</td></tr>'
    )


def build_payment_admin_email(form, submitted_at=None):
    submitted_at = submitted_at or datetime.now()
    esc = {key: html.escape(str(form.get(key) or '')) for key in form}
    notes_block = ''
    if esc.get('additionalNotes'):
        notes_block = (
            '<div style="background: #fef3c7; border-radius: 8px; padding: 15px; margin: 20px 0;">'
            '<h4 style="color: #92400e;">Additional Notes:</h4>'
            f'<p style="color: #92400e; margin: 0;">{esc["additionalNotes"]}</p></div>'
        )
    rows = ''.join([
        _row('Sender Name', esc.get('senderName', '')),
        _row('Email', esc.get('senderEmail', '')),
        _row('Phone', esc.get('senderPhone', '')),
        _row('Payment Method', payment_method_label(form.get('paymentMethod'))),
        _row('Transaction ID', esc.get('transactionId', '')),
        _row('Amount', PAYMENT_AMOUNT_LABEL, color='#16a34a'),
        _row('Submitted', submitted_at.strftime('%Y-%m-%d %H:%M:%S')),
    ])
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #8b5cf6; text-align: center;">🎓 New PRO Purchase Request - ECC Educational Platform</h2>
  <div style="background: #f8fafc; border-radius: 8px; padding: 20px; margin: 20px 0;">
    <h3 style="color: #334155;">Payment Details</h3>
    <table style="width: 100%; border-collapse: collapse;">{rows}</table>
  </div>
  {notes_block}
  <div style="background: #dcfce7; border-radius: 8px; padding: 15px; margin: 20px 0;">
    <h4 style="color: #166534;">Next Steps:</h4>
    <ol style="color: #166534; margin: 0;">
      <li>Verify the payment details with the bank/payment service</li>
      <li>Activate PRO access for the user: {esc.get('senderEmail', '')}</li>
      <li>Send confirmation email to the user</li>
    </ol>
  </div>
</div>
"""


def build_payment_confirmation_email(form):
    name = html.escape(str(form.get('senderName') or ''))
    transaction_id = html.escape(str(form.get('transactionId') or ''))
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #8b5cf6; text-align: center;">🎓 PRO Purchase Request Received</h2>
  <div style="background: #f8fafc; border-radius: 8px; padding: 20px; margin: 20px 0;">
    <p style="color: #334155;">Dear {name},</p>
    <p style="color: #475569; line-height: 1.6;">Thank you for your interest in upgrading to our PRO learning experience! We have received your payment details and are currently processing your request.</p>
    <div style="background: #dcfce7; border-radius: 6px; padding: 15px; margin: 15px 0;">
      <h4 style="color: #166534;">Payment Details Received:</h4>
      <ul style="color: #166534; margin: 0;">
        <li>Transaction ID: {transaction_id}</li>
        <li>Payment Method: {payment_method_label(form.get('paymentMethod'))}</li>
        <li>Amount: {PAYMENT_AMOUNT_LABEL}</li>
      </ul>
    </div>
    <p style="color: #475569; line-height: 1.6;"><strong>What happens next:</strong><br>
      • We will verify your payment within 24 hours<br>
      • Once verified, your PRO access will be activated<br>
      • You will receive a confirmation email with activation details</p>
  </div>
  <p style="color: #64748b; text-align: center;">Thank you for choosing ECC Educational Platform!</p>
</div>
"""
