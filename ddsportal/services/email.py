import smtplib
from email.message import EmailMessage
from typing import Any, Dict

from loguru import logger

from ddsportal.core.config import settings
from ddsportal.core.exceptions import DeliveryError, ValidationError


def _otp_template(payload: Dict[str, Any]) -> tuple:
    return (
        "Your OTP Code - DDS Validation Portal",
        f"<h2>Your OTP Code</h2>"
        f"<p>Your one-time password is: <strong>{payload['code']}</strong></p>"
        f"<p>This code will expire in {payload['expires_minutes']} minutes.</p>"
        f"<p>If you didn't request this code, please ignore this email.</p>",
    )


def _supplier_link_template(payload: Dict[str, Any]) -> tuple:
    return (
        "Your Supplier Portal Access Link - DDS Validation Portal",
        f"<h2>Welcome to the DDS Validation Portal</h2>"
        f"<p>You have been granted access to submit reference numbers through our supplier portal.</p>"
        f"<p><a href=\"{payload['url']}\">Access Supplier Portal</a></p>"
        f"<p>This link will remain active until {payload['valid_until']:%Y-%m-%d}.</p>",
    )


def _access_link_template(payload: Dict[str, Any]) -> tuple:
    return (
        "Access Your Reference Numbers",
        f"<h2>Reference Number Access</h2>"
        f"<p>You requested access to reference numbers for:</p>"
        f"<ul><li><strong>PO Number:</strong> {payload['po_number']}</li>"
        f"<li><strong>Delivery ID:</strong> {payload['delivery_id'] or '-'}</li></ul>"
        f"<p><a href=\"{payload['url']}\">View Reference Numbers</a></p>"
        f"<p>This link will expire in {payload['expires_hours']} hours.</p>",
    )


TEMPLATES = {
    "otp": _otp_template,
    "supplier_link": _supplier_link_template,
    "access_link": _access_link_template,
}


class EmailService:
    """
    Renders a templated message and hands it to the SMTP server.
    Without SMTP configuration every send is a logged no-op.
    """

    def send(self, to: str, kind: str, payload: Dict[str, Any]) -> None:
        template = TEMPLATES.get(kind)
        if template is None:
            raise ValidationError(f"Unknown email template '{kind}'")

        subject, html = template(payload)

        if not settings.smtp_configured:
            logger.warning(f"[EMAIL] Not sent to {to} ({kind}): SMTP not configured")
            return

        message = EmailMessage()
        message["From"] = settings.from_email
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
                smtp.starttls()
                smtp.login(settings.smtp_user, settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] Failed to send {kind} to {to}: {e}")
            raise DeliveryError() from e

        logger.info(f"[EMAIL] {kind} sent to {to}")
