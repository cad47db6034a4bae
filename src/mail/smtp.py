"""SMTP sender for OTP and acknowledgment emails."""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from src.config import settings
from src.errors import DeliveryError

logger = logging.getLogger(__name__)


def _build_message(to: str, subject: str, html: str, from_name: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = f"{from_name} <{settings.email_user}>"
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML-capable email client.")
    message.add_alternative(html, subtype="html")
    return message


async def send_html_email(to: str, subject: str, html: str, *, from_name: str) -> None:
    """Send an HTML email through the configured SMTP account.

    Raises:
        DeliveryError: when SMTP is not configured or the server rejects it.
    """
    if not settings.email_user or not settings.email_pass:
        msg = "SMTP not configured — missing EMAIL_USER or EMAIL_PASS"
        raise DeliveryError(msg)

    message = _build_message(to, subject, html, from_name)
    try:
        await aiosmtplib.send(
            message,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.email_user,
            password=settings.email_pass,
            use_tls=settings.smtp_use_tls,
        )
    except aiosmtplib.SMTPException as exc:
        logger.exception("SMTP send failed: to=%s subject=%s", to, subject)
        msg = f"SMTP send failed: {exc}"
        raise DeliveryError(msg) from exc
    logger.info("Email sent: to=%s subject=%s", to, subject)
