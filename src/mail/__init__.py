"""Outbound email — ZeptoMail template API and SMTP."""

from src.mail.smtp import send_html_email
from src.mail.zeptomail import ZeptoMailClient, build_template_payload

__all__ = [
    "ZeptoMailClient",
    "build_template_payload",
    "send_html_email",
]
