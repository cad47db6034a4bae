"""HTML bodies for OTP and acknowledgment emails."""

from __future__ import annotations

import html

LOGO_URL = "https://cms.skillang.com/uploads/logo_3_58939e0878.svg"

_FRAME = """\
<div style="font-family: Arial, sans-serif; max-width: 500px; padding: 20px; \
border: 1px solid #ddd; border-radius: 10px;">
  <div style="text-align: center;">
    <img src="{logo}" alt="Skillang Logo" style="max-width: 150px;">
  </div>
  {body}
  <hr>
  <p style="font-size: 12px; color: #aaa; text-align: center;">{footer}</p>
</div>
"""


def _paragraph(text: str, size: int = 16, color: str = "#555") -> str:
    return f'<p style="font-size: {size}px; color: {color}; text-align: center;">{text}</p>'


def _render(body: str, footer: str) -> str:
    return _FRAME.format(logo=LOGO_URL, body=body, footer=footer)


def otp_email_html(name: str, otp: str, valid_minutes: int) -> str:
    body = "\n  ".join(
        [
            f'<h2 style="color: #333; text-align: center;">Dear {html.escape(name)},</h2>',
            _paragraph("Your One-Time Password (OTP) for verification is:"),
            '<div style="text-align: center; font-size: 22px; font-weight: bold; '
            'background: #f4f4f4; padding: 10px; border-radius: 5px; margin: 10px 0;">'
            f"{html.escape(otp)}</div>",
            _paragraph(
                f"This OTP is valid for <strong>{valid_minutes} minutes</strong>. "
                "Please do not share it with anyone.",
                size=14,
                color="#777",
            ),
            _paragraph("Thanks &amp; Regards, <br><strong>Skillang Support Team</strong>"),
        ]
    )
    return _render(body, "This is a system-generated email. Please do not reply to this email.")


def contact_ack_html(name: str) -> str:
    body = "\n  ".join(
        [
            f'<h2 style="color: #333; text-align: center;">Hi {html.escape(name)},</h2>',
            _paragraph(
                "Thanks for contacting <strong>Skillang</strong>. We have received your "
                "message and will get back to you soon."
            ),
            _paragraph("Best regards,<br><strong>Skillang Team</strong>"),
        ]
    )
    return _render(body, "This is an automated message. Please do not reply to this email.")


def partnership_ack_html(name: str) -> str:
    body = "\n  ".join(
        [
            f'<h2 style="color: #333; text-align: center;">Hello {html.escape(name)},</h2>',
            _paragraph(
                "Thank you for reaching out to <strong>Skillang</strong> regarding a "
                "potential partnership."
            ),
            _paragraph(
                "Our team has received your information and will be in touch with you shortly."
            ),
            _paragraph("Warm regards,<br><strong>Skillang Team</strong>"),
        ]
    )
    return _render(body, "This is an automated email. Please do not reply.")
