"""DeliveryExecutor — sends a template email to each recipient in turn."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from src.mail.zeptomail import build_template_payload
from src.scheduler.models import DeliveryResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.scheduler.models import Recipient, ScheduledEmail

logger = logging.getLogger(__name__)


class TemplateMailer(Protocol):
    """Anything that can send one template payload (e.g. ZeptoMailClient)."""

    async def send_template(self, payload: dict[str, Any]) -> Any: ...


@dataclass
class DeliveryReport:
    """Per-recipient outcomes of one delivery run, in recipient order."""

    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


class DeliveryExecutor:
    """Sends one message per recipient, sequentially.

    A failure for one recipient is recorded in the report and does not stop
    the others. Each send is awaited before the next begins.

    Args:
        mailer: Client used to send each single-recipient payload.
        sender_name: Display name for the ``from`` address (None → settings).
    """

    def __init__(self, mailer: TemplateMailer, sender_name: str | None = None) -> None:
        self._mailer = mailer
        self._sender_name = sender_name

    async def send_to_recipients(
        self,
        sender_email: str,
        template_key: str,
        recipients: Sequence[Recipient],
    ) -> DeliveryReport:
        """Send *template_key* from *sender_email* to every recipient."""
        report = DeliveryReport()
        for recipient in recipients:
            payload = build_template_payload(
                template_key, sender_email, recipient, sender_name=self._sender_name
            )
            try:
                await self._mailer.send_template(payload)
            except Exception as exc:
                logger.warning("Send to %s failed: %s", recipient.email, exc)
                report.results.append(
                    DeliveryResult(recipient=recipient.email, success=False, error=str(exc))
                )
            else:
                report.results.append(DeliveryResult(recipient=recipient.email, success=True))

        logger.info(
            "Delivery of %s complete. Success: %d, Errors: %d",
            template_key,
            report.success_count,
            report.failure_count,
        )
        return report

    async def deliver(self, job: ScheduledEmail) -> DeliveryReport:
        """Send a stored job to all of its recipients."""
        logger.info(
            "Delivering scheduled email %s to %d recipient(s)", job.id, len(job.recipients)
        )
        return await self.send_to_recipients(job.sender_email, job.template_key, job.recipients)
