"""ScheduledEmail data model."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class EmailStatus(StrEnum):
    """Lifecycle status of a scheduled email job."""

    PENDING = "pending"
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not EmailStatus.PENDING


# Terminal status -> column holding the time it was reached.
TIMESTAMP_COLUMNS: dict[EmailStatus, str] = {
    EmailStatus.SENT: "sent_at",
    EmailStatus.PARTIAL: "sent_at",
    EmailStatus.FAILED: "failed_at",
    EmailStatus.CANCELLED: "cancelled_at",
}


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as fixed-width ISO 8601 UTC.

    The fixed width keeps lexical order equal to chronological order, which
    the store relies on for its range queries.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 string, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class Recipient:
    """One addressee of a scheduled email."""

    email: str
    display_name: str | None = None

    @property
    def personal_name(self) -> str:
        """Display name, defaulting to the local part of the address."""
        return self.display_name or self.email.split("@")[0]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"email": self.email}
        if self.display_name:
            data["username"] = self.display_name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recipient:
        return cls(email=data["email"], display_name=data.get("username"))


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of sending to a single recipient."""

    recipient: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"recipient": self.recipient, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeliveryResult:
        return cls(
            recipient=data["recipient"],
            success=bool(data["success"]),
            error=data.get("error"),
        )


@dataclass
class ScheduledEmail:
    """A templated email to be delivered to a recipient list at a set time.

    Attributes:
        id: Unique identifier (UUID hex).
        sender_email: Address the mail is sent from.
        template_key: Mail API template identifier.
        recipients: Ordered, non-empty recipient list.
        scheduled_time: When to send (timezone-aware).
        payload: Base mail API payload, stored verbatim.
        status: Current lifecycle status.
        created_at: ISO 8601 timestamp.
        sent_at: Set when the job reaches ``sent`` or ``partial``.
        failed_at: Set when the job reaches ``failed``.
        cancelled_at: Set when the job reaches ``cancelled``.
        error: Failure description, only for ``failed`` jobs.
        results: Per-recipient outcomes, once delivery was attempted.
    """

    id: str
    sender_email: str
    template_key: str
    recipients: list[Recipient]
    scheduled_time: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    status: EmailStatus = EmailStatus.PENDING
    created_at: str = ""
    sent_at: str | None = None
    failed_at: str | None = None
    cancelled_at: str | None = None
    error: str | None = None
    results: list[DeliveryResult] | None = None

    def __post_init__(self) -> None:
        if not self.recipients:
            msg = "A scheduled email needs at least one recipient"
            raise ValueError(msg)
        self.status = EmailStatus(self.status)
        if self.scheduled_time.tzinfo is None:
            self.scheduled_time = self.scheduled_time.replace(tzinfo=UTC)
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``scheduled_emails`` column order."""
        return (
            self.id,
            self.sender_email,
            self.template_key,
            json.dumps([r.to_dict() for r in self.recipients]),
            format_timestamp(self.scheduled_time),
            json.dumps(self.payload),
            self.status.value,
            self.created_at,
            self.sent_at,
            self.failed_at,
            self.cancelled_at,
            self.error,
            json.dumps([r.to_dict() for r in self.results]) if self.results is not None else None,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ScheduledEmail:
        """Deserialize from a SQLite row tuple."""
        results = json.loads(row[12]) if row[12] is not None else None
        return cls(
            id=row[0],
            sender_email=row[1],
            template_key=row[2],
            recipients=[Recipient.from_dict(r) for r in json.loads(row[3])],
            scheduled_time=parse_timestamp(row[4]),
            payload=json.loads(row[5]),
            status=EmailStatus(row[6]),
            created_at=row[7],
            sent_at=row[8],
            failed_at=row[9],
            cancelled_at=row[10],
            error=row[11],
            results=[DeliveryResult.from_dict(r) for r in results] if results is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON shape returned by the HTTP layer."""
        return {
            "id": self.id,
            "senderEmail": self.sender_email,
            "templateKey": self.template_key,
            "recipients": [r.to_dict() for r in self.recipients],
            "scheduledTime": format_timestamp(self.scheduled_time),
            "status": self.status.value,
            "createdAt": self.created_at,
            "sentAt": self.sent_at,
            "failedAt": self.failed_at,
            "cancelledAt": self.cancelled_at,
            "error": self.error,
            "results": [r.to_dict() for r in self.results] if self.results is not None else None,
        }


def make_job_id() -> str:
    """Generate a new job ID."""
    return uuid.uuid4().hex
