"""Request bodies accepted by the HTTP layer."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from src.errors import ValidationError
from src.scheduler.models import Recipient


class RequestModel(BaseModel):
    """Base for request bodies: camelCase aliases, unknown keys ignored.

    Subclasses list their mandatory fields in ``REQUIRED`` as
    ``(attribute, label)`` pairs; ``require()`` reports all missing ones at
    once using the labels.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    REQUIRED: ClassVar[tuple[tuple[str, str], ...]] = ()

    @classmethod
    def parse(cls, data: Any) -> RequestModel:
        if not isinstance(data, dict):
            msg = "Request body must be a JSON object"
            raise ValidationError(msg)
        try:
            return cls.model_validate(data)
        except ValueError as exc:
            msg = f"Invalid request body: {exc}"
            raise ValidationError(msg) from exc

    def require(self) -> None:
        missing = [label for attr, label in self.REQUIRED if not getattr(self, attr)]
        if missing:
            msg = f"Missing required fields: {', '.join(missing)}"
            raise ValidationError(msg)


class ContactSubmission(RequestModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    pincode: str = ""
    looking_for: str = Field(default="", alias="lookingFor")
    experience: str = ""
    country: str = ""
    origin: str = ""

    REQUIRED = (
        ("name", "Name"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("pincode", "Pincode"),
        ("looking_for", "LookingFor"),
        ("origin", "Origin"),
    )


class PartnershipSubmission(RequestModel):
    type: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    company_name: str = Field(default="", alias="companyName")
    designation: str = ""

    REQUIRED = (
        ("type", "Type"),
        ("name", "Name"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("company_name", "Company Name"),
        ("designation", "Designation"),
    )


class SendOtpRequest(RequestModel):
    email: str = ""
    name: str = ""

    def require(self) -> None:
        if not self.email or not self.name:
            msg = "Email and Name are required!"
            raise ValidationError(msg)


class VerifyOtpRequest(RequestModel):
    email: str = ""
    otp: str = ""

    def require(self) -> None:
        if not self.email or not self.otp:
            msg = "Email and OTP are required!"
            raise ValidationError(msg)


class RecipientIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str
    username: str | None = None

    def to_recipient(self) -> Recipient:
        return Recipient(email=self.email, display_name=self.username or None)


class SendTemplateRequest(RequestModel):
    sender_email: str = Field(default="", alias="senderEmail")
    template_key: str = Field(default="", alias="templateKey")
    recipients: list[RecipientIn] | None = None
    scheduled_time: str | None = Field(default=None, alias="scheduledTime")

    def require(self) -> None:
        if not self.sender_email:
            msg = "Sender email is required"
            raise ValidationError(msg)
        if not self.template_key:
            msg = "Template key is required"
            raise ValidationError(msg)
        if not self.recipients:
            msg = "Recipients list is required and must be an array"
            raise ValidationError(msg)

    def to_recipients(self) -> list[Recipient]:
        return [r.to_recipient() for r in self.recipients or []]


def parse_scheduled_time(value: str, now: datetime | None = None) -> datetime:
    """Parse an ISO 8601 send time that must lie strictly in the future.

    Naive values are read as UTC. A trailing ``Z`` is accepted.

    Raises:
        ValidationError: if the value is unparsable or not after *now*.
    """
    now = now or datetime.now(UTC)
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError) as exc:
        msg = "Invalid or past scheduled time."
        raise ValidationError(msg) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    if parsed <= now:
        msg = "Invalid or past scheduled time."
        raise ValidationError(msg)
    return parsed
