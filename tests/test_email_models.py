"""Tests for the ScheduledEmail data model."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from src.scheduler.models import (
    DeliveryResult,
    EmailStatus,
    Recipient,
    ScheduledEmail,
    format_timestamp,
    make_job_id,
    parse_timestamp,
)

WHEN = datetime(2026, 6, 1, 9, 0, tzinfo=UTC)


def _make_job(**kwargs) -> ScheduledEmail:
    defaults = {
        "id": "abc123",
        "sender_email": "news@skillang.com",
        "template_key": "tmpl",
        "recipients": [Recipient("ann@example.com", "Ann"), Recipient("bob@example.com")],
        "scheduled_time": WHEN,
    }
    defaults.update(kwargs)
    return ScheduledEmail(**defaults)


# -- Construction & defaults ---------------------------------------------------


def test_auto_created_at() -> None:
    job = _make_job()
    assert job.created_at != ""
    assert "T" in job.created_at


def test_explicit_created_at_not_overwritten() -> None:
    job = _make_job(created_at="2024-01-01T00:00:00")
    assert job.created_at == "2024-01-01T00:00:00"


def test_default_values() -> None:
    job = _make_job()
    assert job.status is EmailStatus.PENDING
    assert job.payload == {}
    assert job.sent_at is None
    assert job.failed_at is None
    assert job.cancelled_at is None
    assert job.error is None
    assert job.results is None


def test_empty_recipients_rejected() -> None:
    with pytest.raises(ValueError, match="at least one recipient"):
        _make_job(recipients=[])


def test_naive_scheduled_time_is_utc() -> None:
    job = _make_job(scheduled_time=datetime(2026, 6, 1, 9, 0))
    assert job.scheduled_time == WHEN


def test_status_string_coerced() -> None:
    job = _make_job(status="sent")
    assert job.status is EmailStatus.SENT


def test_terminal_statuses() -> None:
    assert not EmailStatus.PENDING.is_terminal
    for status in (EmailStatus.SENT, EmailStatus.PARTIAL, EmailStatus.FAILED, EmailStatus.CANCELLED):
        assert status.is_terminal


# -- Recipient -----------------------------------------------------------------


def test_personal_name_uses_display_name() -> None:
    assert Recipient("ann@example.com", "Ann").personal_name == "Ann"


def test_personal_name_defaults_to_local_part() -> None:
    assert Recipient("jane.doe@example.com").personal_name == "jane.doe"


def test_recipient_dict_uses_username_key() -> None:
    assert Recipient("ann@example.com", "Ann").to_dict() == {
        "email": "ann@example.com",
        "username": "Ann",
    }
    assert Recipient("bob@example.com").to_dict() == {"email": "bob@example.com"}


# -- Timestamps ----------------------------------------------------------------


def test_format_timestamp_normalises_to_utc() -> None:
    ist = timezone(timedelta(hours=5, minutes=30))
    value = datetime(2026, 6, 1, 14, 30, tzinfo=ist)
    assert format_timestamp(value) == "2026-06-01T09:00:00.000000+00:00"


def test_format_timestamp_orders_lexically() -> None:
    earlier = format_timestamp(datetime(2026, 6, 1, 9, 0, 0, tzinfo=UTC))
    later = format_timestamp(datetime(2026, 6, 1, 9, 0, 0, 5, tzinfo=UTC))
    assert earlier < later


def test_parse_timestamp_naive_is_utc() -> None:
    assert parse_timestamp("2026-06-01T09:00:00") == WHEN


# -- Serialization -------------------------------------------------------------


def test_row_round_trip_with_results() -> None:
    job = _make_job(
        status=EmailStatus.PARTIAL,
        payload={"mail_template_key": "tmpl"},
        sent_at="2026-06-01T09:00:01+00:00",
        results=[
            DeliveryResult("ann@example.com", True),
            DeliveryResult("bob@example.com", False, "bounced"),
        ],
    )
    restored = ScheduledEmail.from_row(job.to_row())
    assert restored == job


def test_to_dict_shape() -> None:
    job = _make_job()
    data = job.to_dict()
    assert data["senderEmail"] == "news@skillang.com"
    assert data["templateKey"] == "tmpl"
    assert data["status"] == "pending"
    assert data["recipients"][0] == {"email": "ann@example.com", "username": "Ann"}
    assert data["scheduledTime"].startswith("2026-06-01T09:00:00")
    assert data["results"] is None


def test_make_job_id_unique() -> None:
    ids = {make_job_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(i) == 32 for i in ids)
