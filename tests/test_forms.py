"""Tests for OTP storage, request models, and sheet helpers."""

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.errors import ValidationError
from src.forms.otp import OtpStore
from src.forms.schemas import (
    ContactSubmission,
    PartnershipSubmission,
    SendTemplateRequest,
    VerifyOtpRequest,
    parse_scheduled_time,
)
from src.forms.sheets import SheetsClient, sheet_timestamp
from src.scheduler.models import Recipient

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# -- OtpStore ------------------------------------------------------------------


class TestOtpStore:
    def test_issue_returns_four_digits(self):
        store = OtpStore(ttl_seconds=600)
        for _ in range(50):
            code = store.issue("ann@example.com")
            assert len(code) == 4
            assert 1000 <= int(code) <= 9999

    def test_verify_consumes_code(self):
        store = OtpStore(ttl_seconds=600)
        code = store.issue("ann@example.com")
        assert store.verify("ann@example.com", code) is True
        assert store.verify("ann@example.com", code) is False
        assert len(store) == 0

    def test_wrong_code_keeps_entry(self):
        store = OtpStore(ttl_seconds=600)
        code = store.issue("ann@example.com")
        wrong = "0000" if code != "0000" else "1111"
        assert store.verify("ann@example.com", wrong) is False
        assert store.verify("ann@example.com", code) is True

    def test_unknown_email(self):
        assert OtpStore(ttl_seconds=600).verify("nobody@example.com", "1234") is False

    def test_expired_code_rejected_and_removed(self):
        clock = _Clock()
        store = OtpStore(ttl_seconds=600, clock=clock)
        code = store.issue("ann@example.com")
        clock.now += 601
        assert store.verify("ann@example.com", code) is False
        assert len(store) == 0

    def test_reissue_replaces_code(self):
        store = OtpStore(ttl_seconds=600)
        store.issue("ann@example.com")
        second = store.issue("ann@example.com")
        assert len(store) == 1
        assert store.verify("ann@example.com", second) is True

    def test_ttl_minutes(self):
        assert OtpStore(ttl_seconds=600).ttl_minutes == 10


# -- Request models ------------------------------------------------------------


class TestContactSubmission:
    def test_lists_all_missing_fields(self):
        body = ContactSubmission.parse({"name": "Ann", "email": "ann@example.com"})
        with pytest.raises(ValidationError) as excinfo:
            body.require()
        assert str(excinfo.value) == "Missing required fields: Phone, Pincode, LookingFor, Origin"

    def test_accepts_camel_case_and_numbers(self):
        body = ContactSubmission.parse(
            {
                "name": "Ann",
                "email": "ann@example.com",
                "phone": 9876543210,
                "pincode": 560001,
                "lookingFor": "Study abroad",
                "origin": "landing",
            }
        )
        body.require()
        assert body.phone == "9876543210"
        assert body.looking_for == "Study abroad"

    def test_non_object_body_rejected(self):
        with pytest.raises(ValidationError, match="JSON object"):
            ContactSubmission.parse(["not", "an", "object"])


def test_partnership_missing_company_label():
    body = PartnershipSubmission.parse(
        {"type": "college", "name": "Ann", "email": "a@x.com", "phone": "1", "designation": "Dean"}
    )
    with pytest.raises(ValidationError, match="Company Name"):
        body.require()


def test_verify_otp_accepts_numeric_code():
    body = VerifyOtpRequest.parse({"email": "a@x.com", "otp": 4821})
    body.require()
    assert body.otp == "4821"


class TestSendTemplateRequest:
    def test_requires_sender(self):
        body = SendTemplateRequest.parse({"templateKey": "t", "recipients": [{"email": "a@x.com"}]})
        with pytest.raises(ValidationError, match="Sender email is required"):
            body.require()

    def test_requires_template(self):
        body = SendTemplateRequest.parse({"senderEmail": "s@x.com", "recipients": [{"email": "a"}]})
        with pytest.raises(ValidationError, match="Template key is required"):
            body.require()

    def test_requires_non_empty_recipients(self):
        body = SendTemplateRequest.parse(
            {"senderEmail": "s@x.com", "templateKey": "t", "recipients": []}
        )
        with pytest.raises(ValidationError, match="Recipients list is required"):
            body.require()

    def test_to_recipients(self):
        body = SendTemplateRequest.parse(
            {
                "senderEmail": "s@x.com",
                "templateKey": "t",
                "recipients": [{"email": "a@x.com", "username": "Ann"}, {"email": "b@x.com"}],
            }
        )
        assert body.to_recipients() == [Recipient("a@x.com", "Ann"), Recipient("b@x.com")]


class TestParseScheduledTime:
    def test_future_time_parsed(self):
        value = parse_scheduled_time("2026-06-01T13:00:00Z", now=NOW)
        assert value == NOW + timedelta(hours=1)

    def test_offset_preserved(self):
        value = parse_scheduled_time("2026-06-01T18:00:00+05:30", now=NOW)
        assert value == datetime(2026, 6, 1, 12, 30, tzinfo=UTC)

    def test_naive_is_utc(self):
        assert parse_scheduled_time("2026-06-01T12:00:01", now=NOW) > NOW

    @pytest.mark.parametrize(
        "value", ["2026-06-01T11:00:00Z", "2026-06-01T12:00:00Z", "tomorrow", "", "2026-13-01"]
    )
    def test_past_or_invalid_rejected(self, value):
        with pytest.raises(ValidationError, match="Invalid or past scheduled time."):
            parse_scheduled_time(value, now=NOW)


# -- Sheets --------------------------------------------------------------------


def test_sheet_timestamp_in_ist():
    date, time_of_day = sheet_timestamp(NOW, tz="Asia/Kolkata")
    assert date == "01-06-2026"
    assert time_of_day == "17:30:00"


async def test_append_row_calls_values_append(tmp_path: Path):
    creds_file = tmp_path / "sa.json"
    creds_file.write_text("{}")
    client = SheetsClient(credentials_file=creds_file)

    service = MagicMock()
    with (
        patch("src.forms.sheets.service_account.Credentials.from_service_account_file"),
        patch("src.forms.sheets.build", return_value=service) as build,
    ):
        await client.append_row("sheet-123", ["a", "b"])

    build.assert_called_once()
    append = service.spreadsheets.return_value.values.return_value.append
    kwargs = append.call_args.kwargs
    assert kwargs["spreadsheetId"] == "sheet-123"
    assert kwargs["body"] == {"values": [["a", "b"]]}
    append.return_value.execute.assert_called_once()


async def test_service_built_off_event_loop(tmp_path: Path):
    creds_file = tmp_path / "sa.json"
    creds_file.write_text("{}")
    client = SheetsClient(credentials_file=creds_file)
    built_in: list[threading.Thread] = []

    def _build(*args, **kwargs):
        built_in.append(threading.current_thread())
        return MagicMock()

    with (
        patch("src.forms.sheets.service_account.Credentials.from_service_account_file"),
        patch("src.forms.sheets.build", side_effect=_build),
    ):
        await client.append_row("sheet-123", ["a"])
        await client.append_row("sheet-123", ["b"])

    assert len(built_in) == 1
    assert built_in[0] is not threading.main_thread()


async def test_append_row_missing_credentials(tmp_path: Path):
    client = SheetsClient(credentials_file=tmp_path / "missing.json")
    with pytest.raises(FileNotFoundError):
        await client.append_row("sheet-123", ["a"])
