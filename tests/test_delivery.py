"""Tests for DeliveryExecutor — sequential per-recipient sends."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest

from src.errors import DeliveryError
from src.scheduler.delivery import DeliveryExecutor
from src.scheduler.models import DeliveryResult, Recipient, ScheduledEmail


@pytest.fixture
def executor(mailer: AsyncMock) -> DeliveryExecutor:
    return DeliveryExecutor(mailer, sender_name="Skillang")


def _recipients() -> list[Recipient]:
    return [Recipient("ann@example.com", "Ann"), Recipient("bob@example.com")]


async def test_one_send_per_recipient(executor: DeliveryExecutor, mailer: AsyncMock) -> None:
    report = await executor.send_to_recipients("news@skillang.com", "tmpl", _recipients())

    assert mailer.send_template.call_count == 2
    assert report.success_count == 2
    assert report.failure_count == 0
    assert report.results == [
        DeliveryResult("ann@example.com", True),
        DeliveryResult("bob@example.com", True),
    ]


async def test_payload_is_single_recipient(executor: DeliveryExecutor, mailer: AsyncMock) -> None:
    await executor.send_to_recipients("news@skillang.com", "tmpl", _recipients())

    second = mailer.send_template.call_args_list[1].args[0]
    assert second == {
        "mail_template_key": "tmpl",
        "from": {"address": "news@skillang.com", "name": "Skillang"},
        "to": [{"email_address": {"address": "bob@example.com", "name": "bob"}}],
        "merge_info": {"username": "bob"},
    }


async def test_failure_does_not_stop_remaining(
    executor: DeliveryExecutor, mailer: AsyncMock
) -> None:
    mailer.send_template.side_effect = [DeliveryError("ZeptoMail returned 422", status=422), {}]

    report = await executor.send_to_recipients("news@skillang.com", "tmpl", _recipients())

    assert mailer.send_template.call_count == 2
    assert report.results == [
        DeliveryResult("ann@example.com", False, "ZeptoMail returned 422"),
        DeliveryResult("bob@example.com", True),
    ]
    assert report.success_count == 1
    assert report.failure_count == 1


async def test_unexpected_client_error_recorded(
    executor: DeliveryExecutor, mailer: AsyncMock
) -> None:
    mailer.send_template.side_effect = RuntimeError("socket closed")

    report = await executor.send_to_recipients("news@skillang.com", "tmpl", _recipients())

    assert report.success_count == 0
    assert [r.error for r in report.results] == ["socket closed", "socket closed"]


async def test_deliver_uses_job_fields(executor: DeliveryExecutor) -> None:
    job = ScheduledEmail(
        id="j1",
        sender_email="news@skillang.com",
        template_key="tmpl",
        recipients=_recipients(),
        scheduled_time=datetime(2026, 6, 1, tzinfo=UTC),
    )
    with patch.object(executor, "send_to_recipients", AsyncMock()) as send:
        await executor.deliver(job)
    send.assert_awaited_once_with("news@skillang.com", "tmpl", job.recipients)
