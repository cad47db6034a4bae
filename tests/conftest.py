"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.scheduler.store import EmailJobStore


@pytest.fixture
async def store(tmp_path: Path) -> EmailJobStore:
    """Create an EmailJobStore backed by a temp database."""
    return EmailJobStore(db_path=tmp_path / "test.db")


@pytest.fixture
def mailer() -> AsyncMock:
    """Template mail client whose sends all succeed."""
    m = AsyncMock()
    m.send_template = AsyncMock(return_value={"message": "OK"})
    return m
