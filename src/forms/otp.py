"""OtpStore — short-lived one-time passwords for email verification."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from src.config import settings

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    code: str
    expires_at: float


class OtpStore:
    """In-memory map of email address -> pending OTP.

    Entries are created empty at process start, replaced when a new code is
    issued for the same address, and removed when verified or found expired.
    Nothing is persisted.

    Args:
        ttl_seconds: Lifetime of an issued code (default from settings).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.otp_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    @property
    def ttl_minutes(self) -> int:
        return max(1, self._ttl // 60)

    def __len__(self) -> int:
        return len(self._entries)

    def issue(self, email: str) -> str:
        """Generate and remember a 4-digit code for *email*."""
        code = str(1000 + secrets.randbelow(9000))
        self._entries[email] = _Entry(code=code, expires_at=self._clock() + self._ttl)
        return code

    def discard(self, email: str) -> None:
        self._entries.pop(email, None)

    def verify(self, email: str, code: str) -> bool:
        """Check *code* for *email*; a matching code is consumed."""
        entry = self._entries.get(email)
        if entry is None:
            return False
        if self._clock() >= entry.expires_at:
            del self._entries[email]
            logger.info("Expired OTP discarded for %s", email)
            return False
        if not secrets.compare_digest(entry.code, str(code).strip()):
            return False
        del self._entries[email]
        return True
