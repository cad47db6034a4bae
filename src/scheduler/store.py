"""EmailJobStore — aiosqlite persistence for scheduled email jobs."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from src.db import get_connection
from src.errors import PersistenceError
from src.scheduler.models import (
    TIMESTAMP_COLUMNS,
    EmailStatus,
    ScheduledEmail,
    format_timestamp,
)

if TYPE_CHECKING:
    from pathlib import Path

    from src.scheduler.models import DeliveryResult

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS scheduled_emails (
    id TEXT PRIMARY KEY,
    sender_email TEXT NOT NULL,
    template_key TEXT NOT NULL,
    recipients TEXT NOT NULL,
    scheduled_time TEXT NOT NULL,
    payload TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL,
    sent_at TEXT,
    failed_at TEXT,
    cancelled_at TEXT,
    error TEXT,
    results TEXT,
    fired_at TEXT
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_scheduled_emails_time_status
    ON scheduled_emails (scheduled_time, status)
"""

_COLUMNS = (
    "id, sender_email, template_key, recipients, scheduled_time, payload, status, "
    "created_at, sent_at, failed_at, cancelled_at, error, results"
)


class EmailJobStore:
    """Persists scheduled email jobs in SQLite.

    Singleton accessed via ``EmailJobStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: EmailJobStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> EmailJobStore:
        """Return the shared EmailJobStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        try:
            db = await get_connection(local_path_override=self._db_path)
        except (aiosqlite.Error, OSError) as exc:
            msg = f"Job store unavailable: {exc}"
            raise PersistenceError(msg) from exc
        if not self._initialised:
            try:
                await db.execute(_CREATE_TABLE)
                await db.execute(_CREATE_INDEX)
                await db.commit()
            except aiosqlite.Error as exc:
                await db.close()
                msg = f"Job store unavailable: {exc}"
                raise PersistenceError(msg) from exc
            self._initialised = True
        return db

    async def _fetch_jobs(self, sql: str, params: tuple = ()) -> list[ScheduledEmail]:
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
            return [ScheduledEmail.from_row(tuple(row)) for row in rows]
        except aiosqlite.Error as exc:
            msg = f"Job store query failed: {exc}"
            raise PersistenceError(msg) from exc
        finally:
            await db.close()

    # -- CRUD ------------------------------------------------------------------

    async def create(self, job: ScheduledEmail) -> str:
        """Insert a new job with status ``pending``. Returns its id."""
        job.status = EmailStatus.PENDING
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO scheduled_emails ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                job.to_row(),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            msg = f"Could not save scheduled email: {exc}"
            raise PersistenceError(msg) from exc
        finally:
            await db.close()
        logger.info(
            "Stored scheduled email %s (%d recipient(s), at %s)",
            job.id,
            len(job.recipients),
            format_timestamp(job.scheduled_time),
        )
        return job.id

    async def get_job(self, job_id: str) -> ScheduledEmail | None:
        """Fetch a job by ID, or None if not found."""
        jobs = await self._fetch_jobs(
            f"SELECT {_COLUMNS} FROM scheduled_emails WHERE id = ?", (job_id,)
        )
        return jobs[0] if jobs else None

    async def claim(self, job_id: str) -> bool:
        """Mark a pending job as being delivered.

        Only one caller can claim a job, and a claimed job can no longer be
        cancelled. Returns True if this call made the claim.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE scheduled_emails SET fired_at = ? "
                "WHERE id = ? AND status = ? AND fired_at IS NULL",
                (datetime.now(UTC).isoformat(), job_id, EmailStatus.PENDING.value),
            )
            await db.commit()
            claimed = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            msg = f"Could not claim scheduled email {job_id}: {exc}"
            raise PersistenceError(msg) from exc
        finally:
            await db.close()

        if not claimed:
            logger.debug("Scheduled email %s already claimed or not pending", job_id)
        return claimed

    async def update_status(
        self,
        job_id: str,
        status: EmailStatus,
        *,
        error: str | None = None,
        results: list[DeliveryResult] | None = None,
    ) -> bool:
        """Move a pending job to a terminal *status*.

        The write only applies while the row is still ``pending``, so of two
        callers racing to terminalize the same job exactly one wins. A
        cancellation also requires that no firing has claimed the job.
        Returns True if this call applied the transition.
        """
        status = EmailStatus(status)
        if not status.is_terminal:
            msg = f"Cannot transition a job to {status.value!r}"
            raise ValueError(msg)

        column = TIMESTAMP_COLUMNS[status]
        claim_guard = " AND fired_at IS NULL" if status is EmailStatus.CANCELLED else ""
        now = datetime.now(UTC).isoformat()
        results_json = (
            json.dumps([r.to_dict() for r in results]) if results is not None else None
        )

        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                UPDATE scheduled_emails
                SET status = ?, {column} = ?,
                    error = COALESCE(?, error),
                    results = COALESCE(?, results)
                WHERE id = ? AND status = ?{claim_guard}
                """,
                (
                    status.value,
                    now,
                    error,
                    results_json,
                    job_id,
                    EmailStatus.PENDING.value,
                ),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            msg = f"Could not update scheduled email {job_id}: {exc}"
            raise PersistenceError(msg) from exc
        finally:
            await db.close()

        if updated:
            logger.info("Scheduled email %s -> %s", job_id, status.value)
        else:
            logger.debug("No-op transition for %s -> %s (not pending)", job_id, status.value)
        return updated

    # -- Queries ---------------------------------------------------------------

    async def list_recent(self, limit: int) -> list[ScheduledEmail]:
        """Return the most recently scheduled jobs, newest first."""
        return await self._fetch_jobs(
            f"SELECT {_COLUMNS} FROM scheduled_emails "
            "ORDER BY scheduled_time DESC LIMIT ?",
            (limit,),
        )

    async def list_pending_future(self, now: datetime) -> list[ScheduledEmail]:
        """Return pending jobs scheduled strictly after *now*."""
        return await self._fetch_jobs(
            f"SELECT {_COLUMNS} FROM scheduled_emails "
            "WHERE scheduled_time > ? AND status = ? ORDER BY scheduled_time",
            (format_timestamp(now), EmailStatus.PENDING.value),
        )

    async def list_pending_past(self, now: datetime) -> list[ScheduledEmail]:
        """Return pending jobs whose scheduled time is at or before *now*."""
        return await self._fetch_jobs(
            f"SELECT {_COLUMNS} FROM scheduled_emails "
            "WHERE scheduled_time <= ? AND status = ? ORDER BY scheduled_time",
            (format_timestamp(now), EmailStatus.PENDING.value),
        )
