"""EmailScheduler — APScheduler timers for delayed email delivery."""

from __future__ import annotations

import contextlib
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from src.config import settings
from src.errors import PersistenceError, RecoveryError
from src.scheduler.models import EmailStatus, ScheduledEmail, format_timestamp, make_job_id

if TYPE_CHECKING:
    from src.scheduler.delivery import DeliveryExecutor
    from src.scheduler.models import DeliveryResult, Recipient
    from src.scheduler.store import EmailJobStore

logger = logging.getLogger(__name__)


class EmailScheduler:
    """Arms one APScheduler job per pending email and records the outcome.

    The APScheduler job table is the only in-memory state: it maps a pending
    job id to its timer, and entries leave it when the job fires or is
    cancelled. Job data itself always comes from the store.

    Args:
        store: EmailJobStore for persistence.
        executor: DeliveryExecutor that performs the sends.
        timezone: IANA timezone string (default from settings).
    """

    def __init__(
        self,
        store: EmailJobStore,
        executor: DeliveryExecutor,
        timezone: str | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._timezone = timezone or settings.scheduler_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def armed_ids(self) -> list[str]:
        """Ids of jobs that currently have a timer."""
        return [job.id for job in self._scheduler.get_jobs()]

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Re-arm pending future jobs from the store and start the timers."""
        try:
            recovered = await self.recover()
        except RecoveryError:
            logger.exception("Starting without restored scheduled emails")
            recovered = 0
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started with %d recovered email(s) (tz=%s)",
            recovered,
            self._timezone,
        )

    async def stop(self) -> None:
        """Shut down the scheduler, dropping all armed timers."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Job management --------------------------------------------------------

    async def create(
        self,
        sender_email: str,
        template_key: str,
        recipients: list[Recipient],
        scheduled_time: datetime,
        payload: dict[str, Any] | None = None,
    ) -> ScheduledEmail:
        """Persist a new pending job, then arm its timer.

        If the store write fails the PersistenceError propagates and no
        timer is armed.
        """
        job = ScheduledEmail(
            id=make_job_id(),
            sender_email=sender_email,
            template_key=template_key,
            recipients=recipients,
            scheduled_time=scheduled_time,
            payload=payload or {},
        )
        await self._store.create(job)
        self.schedule(job)
        return job

    def schedule(self, job: ScheduledEmail) -> None:
        """Arm a timer for an already-stored pending job.

        An existing timer for the same id is replaced, never duplicated.
        """
        if self._scheduler.get_job(job.id) is not None:
            self._scheduler.remove_job(job.id)
            logger.info("Replacing timer for scheduled email %s", job.id)

        self._scheduler.add_job(
            self.fire,
            trigger=DateTrigger(run_date=job.scheduled_time, timezone=self._timezone),
            id=job.id,
            name=f"email:{job.template_key}",
            args=[job.id],
            misfire_grace_time=None,
            replace_existing=True,
        )
        logger.info(
            "Scheduled email %s for %s", job.id, format_timestamp(job.scheduled_time)
        )

    async def cancel(self, job_id: str) -> bool:
        """Cancel a pending job.

        Returns False if the job was not pending or a firing has already
        claimed it; that firing runs to completion.
        """
        cancelled = await self._store.update_status(job_id, EmailStatus.CANCELLED)
        if cancelled:
            self._disarm(job_id)
            logger.info("Cancelled scheduled email: %s", job_id)
        return cancelled

    async def list_recent(self, limit: int | None = None) -> list[ScheduledEmail]:
        """Return the most recently scheduled jobs, newest first."""
        return await self._store.list_recent(limit or settings.scheduled_list_limit)

    async def recover(self, now: datetime | None = None) -> int:
        """Re-arm every pending job scheduled after *now*.

        Pending jobs whose time passed while the process was down are left
        pending and are not delivered; they are only reported in the log.
        Returns the number of re-armed jobs.

        Raises:
            RecoveryError: if the store cannot be queried.
        """
        now = now or datetime.now(UTC)
        try:
            jobs = await self._store.list_pending_future(now)
        except PersistenceError as exc:
            msg = f"Could not load pending scheduled emails: {exc}"
            raise RecoveryError(msg) from exc

        for job in jobs:
            self.schedule(job)
        logger.info("Recovered %d pending scheduled email(s)", len(jobs))

        try:
            missed = await self._store.list_pending_past(now)
        except PersistenceError:
            logger.warning("Could not check for missed scheduled emails", exc_info=True)
        else:
            for job in missed:
                logger.warning(
                    "Scheduled email %s missed its send time %s; it will not be sent",
                    job.id,
                    format_timestamp(job.scheduled_time),
                )
        return len(jobs)

    # -- Firing ----------------------------------------------------------------

    async def fire(self, job_id: str) -> None:
        """Timer callback: deliver a job and record its terminal status."""
        results: list[DeliveryResult] | None = None
        try:
            job = await self._store.get_job(job_id)
            if job is None:
                logger.warning("Scheduled email not found: %s", job_id)
                return
            if job.status is not EmailStatus.PENDING:
                logger.info("Skipping scheduled email %s (status=%s)", job_id, job.status.value)
                return
            if not await self._store.claim(job_id):
                logger.info("Skipping scheduled email %s (already claimed or cancelled)", job_id)
                return

            logger.info("Executing scheduled email %s at %s", job_id, datetime.now(UTC).isoformat())
            report = await self._executor.deliver(job)
            results = report.results

            if report.success_count == 0:
                error = f"Failed to send any emails. All {report.failure_count} attempts failed."
                logger.error("Scheduled email %s failed: %s", job_id, error)
                applied = await self._store.update_status(
                    job_id, EmailStatus.FAILED, error=error, results=results
                )
                if not applied:
                    logger.warning("Outcome for scheduled email %s was not recorded", job_id)
                return

            status = EmailStatus.SENT if report.failure_count == 0 else EmailStatus.PARTIAL
            if not await self._store.update_status(job_id, status, results=results):
                logger.warning(
                    "Scheduled email %s delivered but status %s was not recorded",
                    job_id,
                    status.value,
                )
                return
            logger.info(
                "Scheduled email %s %s: %d sent, %d failed",
                job_id,
                status.value,
                report.success_count,
                report.failure_count,
            )
        except Exception as exc:
            logger.exception("Error sending scheduled email %s", job_id)
            await self._mark_failed(job_id, str(exc) or type(exc).__name__, results)
        finally:
            self._disarm(job_id)

    # -- Internal --------------------------------------------------------------

    async def _mark_failed(
        self, job_id: str, error: str, results: list[DeliveryResult] | None
    ) -> None:
        """Best-effort transition to ``failed`` after an unexpected error."""
        try:
            await self._store.update_status(
                job_id, EmailStatus.FAILED, error=error, results=results
            )
        except PersistenceError:
            logger.exception("Could not record failure for scheduled email %s", job_id)

    def _disarm(self, job_id: str) -> None:
        """Remove the timer for *job_id* if one is armed."""
        with contextlib.suppress(JobLookupError):
            self._scheduler.remove_job(job_id)
