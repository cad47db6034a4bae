"""HTTP API for the marketing site.

Runs the template sender (immediate and scheduled), the form endpoints, and
OTP verification on one aiohttp application. The scheduler shares the same
asyncio event loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from src.config import settings
from src.errors import DeliveryError, PersistenceError, ValidationError
from src.forms.schemas import (
    ContactSubmission,
    PartnershipSubmission,
    SendOtpRequest,
    SendTemplateRequest,
    VerifyOtpRequest,
    parse_scheduled_time,
)
from src.forms.sheets import sheet_timestamp
from src.mail.smtp import send_html_email
from src.mail.templates import contact_ack_html, otp_email_html, partnership_ack_html

if TYPE_CHECKING:
    from src.forms.otp import OtpStore
    from src.forms.sheets import SheetsClient
    from src.scheduler.delivery import DeliveryExecutor
    from src.scheduler.engine import EmailScheduler

logger = logging.getLogger(__name__)

SCHEDULER_KEY = web.AppKey("scheduler", object)
EXECUTOR_KEY = web.AppKey("executor", object)
OTP_KEY = web.AppKey("otp_store", object)
SHEETS_KEY = web.AppKey("sheets", object)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# -- Helpers -------------------------------------------------------------------


def _error(message: str, status: int, error: str | None = None, **extra: Any) -> web.Response:
    body: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return web.json_response(body, status=status)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        msg = "Invalid JSON body"
        raise ValidationError(msg) from exc


@web.middleware
async def _cors(request: web.Request, handler) -> web.StreamResponse:
    """Allow any origin, and answer preflight requests directly."""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=_CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(_CORS_HEADERS)
        raise
    response.headers.update(_CORS_HEADERS)
    return response


# -- Template email ------------------------------------------------------------


def _base_payload(body: SendTemplateRequest) -> dict[str, Any]:
    """Multi-recipient payload stored with the job; merge fields are added per send."""
    return {
        "mail_template_key": body.template_key,
        "from": {"address": body.sender_email, "name": settings.mail_sender_name},
        "to": [
            {"email_address": {"address": r.email, "name": r.personal_name}}
            for r in body.to_recipients()
        ],
    }


async def _send_template(request: web.Request) -> web.Response:
    """POST /api/send-template — send now, or schedule when scheduledTime is set."""
    try:
        body = SendTemplateRequest.parse(await _read_json(request))
        body.require()
        scheduled_time = (
            parse_scheduled_time(body.scheduled_time) if body.scheduled_time else None
        )
    except ValidationError as exc:
        logger.info("send-template rejected: %s", exc)
        return _error(str(exc), 400)

    recipients = body.to_recipients()

    if scheduled_time is not None:
        scheduler: EmailScheduler = request.app[SCHEDULER_KEY]
        try:
            job = await scheduler.create(
                body.sender_email,
                body.template_key,
                recipients,
                scheduled_time,
                _base_payload(body),
            )
        except (PersistenceError, ValueError) as exc:
            logger.exception("Error scheduling email")
            return _error(f"Failed to schedule email: {exc}", 500, error=str(exc))
        return web.json_response(
            {
                "success": True,
                "message": f"Email scheduled to be sent at {scheduled_time.isoformat()}",
                "jobId": job.id,
            }
        )

    executor: DeliveryExecutor = request.app[EXECUTOR_KEY]
    report = await executor.send_to_recipients(body.sender_email, body.template_key, recipients)
    results = [r.to_dict() for r in report.results]
    if report.success_count == 0:
        return _error("Failed to send any emails", 500, results=results)
    return web.json_response(
        {
            "success": True,
            "message": (
                f"Emails sent successfully to {report.success_count} recipients. "
                f"Errors: {report.failure_count}"
            ),
            "results": results,
        }
    )


async def _list_scheduled(request: web.Request) -> web.Response:
    """GET /api/scheduled-emails — newest scheduled jobs first."""
    scheduler: EmailScheduler = request.app[SCHEDULER_KEY]
    try:
        jobs = await scheduler.list_recent(settings.scheduled_list_limit)
    except PersistenceError as exc:
        logger.exception("Error getting scheduled emails")
        return _error("Failed to get scheduled emails", 500, error=str(exc))
    return web.json_response({"success": True, "data": [job.to_dict() for job in jobs]})


async def _cancel_scheduled(request: web.Request) -> web.Response:
    """DELETE /api/scheduled-emails/{id} — cancel a pending job."""
    job_id = request.match_info["job_id"]
    scheduler: EmailScheduler = request.app[SCHEDULER_KEY]
    try:
        cancelled = await scheduler.cancel(job_id)
    except PersistenceError as exc:
        logger.exception("Error cancelling scheduled email %s", job_id)
        return _error("Failed to cancel scheduled email", 500, error=str(exc))
    if not cancelled:
        return _error("Scheduled email not found or already processed", 404)
    return web.json_response(
        {"success": True, "message": "Scheduled email cancelled successfully"}
    )


# -- OTP -----------------------------------------------------------------------


async def _send_otp(request: web.Request) -> web.Response:
    """POST /send-otp — email a fresh 4-digit code."""
    try:
        body = SendOtpRequest.parse(await _read_json(request))
        body.require()
    except ValidationError as exc:
        return _error(str(exc), 400)

    otp_store: OtpStore = request.app[OTP_KEY]
    code = otp_store.issue(body.email)
    logger.info("Sending OTP to %s", body.email)
    try:
        await send_html_email(
            body.email,
            "Your Skillang OTP Code",
            otp_email_html(body.name, code, otp_store.ttl_minutes),
            from_name="Skillang Support",
        )
    except DeliveryError as exc:
        otp_store.discard(body.email)
        return _error("Error sending OTP", 500, error=str(exc))
    return web.json_response({"success": True, "message": "OTP sent successfully!"})


async def _verify_otp(request: web.Request) -> web.Response:
    """POST /verify-otp — check and consume a code."""
    try:
        body = VerifyOtpRequest.parse(await _read_json(request))
        body.require()
    except ValidationError as exc:
        return _error(str(exc), 400)

    otp_store: OtpStore = request.app[OTP_KEY]
    if otp_store.verify(body.email, body.otp):
        logger.info("OTP verified for %s", body.email)
        return web.json_response({"success": True, "message": "OTP verified successfully!"})
    logger.info("Invalid OTP attempt for %s", body.email)
    return _error("Invalid OTP", 400)


# -- Forms ---------------------------------------------------------------------


async def _submit_contact(request: web.Request) -> web.Response:
    """POST /submit-to-google-sheets — record a lead and acknowledge it."""
    try:
        body = ContactSubmission.parse(await _read_json(request))
        body.require()
    except ValidationError as exc:
        logger.info("Contact form rejected: %s", exc)
        return _error(str(exc), 400)

    sheets: SheetsClient = request.app[SHEETS_KEY]
    date, time_of_day = sheet_timestamp()
    try:
        await sheets.append_row(
            settings.sheet_id,
            [
                body.origin,
                body.name,
                body.email,
                body.phone,
                body.pincode,
                body.looking_for,
                body.country,
                body.experience,
                date,
                time_of_day,
            ],
        )
        await send_html_email(
            body.email,
            "Thanks for contacting Skillang!",
            contact_ack_html(body.name),
            from_name="Skillang Team",
        )
    except Exception as exc:
        logger.exception("Contact form submission failed")
        return _error("Server Error: Try again later", 500, error=str(exc))
    return web.json_response({"success": True, "message": "Data submitted successfully"})


async def _submit_partnership(request: web.Request) -> web.Response:
    """POST /submit-partnership-to-google-sheets — record a partnership lead."""
    try:
        body = PartnershipSubmission.parse(await _read_json(request))
        body.require()
    except ValidationError as exc:
        return _error(str(exc), 400)

    sheets: SheetsClient = request.app[SHEETS_KEY]
    date, time_of_day = sheet_timestamp()
    try:
        await sheets.append_row(
            settings.partnership_sheet_id,
            [
                body.type,
                body.name,
                body.phone,
                body.email,
                body.company_name,
                body.designation,
                date,
                time_of_day,
            ],
        )
        await send_html_email(
            body.email,
            "Thanks for contacting Skillang!",
            partnership_ack_html(body.name),
            from_name="Skillang Team",
        )
    except Exception as exc:
        logger.exception("Partnership form submission failed")
        return _error("Server Error", 500, error=str(exc))
    return web.json_response(
        {
            "success": True,
            "message": "Partnership data submitted and acknowledgment email sent.",
        }
    )


async def _submit_inquiry(request: web.Request) -> web.Response:
    """POST /submit-inquiry — accepted and logged only."""
    try:
        payload = await _read_json(request)
    except ValidationError as exc:
        return _error(str(exc), 400)
    keys = list(payload)[:10] if isinstance(payload, dict) else []
    logger.info("Inquiry received: keys=%s", keys)
    return web.json_response({"message": "Inquiry submitted successfully!"})


# -- Misc ----------------------------------------------------------------------


async def _root(request: web.Request) -> web.Response:
    return web.Response(text="Server is running!")


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


def _create_web_app(
    scheduler: EmailScheduler,
    executor: DeliveryExecutor,
    otp_store: OtpStore,
    sheets: SheetsClient,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_cors])
    app[SCHEDULER_KEY] = scheduler
    app[EXECUTOR_KEY] = executor
    app[OTP_KEY] = otp_store
    app[SHEETS_KEY] = sheets

    app.router.add_get("/", _root)
    app.router.add_get("/health", _health)
    app.router.add_post("/api/send-template", _send_template)
    app.router.add_get("/api/scheduled-emails", _list_scheduled)
    app.router.add_delete("/api/scheduled-emails/{job_id}", _cancel_scheduled)
    app.router.add_post("/send-otp", _send_otp)
    app.router.add_post("/verify-otp", _verify_otp)
    app.router.add_post("/submit-to-google-sheets", _submit_contact)
    app.router.add_post("/submit-partnership-to-google-sheets", _submit_partnership)
    app.router.add_post("/submit-inquiry", _submit_inquiry)

    if settings.static_dir.is_dir():
        app.router.add_static("/public", settings.static_dir)
        logger.info("Serving static files from %s at /public", settings.static_dir)

    return app


class MailerServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        scheduler: EmailScheduler,
        executor: DeliveryExecutor,
        otp_store: OtpStore,
        sheets: SheetsClient,
        port: int | None = None,
    ) -> None:
        self.port = port or settings.port
        self._app = _create_web_app(scheduler, executor, otp_store, sheets)
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for requests."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, settings.host, self.port)
        await site.start()
        logger.info("Server running on http://%s:%d", settings.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Server stopped")
