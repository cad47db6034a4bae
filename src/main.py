"""Mailer entry point."""

import asyncio
import contextlib
import logging
import signal

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Recover scheduled emails, then serve HTTP until SIGINT/SIGTERM."""
    from src.forms.otp import OtpStore
    from src.forms.sheets import SheetsClient
    from src.mail.zeptomail import ZeptoMailClient
    from src.scheduler.delivery import DeliveryExecutor
    from src.scheduler.engine import EmailScheduler
    from src.scheduler.store import EmailJobStore
    from src.web.server import MailerServer

    mailer = ZeptoMailClient()
    executor = DeliveryExecutor(mailer)
    scheduler = EmailScheduler(store=EmailJobStore.get(), executor=executor)
    server = MailerServer(scheduler, executor, OtpStore(), SheetsClient.get())

    # Recovery runs before the server accepts any scheduling request.
    await scheduler.start()
    await server.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down...")
        await server.stop()
        await scheduler.stop()
        await mailer.close()


def main() -> None:
    """Start the mailer service."""
    if not settings.zeptomail_token:
        logger.warning("ZEPTOMAIL_TOKEN is empty — template sends will fail")
    logger.info("Starting mailer on port %d...", settings.port)
    asyncio.run(run())


if __name__ == "__main__":
    main()
