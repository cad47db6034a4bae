"""Scheduled email system — models, persistence, delivery, and timers."""

from src.scheduler.delivery import DeliveryExecutor, DeliveryReport
from src.scheduler.engine import EmailScheduler
from src.scheduler.models import DeliveryResult, EmailStatus, Recipient, ScheduledEmail
from src.scheduler.store import EmailJobStore

__all__ = [
    "DeliveryExecutor",
    "DeliveryReport",
    "DeliveryResult",
    "EmailJobStore",
    "EmailScheduler",
    "EmailStatus",
    "Recipient",
    "ScheduledEmail",
]
