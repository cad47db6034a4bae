"""Error types shared by the request layer, scheduler, and mail clients."""


class MailerError(Exception):
    """Base class for all mailer errors."""


class ValidationError(MailerError):
    """A request is missing fields or carries invalid values."""


class PersistenceError(MailerError):
    """The job store could not be reached or refused a write."""


class DeliveryError(MailerError):
    """A single outbound email could not be delivered.

    Attributes:
        status: HTTP status from the mail API, when there was a response.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RecoveryError(MailerError):
    """Pending jobs could not be loaded at startup."""
