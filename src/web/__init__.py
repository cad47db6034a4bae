"""HTTP request layer."""

from src.web.server import MailerServer

__all__ = ["MailerServer"]
