"""ZeptoMail template API client using aiohttp."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from src.config import settings
from src.errors import DeliveryError

if TYPE_CHECKING:
    from src.scheduler.models import Recipient

logger = logging.getLogger(__name__)

# Longest slice of an error response body kept in logs and error messages.
_MAX_ERROR_BODY = 200


def build_template_payload(
    template_key: str,
    sender_email: str,
    recipient: Recipient,
    sender_name: str | None = None,
) -> dict[str, Any]:
    """Build a single-recipient template send request.

    The recipient's display name falls back to the local part of the address
    both in the ``to`` entry and in the ``username`` merge field.
    """
    name = recipient.personal_name
    return {
        "mail_template_key": template_key,
        "from": {
            "address": sender_email,
            "name": sender_name or settings.mail_sender_name,
        },
        "to": [{"email_address": {"address": recipient.email, "name": name}}],
        "merge_info": {"username": name},
    }


class ZeptoMailClient:
    """Sends template emails through the ZeptoMail HTTP API.

    Args:
        endpoint: Full template-send URL (default from settings).
        token: Value of the ``Authorization`` header (default from settings).
    """

    def __init__(self, endpoint: str | None = None, token: str | None = None) -> None:
        self._endpoint = endpoint or settings.zeptomail_endpoint
        self._token = token if token is not None else settings.zeptomail_token
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Authorization": self._token,
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def send_template(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST one template payload. Returns the decoded response body.

        Raises:
            DeliveryError: on a non-2xx response or a network failure.
        """
        if not self._token:
            msg = "ZeptoMail not configured — missing ZEPTOMAIL_TOKEN"
            raise DeliveryError(msg)

        recipients = [t["email_address"]["address"] for t in payload.get("to", [])]
        session = self._get_session()
        try:
            async with session.post(self._endpoint, json=payload) as resp:
                if 200 <= resp.status < 300:
                    logger.info("Template %s sent to %s", payload.get("mail_template_key"), recipients)
                    try:
                        return await resp.json(content_type=None) or {}
                    except ValueError:
                        logger.warning("ZeptoMail accepted the send but returned a non-JSON body")
                        return {}
                text = await resp.text()
                logger.error(
                    "ZeptoMail send failed: status=%d body=%s", resp.status, text[:_MAX_ERROR_BODY]
                )
                msg = f"ZeptoMail returned {resp.status}: {text[:_MAX_ERROR_BODY]}"
                raise DeliveryError(msg, status=resp.status)
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.exception("ZeptoMail send failed (network error)")
            msg = f"ZeptoMail request failed: {exc}"
            raise DeliveryError(msg) from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
