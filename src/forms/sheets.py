"""Google Sheets row appends for site form submissions."""

from __future__ import annotations

import asyncio
import logging
import zoneinfo
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from google.oauth2 import service_account
from googleapiclient.discovery import build

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def sheet_timestamp(now: datetime | None = None, tz: str | None = None) -> tuple[str, str]:
    """Return ``(dd-mm-yyyy, HH:MM:SS)`` for *now* in the sheet's timezone."""
    now = now or datetime.now(UTC)
    local = now.astimezone(zoneinfo.ZoneInfo(tz or settings.sheet_timezone))
    return local.strftime("%d-%m-%Y"), local.strftime("%H:%M:%S")


class SheetsClient:
    """Appends rows to spreadsheets with a service-account credential.

    Singleton accessed via ``SheetsClient.get()``.
    """

    _instance: SheetsClient | None = None

    def __init__(self, credentials_file: Path | None = None) -> None:
        self._credentials_file = credentials_file or settings.google_service_account_file
        self._service = None

    @classmethod
    def get(cls) -> SheetsClient:
        """Return the shared SheetsClient instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    def _sheets(self):  # noqa: ANN202
        """Build (once) the Sheets API service."""
        if self._service is None:
            if not self._credentials_file.exists():
                msg = f"Google service account file not found at {self._credentials_file}"
                raise FileNotFoundError(msg)
            creds = service_account.Credentials.from_service_account_file(
                str(self._credentials_file), scopes=SCOPES
            )
            self._service = build("sheets", "v4", credentials=creds, cache_discovery=False)
            logger.info("Google Sheets service initialised")
        return self._service

    async def append_row(
        self, spreadsheet_id: str, values: list[str], sheet_range: str = "A1"
    ) -> None:
        """Append one row after the last populated row of *sheet_range*."""
        # Credential loading and discovery are blocking, so they run off-loop too.
        await asyncio.to_thread(
            lambda: self._sheets()
            .spreadsheets()
            .values()
            .append(
                spreadsheetId=spreadsheet_id,
                range=sheet_range,
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            )
            .execute()
        )
        logger.info("Appended row to spreadsheet %s", spreadsheet_id)
