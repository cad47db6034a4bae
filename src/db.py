"""Async SQLite connection helper.

Every store opens a short-lived ``aiosqlite`` connection per operation. The
database lives at ``settings.database_path`` unless a store passes an explicit
path (test isolation).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path


async def get_connection(local_path_override: Path | None = None) -> aiosqlite.Connection:
    """Open a connection with a busy timeout and WAL journaling.

    If *local_path_override* is given it takes priority over
    ``settings.database_path``. Parent directories are created as needed.
    """
    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA busy_timeout=5000")
    await db.execute("PRAGMA journal_mode=WAL")
    return db
