"""
Base repository providing shared SQLite execution helpers.

Repositories receive a ``sqlite3.Connection`` opened and managed by the
caller (typically via ``get_connection()``), speak Pydantic models rather
than raw dicts, and keep all SQL explicit in their methods.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement with ``?`` or ``:name`` placeholders."""
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), params)
        return self.conn.execute(sql, params)

    def executemany(self, sql: str, params_list: list[Params]) -> sqlite3.Cursor:
        """Execute ``sql`` once per element of ``params_list``."""
        logger.debug("SQL (many): %s | count: %d", " ".join(sql.split()), len(params_list))
        return self.conn.executemany(sql, params_list)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        """Return the first row of a query, or ``None``."""
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        """Return every row of a query."""
        return self.execute(sql, params).fetchall()
