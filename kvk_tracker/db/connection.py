"""
SQLite connection management.

Provides a context manager ``get_connection()`` that:
  - Enables foreign key enforcement (OFF by default in SQLite).
  - Enables WAL journal mode so the CLI can read while an import writes.
  - Sets a busy timeout to handle lock contention gracefully.
  - Uses ``sqlite3.Row`` factory so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

Usage::

    from kvk_tracker.db.connection import get_connection

    with get_connection("data/db/kvk_tracker.db") as conn:
        SnapshotRepository(conn).insert(snapshot)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file and its parent directories are created on first use.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: If ``True``, enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait on a locked database before
            raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    logger.debug("Opened SQLite connection: %s", db_path)

    try:
        # Pragmas must precede any DML/DDL
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()
