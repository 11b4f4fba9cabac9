"""
SQLite schema DDL for snapshots and KvK events.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Creation order respects foreign keys:
  1. snapshots              (no FKs)
  2. kvk_events             (→ snapshots for start/end, nullable)
  3. event_honor_snapshots  (→ kvk_events, snapshots)
  4. event_fights           (→ kvk_events, snapshots)

Snapshot headers and rows are stored as JSON text. Rows keep their raw cell
values; normalization happens at read time, per request.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    snapshot_id     TEXT    PRIMARY KEY,
    name            TEXT    NOT NULL,
    filename        TEXT    NOT NULL DEFAULT '',
    size_bytes      INTEGER NOT NULL DEFAULT 0 CHECK (size_bytes >= 0),
    uploaded_at     TEXT    NOT NULL,
    sort_order      INTEGER NOT NULL DEFAULT 0,
    headers_json    TEXT    NOT NULL,
    rows_json       TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_snapshots_order
    ON snapshots (sort_order, uploaded_at, snapshot_id);
"""

_DDL_KVK_EVENTS = """
CREATE TABLE IF NOT EXISTS kvk_events (
    event_id            TEXT    PRIMARY KEY,
    name                TEXT    NOT NULL,
    start_snapshot_id   TEXT    REFERENCES snapshots(snapshot_id) ON DELETE SET NULL,
    end_snapshot_id     TEXT    REFERENCES snapshots(snapshot_id) ON DELETE SET NULL,
    is_public           INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL
);
"""

_DDL_EVENT_HONOR_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS event_honor_snapshots (
    event_id        TEXT    NOT NULL REFERENCES kvk_events(event_id) ON DELETE CASCADE,
    snapshot_id     TEXT    NOT NULL REFERENCES snapshots(snapshot_id) ON DELETE CASCADE,
    position        INTEGER NOT NULL,
    PRIMARY KEY (event_id, snapshot_id)
);
"""

_DDL_EVENT_FIGHTS = """
CREATE TABLE IF NOT EXISTS event_fights (
    event_id            TEXT    NOT NULL REFERENCES kvk_events(event_id) ON DELETE CASCADE,
    fight_id            TEXT    NOT NULL,
    name                TEXT    NOT NULL,
    start_snapshot_id   TEXT    REFERENCES snapshots(snapshot_id) ON DELETE SET NULL,
    end_snapshot_id     TEXT    REFERENCES snapshots(snapshot_id) ON DELETE SET NULL,
    position            INTEGER NOT NULL,
    PRIMARY KEY (event_id, fight_id)
);
"""

# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_SNAPSHOTS,
    _DDL_KVK_EVENTS,
    _DDL_EVENT_HONOR_SNAPSHOTS,
    _DDL_EVENT_FIGHTS,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "snapshots",
    "kvk_events",
    "event_honor_snapshots",
    "event_fights",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent; safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection`` (FK enforcement should be ON).
    """
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
