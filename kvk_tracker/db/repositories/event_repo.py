"""
Repository for KvK event descriptors — upsert, fetch, list and delete.

An event spans three tables: ``kvk_events`` for the descriptor itself,
``event_honor_snapshots`` for the ordered honor series and ``event_fights``
for named sub-windows. ``upsert()`` rewrites the child rows wholesale.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from kvk_tracker.db.repositories.base import BaseRepository
from kvk_tracker.models.event import EventDescriptor, KvkFight
from kvk_tracker.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)


class KvkEventRepository(BaseRepository):
    """Read/write access to ``kvk_events`` and its child tables."""

    def insert(self, event: EventDescriptor) -> str:
        """Insert a new event and return its ``event_id``.

        Raises:
            sqlite3.IntegrityError: Duplicate ``event_id``, or a snapshot
                reference that does not exist.
        """
        self.execute(
            """
            INSERT INTO kvk_events (
                event_id, name, start_snapshot_id, end_snapshot_id,
                is_public, created_at
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            _event_params(event),
        )
        self._write_children(event)
        logger.info("Created event %s (%s)", event.event_id, event.name)
        return event.event_id

    def upsert(self, event: EventDescriptor) -> str:
        """Insert or replace an event, keyed on ``event_id``.

        ``created_at`` of an existing row is preserved.
        """
        self.execute(
            """
            INSERT INTO kvk_events (
                event_id, name, start_snapshot_id, end_snapshot_id,
                is_public, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(event_id) DO UPDATE SET
                name              = excluded.name,
                start_snapshot_id = excluded.start_snapshot_id,
                end_snapshot_id   = excluded.end_snapshot_id,
                is_public         = excluded.is_public;
            """,
            _event_params(event),
        )
        self.execute("DELETE FROM event_honor_snapshots WHERE event_id = ?;", (event.event_id,))
        self.execute("DELETE FROM event_fights WHERE event_id = ?;", (event.event_id,))
        self._write_children(event)
        return event.event_id

    def get_event(self, event_id: str) -> Optional[EventDescriptor]:
        """Fetch one event with its honor series and fights, or ``None``."""
        row = self.fetchone("SELECT * FROM kvk_events WHERE event_id = ?;", (event_id,))
        return self._assemble(row) if row else None

    def list_events(self) -> list[EventDescriptor]:
        """Every stored event, oldest first."""
        rows = self.fetchall("SELECT * FROM kvk_events ORDER BY created_at, event_id;")
        return [self._assemble(r) for r in rows]

    def delete(self, event_id: str) -> bool:
        """Delete an event and its child rows. Snapshots are untouched."""
        cursor = self.execute("DELETE FROM kvk_events WHERE event_id = ?;", (event_id,))
        return cursor.rowcount > 0

    # ── Internals ─────────────────────────────────────────────────────────────

    def _write_children(self, event: EventDescriptor) -> None:
        if event.honor_snapshot_ids:
            self.executemany(
                """
                INSERT INTO event_honor_snapshots (event_id, snapshot_id, position)
                VALUES (?, ?, ?);
                """,
                [
                    (event.event_id, sid, position)
                    for position, sid in enumerate(event.honor_snapshot_ids)
                ],
            )
        if event.fights:
            self.executemany(
                """
                INSERT INTO event_fights (
                    event_id, fight_id, name, start_snapshot_id, end_snapshot_id, position
                ) VALUES (?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        event.event_id, f.fight_id, f.name,
                        f.start_snapshot_id, f.end_snapshot_id, position,
                    )
                    for position, f in enumerate(event.fights)
                ],
            )

    def _assemble(self, row: sqlite3.Row) -> EventDescriptor:
        event_id = row["event_id"]
        honor_rows = self.fetchall(
            "SELECT snapshot_id FROM event_honor_snapshots WHERE event_id = ? ORDER BY position;",
            (event_id,),
        )
        fight_rows = self.fetchall(
            "SELECT * FROM event_fights WHERE event_id = ? ORDER BY position;",
            (event_id,),
        )
        return EventDescriptor(
            event_id=event_id,
            name=row["name"],
            start_snapshot_id=row["start_snapshot_id"],
            end_snapshot_id=row["end_snapshot_id"],
            honor_snapshot_ids=[r["snapshot_id"] for r in honor_rows],
            fights=[
                KvkFight(
                    fight_id=r["fight_id"],
                    name=r["name"],
                    start_snapshot_id=r["start_snapshot_id"],
                    end_snapshot_id=r["end_snapshot_id"],
                )
                for r in fight_rows
            ],
            is_public=bool(row["is_public"]),
            created_at=parse_timestamp(row["created_at"]),
        )


# ── Private helper ────────────────────────────────────────────────────────────


def _event_params(event: EventDescriptor) -> tuple:
    return (
        event.event_id,
        event.name,
        event.start_snapshot_id,
        event.end_snapshot_id,
        int(event.is_public),
        event.created_at.isoformat(),
    )
