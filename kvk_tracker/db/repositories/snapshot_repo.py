"""
Repository for roster snapshots — insert, fetch, reorder and delete.

Satisfies the ``SnapshotStore`` protocol consumed by ``ProgressionService``.
Every listing is returned in chronological ``(order, uploaded_at,
snapshot_id)`` order.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import timezone
from typing import Optional

from kvk_tracker.db.repositories.base import BaseRepository
from kvk_tracker.models.snapshot import Snapshot
from kvk_tracker.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

_ORDER_BY = "ORDER BY s.sort_order, s.uploaded_at, s.snapshot_id"


class SnapshotRepository(BaseRepository):
    """Read/write access to the ``snapshots`` table."""

    def insert(self, snapshot: Snapshot) -> str:
        """Persist a new snapshot and return its ``snapshot_id``.

        Raises:
            sqlite3.IntegrityError: ``snapshot_id`` already exists.
        """
        self.execute(
            """
            INSERT INTO snapshots (
                snapshot_id, name, filename, size_bytes, uploaded_at,
                sort_order, headers_json, rows_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                snapshot.snapshot_id,
                snapshot.name,
                snapshot.filename,
                snapshot.size_bytes,
                snapshot.uploaded_at.astimezone(timezone.utc).isoformat(),
                snapshot.order,
                json.dumps(snapshot.headers),
                json.dumps(snapshot.rows),
            ),
        )
        logger.info(
            "Stored snapshot %s (%s): %d rows, order=%d",
            snapshot.snapshot_id, snapshot.name, len(snapshot.rows), snapshot.order,
        )
        return snapshot.snapshot_id

    def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        """Fetch one snapshot, or ``None`` if unknown."""
        row = self.fetchone("SELECT * FROM snapshots WHERE snapshot_id = ?;", (snapshot_id,))
        return _row_to_snapshot(row) if row else None

    def list_snapshots(self, event_id: str) -> list[Snapshot]:
        """Every stored snapshot referenced by ``event_id``, chronological.

        A reference counts whether it is the event's start or end, an honor
        snapshot, or a fight boundary. Unknown events yield ``[]``.
        """
        rows = self.fetchall(
            f"""
            SELECT s.* FROM snapshots s
            WHERE s.snapshot_id IN (
                SELECT start_snapshot_id FROM kvk_events WHERE event_id = :event_id
                UNION
                SELECT end_snapshot_id FROM kvk_events WHERE event_id = :event_id
                UNION
                SELECT snapshot_id FROM event_honor_snapshots WHERE event_id = :event_id
                UNION
                SELECT start_snapshot_id FROM event_fights WHERE event_id = :event_id
                UNION
                SELECT end_snapshot_id FROM event_fights WHERE event_id = :event_id
            )
            {_ORDER_BY};
            """,
            {"event_id": event_id},
        )
        return [_row_to_snapshot(r) for r in rows]

    def list_all(self) -> list[Snapshot]:
        """Every stored snapshot, chronological."""
        rows = self.fetchall(f"SELECT s.* FROM snapshots s {_ORDER_BY};")
        return [_row_to_snapshot(r) for r in rows]

    def reorder(self, snapshot_ids: list[str]) -> None:
        """Assign ``order = position`` to each id in ``snapshot_ids``.

        Snapshots not named keep their current order.

        Raises:
            KeyError: An id in ``snapshot_ids`` is not stored.
            ValueError: ``snapshot_ids`` contains duplicates.
        """
        if len(set(snapshot_ids)) != len(snapshot_ids):
            raise ValueError("reorder() received duplicate snapshot ids.")
        for snapshot_id in snapshot_ids:
            if not self.exists(snapshot_id):
                raise KeyError(snapshot_id)

        self.executemany(
            "UPDATE snapshots SET sort_order = ? WHERE snapshot_id = ?;",
            [(position, sid) for position, sid in enumerate(snapshot_ids)],
        )
        logger.info("Reordered %d snapshots", len(snapshot_ids))

    def delete(self, snapshot_id: str) -> bool:
        """Delete a snapshot. Returns ``True`` if a row was removed.

        Events referencing it as start/end lose that reference; it drops out
        of every honor list.
        """
        cursor = self.execute("DELETE FROM snapshots WHERE snapshot_id = ?;", (snapshot_id,))
        return cursor.rowcount > 0

    def exists(self, snapshot_id: str) -> bool:
        row = self.fetchone("SELECT 1 FROM snapshots WHERE snapshot_id = ?;", (snapshot_id,))
        return row is not None

    def count(self) -> int:
        """Return total number of stored snapshots."""
        row = self.fetchone("SELECT COUNT(*) AS n FROM snapshots;")
        assert row is not None
        return int(row["n"])


# ── Private helper ────────────────────────────────────────────────────────────


def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
    """Convert a ``sqlite3.Row`` from ``snapshots`` to a ``Snapshot``."""
    return Snapshot(
        snapshot_id=row["snapshot_id"],
        name=row["name"],
        filename=row["filename"],
        size_bytes=row["size_bytes"],
        uploaded_at=parse_timestamp(row["uploaded_at"]),
        order=row["sort_order"],
        headers=json.loads(row["headers_json"]),
        rows=json.loads(row["rows_json"]),
    )
