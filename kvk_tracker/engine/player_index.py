"""
Player Index — cross-snapshot identity lookup for one computation.

Built once per request from the normalized snapshots of one event, so every
later lookup is a dict access instead of a scan over rows.

Policies centralized here:
  - **Last write wins.** When an id repeats inside one snapshot, the later
    row replaces the earlier one and the id is recorded as a duplicate.
    Exports occasionally carry stale duplicate rows; this is not an error.
  - **Latest display name.** Each id's current name comes from the snapshot
    with the greatest ``(order, uploaded_at, snapshot_id)`` in which the id
    appears with a non-blank name.
  - **Latest alliance.** Same rule, applied to the alliance column.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from kvk_tracker.engine.normalizer import NormalizedSnapshot
from kvk_tracker.models.player import PlayerRecord, SnapshotDiagnostics

logger = logging.getLogger(__name__)


class PlayerIndex:
    """Per-snapshot ``player_id → PlayerRecord`` maps plus latest names.

    Construct through :meth:`build`. Instances are read-only after that.
    """

    def __init__(
        self,
        snapshots: dict[str, NormalizedSnapshot],
        records: dict[str, dict[str, PlayerRecord]],
        duplicates: dict[str, list[str]],
        latest_names: dict[str, str],
        latest_alliances: dict[str, str],
    ) -> None:
        self._snapshots = snapshots
        self._records = records
        self._duplicates = duplicates
        self._latest_names = latest_names
        self._latest_alliances = latest_alliances

    @classmethod
    def build(cls, normalized: Iterable[NormalizedSnapshot]) -> "PlayerIndex":
        """Index a set of normalized snapshots.

        Args:
            normalized: Snapshots in any order; each id must be unique.

        Returns:
            A populated ``PlayerIndex``.

        Raises:
            ValueError: If the same snapshot id is passed twice.
        """
        ordered = sorted(normalized, key=lambda s: s.sort_key)

        snapshots: dict[str, NormalizedSnapshot] = {}
        records: dict[str, dict[str, PlayerRecord]] = {}
        duplicates: dict[str, list[str]] = {}
        latest_names: dict[str, str] = {}
        latest_alliances: dict[str, str] = {}

        for snap in ordered:
            if snap.snapshot_id in snapshots:
                raise ValueError(f"Snapshot '{snap.snapshot_id}' indexed twice.")
            snapshots[snap.snapshot_id] = snap

            by_id: dict[str, PlayerRecord] = {}
            dupes: list[str] = []
            for record in snap.records:
                if record.player_id in by_id and record.player_id not in dupes:
                    dupes.append(record.player_id)
                by_id[record.player_id] = record

            records[snap.snapshot_id] = by_id
            duplicates[snap.snapshot_id] = dupes

            # Ascending walk, so later snapshots overwrite earlier names
            for player_id, record in by_id.items():
                if record.name:
                    latest_names[player_id] = record.name
                if record.alliance:
                    latest_alliances[player_id] = record.alliance

            if dupes:
                logger.debug(
                    "Snapshot %s: %d duplicate id(s), later rows kept",
                    snap.snapshot_id, len(dupes),
                )

        return cls(snapshots, records, duplicates, latest_names, latest_alliances)

    # ── Lookups ───────────────────────────────────────────────────────────────

    def record_for(self, snapshot_id: str, player_id: str) -> Optional[PlayerRecord]:
        """Return the player's record in ``snapshot_id``, or ``None`` if absent.

        Raises:
            KeyError: ``snapshot_id`` was not indexed.
        """
        return self._records[snapshot_id].get(player_id)

    def all_player_ids(self, snapshot_id: str) -> set[str]:
        """Return every player id present in ``snapshot_id``.

        Raises:
            KeyError: ``snapshot_id`` was not indexed.
        """
        return set(self._records[snapshot_id])

    def latest_display_name(self, player_id: str) -> Optional[str]:
        """Most recent non-blank name for ``player_id``, or ``None``."""
        return self._latest_names.get(player_id)

    def latest_alliance(self, player_id: str) -> Optional[str]:
        """Most recent non-blank alliance for ``player_id``, or ``None``."""
        return self._latest_alliances.get(player_id)

    def knows_player(self, player_id: str) -> bool:
        """``True`` if ``player_id`` appears in at least one indexed snapshot."""
        return any(player_id in by_id for by_id in self._records.values())

    def known_player_ids(self) -> set[str]:
        """Union of player ids across all indexed snapshots."""
        ids: set[str] = set()
        for by_id in self._records.values():
            ids.update(by_id)
        return ids

    def snapshot(self, snapshot_id: str) -> NormalizedSnapshot:
        """Return the normalized snapshot. Raises ``KeyError`` if unknown."""
        return self._snapshots[snapshot_id]

    # ── Diagnostics ───────────────────────────────────────────────────────────

    def diagnostics(self, snapshot_id: str) -> SnapshotDiagnostics:
        """Skipped-row and duplicate-id diagnostics for one snapshot."""
        return SnapshotDiagnostics(
            snapshot_id=snapshot_id,
            skipped_rows=self._snapshots[snapshot_id].skipped_rows,
            duplicate_ids=list(self._duplicates[snapshot_id]),
        )
