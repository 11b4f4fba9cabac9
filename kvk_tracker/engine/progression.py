"""
Progression Builder — one player's statistic across the honor series.

Honor snapshots are always walked in ascending ``(order, uploaded_at,
snapshot_id)``, whatever order the event lists them in.

Only observed values become points. A snapshot where the player is missing,
or where the statistic cell was blank, is skipped rather than zero-filled:
the gap itself tells the chart that the player was not in that export.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from kvk_tracker.engine.normalizer import NormalizedSnapshot
from kvk_tracker.engine.player_index import PlayerIndex
from kvk_tracker.errors import PlayerNotFoundError
from kvk_tracker.models.progression import (
    HistoryPoint,
    PlayerHistory,
    StatisticTotals,
    TotalsPoint,
)

logger = logging.getLogger(__name__)


class ProgressionBuilder:
    """Build per-player and event-wide series over honor snapshots.

    Attributes:
        index: Player Index covering every snapshot of the event (so that
            "never observed" means never observed anywhere in the event).
    """

    def __init__(self, index: PlayerIndex) -> None:
        self.index = index

    def _honor_snapshots(self, honor_snapshot_ids: Iterable[str]) -> list[NormalizedSnapshot]:
        snaps = [self.index.snapshot(sid) for sid in dict.fromkeys(honor_snapshot_ids)]
        return sorted(snaps, key=lambda s: s.sort_key)

    def build(
        self,
        event_id: str,
        honor_snapshot_ids: Iterable[str],
        player_id: str,
        statistic: str,
    ) -> PlayerHistory:
        """Chronological series of ``statistic`` for ``player_id``.

        Args:
            event_id: Event the history belongs to (for error reporting).
            honor_snapshot_ids: Honor series; every id must be indexed.
            player_id: Player to trace.
            statistic: Canonical statistic name (already validated).

        Returns:
            ``PlayerHistory``; ``points`` may be empty.

        Raises:
            PlayerNotFoundError: ``player_id`` is in no indexed snapshot.
            KeyError: An honor id is not in the index.
        """
        if not self.index.knows_player(player_id):
            raise PlayerNotFoundError(event_id, player_id)

        points: list[HistoryPoint] = []
        for snap in self._honor_snapshots(honor_snapshot_ids):
            record = self.index.record_for(snap.snapshot_id, player_id)
            if record is None:
                continue
            value = record.value(statistic)
            if value is None:
                continue
            points.append(
                HistoryPoint(
                    snapshot_id=snap.snapshot_id,
                    label=snap.label,
                    order=snap.order,
                    value=value,
                )
            )

        return PlayerHistory(
            player_id=player_id,
            name=self.index.latest_display_name(player_id) or "",
            alliance=self.index.latest_alliance(player_id) or "",
            statistic=statistic,
            points=points,
        )

    def totals(
        self,
        event_id: str,
        honor_snapshot_ids: Iterable[str],
        statistic: str,
    ) -> StatisticTotals:
        """Sum of ``statistic`` over present players, per honor snapshot.

        Every honor snapshot yields a point, even when nobody reported the
        statistic (``total = 0``, ``player_count = 0``).
        """
        points: list[TotalsPoint] = []
        for snap in self._honor_snapshots(honor_snapshot_ids):
            total = 0.0
            count = 0
            for player_id in sorted(self.index.all_player_ids(snap.snapshot_id)):
                record = self.index.record_for(snap.snapshot_id, player_id)
                value = record.value(statistic) if record is not None else None
                if value is None:
                    continue
                total += value
                count += 1
            points.append(
                TotalsPoint(
                    snapshot_id=snap.snapshot_id,
                    label=snap.label,
                    order=snap.order,
                    total=total,
                    player_count=count,
                )
            )

        logger.debug("Totals %s [%s]: %d points", event_id, statistic, len(points))
        return StatisticTotals(event_id=event_id, statistic=statistic, points=points)
