"""
Delta Engine — start→end change of one statistic for every player.

Player universe
---------------
The union of ids in the start and end snapshots, never the intersection:

  - present at both   → ``end - start``
  - only at end       → ``start = 0``, ``new = True``
  - only at start     → ``end = 0``,   ``left = True``

Absent statistics
-----------------
A player present in a snapshot whose statistic cell was blank or unparseable
contributes ``0`` to the arithmetic and the row is flagged
``incomplete_data = True``, so callers can tell "truly zero" from
"data missing".

Ordering
--------
Descending ``change``, then descending ``end``, then ``player_id`` ascending.
Fully deterministic: the same inputs always yield the same list.
"""

from __future__ import annotations

import logging
from typing import Optional

from kvk_tracker.engine.player_index import PlayerIndex
from kvk_tracker.models.player import (
    DeltaReport,
    DeltaSummary,
    PlayerDelta,
    PlayerRecord,
    percent_change,
)

logger = logging.getLogger(__name__)


def _read(record: Optional[PlayerRecord], statistic: str) -> tuple[float, bool]:
    """Return ``(value, absent)`` for a record that may itself be missing."""
    if record is None:
        return 0.0, False
    value = record.value(statistic)
    if value is None:
        return 0.0, True
    return value, False


def leaderboard_key(delta: PlayerDelta) -> tuple[float, float, str]:
    """Sort key for the default per-player ordering."""
    return (-delta.change, -delta.end, delta.player_id)


def summarize(players: list[PlayerDelta]) -> DeltaSummary:
    """Aggregate a per-player delta list.

    Totals are summed in list order, so ``total_change`` equals
    ``sum(p.change for p in players)`` bit for bit.
    """
    finite = [p.percent_change for p in players if not p.is_unbounded]
    average = sum(finite) / len(finite) if finite else None

    return DeltaSummary(
        player_count=len(players),
        total_start=sum(p.start for p in players),
        total_end=sum(p.end for p in players),
        total_change=sum(p.change for p in players),
        average_percent_change=average,
        unbounded_growth_count=sum(1 for p in players if p.is_unbounded),
        new_count=sum(1 for p in players if p.new),
        left_count=sum(1 for p in players if p.left),
        incomplete_count=sum(1 for p in players if p.incomplete_data),
    )


class DeltaEngine:
    """Compute per-player deltas between two indexed snapshots.

    Attributes:
        index: Player Index containing at least the start and end snapshots.
    """

    def __init__(self, index: PlayerIndex) -> None:
        self.index = index

    def player_deltas(
        self,
        start_snapshot_id: str,
        end_snapshot_id: str,
        statistic: str,
    ) -> list[PlayerDelta]:
        """Per-player deltas in leaderboard order.

        Raises:
            KeyError: Either snapshot id is not in the index.
        """
        start_ids = self.index.all_player_ids(start_snapshot_id)
        end_ids = self.index.all_player_ids(end_snapshot_id)

        deltas: list[PlayerDelta] = []
        for player_id in start_ids | end_ids:
            start_rec = self.index.record_for(start_snapshot_id, player_id)
            end_rec = self.index.record_for(end_snapshot_id, player_id)

            start, start_absent = _read(start_rec, statistic)
            end, end_absent = _read(end_rec, statistic)
            change = end - start

            later = end_rec if end_rec is not None else start_rec
            name = (later.name if later else "") or self.index.latest_display_name(player_id) or ""
            alliance = (
                (later.alliance if later else "")
                or self.index.latest_alliance(player_id)
                or ""
            )

            deltas.append(
                PlayerDelta(
                    player_id=player_id,
                    name=name,
                    alliance=alliance,
                    start=start,
                    end=end,
                    change=change,
                    percent_change=percent_change(start, change),
                    new=start_rec is None,
                    left=end_rec is None,
                    incomplete_data=start_absent or end_absent,
                )
            )

        deltas.sort(key=leaderboard_key)
        return deltas

    def compute(
        self,
        event_id: Optional[str],
        start_snapshot_id: str,
        end_snapshot_id: str,
        statistic: str,
        fight_id: Optional[str] = None,
    ) -> DeltaReport:
        """Build the full delta report: per-player rows, summary, diagnostics.

        Args:
            event_id: Event the report belongs to, or ``None`` for an ad-hoc
                comparison.
            start_snapshot_id: Indexed start snapshot.
            end_snapshot_id: Indexed end snapshot.
            statistic: Canonical statistic name (already validated).
            fight_id: Set when computing a single fight's window.

        Returns:
            ``DeltaReport``.
        """
        players = self.player_deltas(start_snapshot_id, end_snapshot_id, statistic)
        summary = summarize(players)

        diagnostics = [self.index.diagnostics(start_snapshot_id)]
        if end_snapshot_id != start_snapshot_id:
            diagnostics.append(self.index.diagnostics(end_snapshot_id))

        logger.debug(
            "Delta %s [%s] %s→%s: %d players, total_change=%s",
            event_id, statistic, start_snapshot_id, end_snapshot_id,
            summary.player_count, summary.total_change,
        )

        return DeltaReport(
            event_id=event_id,
            statistic=statistic,
            start_snapshot_id=start_snapshot_id,
            end_snapshot_id=end_snapshot_id,
            fight_id=fight_id,
            players=players,
            summary=summary,
            diagnostics=diagnostics,
        )
