"""
Per-player records and start→end delta results.

``PlayerRecord`` is derived, never persisted: one player's normalized values
in one snapshot. A statistic missing from ``stats`` is *absent* (blank or
unparseable cell), which is not the same thing as a stored ``0.0``.

``PlayerDelta`` / ``DeltaSummary`` / ``DeltaReport`` are the Delta Engine's
output. Percent change uses a signed infinity sentinel when the start value
is zero and the value moved::

    start == 0 and change == 0   →  0.0
    start == 0 and change != 0   →  PERCENT_UNBOUNDED (±inf)
    otherwise                    →  change / |start| × 100
"""

from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict

PERCENT_UNBOUNDED = math.inf


def percent_change(start: float, change: float) -> float:
    """Percent change relative to ``|start|``, with the zero-start sentinel."""
    if start == 0:
        if change == 0:
            return 0.0
        return math.copysign(PERCENT_UNBOUNDED, change)
    return change / abs(start) * 100.0


class PlayerRecord(BaseModel):
    """One player's normalized values within one snapshot.

    Attributes:
        player_id: Stable identifier (game id rendered as text).
        name: Display name as exported in this snapshot; may be empty.
        alliance: Alliance tag or name as exported; empty when the export has
            no alliance column.
        stats: Canonical statistic name → value. Missing key = absent.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    name: str = ""
    alliance: str = ""
    stats: dict[str, float] = {}

    def value(self, statistic: str) -> Optional[float]:
        """Return the statistic value, or ``None`` when absent."""
        return self.stats.get(statistic)


class SnapshotDiagnostics(BaseModel):
    """Non-fatal row anomalies found while reading one snapshot.

    Attributes:
        snapshot_id: The snapshot inspected.
        skipped_rows: Rows dropped for an empty or malformed identifier.
        duplicate_ids: Ids seen more than once (the later row won).
    """

    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    skipped_rows: int = 0
    duplicate_ids: list[str] = []

    @property
    def is_clean(self) -> bool:
        return self.skipped_rows == 0 and not self.duplicate_ids


class PlayerDelta(BaseModel):
    """Start→end change of one statistic for one player.

    Attributes:
        player_id: Player identifier.
        name: Display name from the later snapshot the player appears in.
        alliance: Alliance from the same snapshot as ``name``.
        start: Value at the start snapshot (0 when new or absent).
        end: Value at the end snapshot (0 when left or absent).
        change: ``end - start``.
        percent_change: See module docstring; may be ``±inf``.
        new: Player only present in the end snapshot.
        left: Player only present in the start snapshot.
        incomplete_data: The statistic was absent in a snapshot where the
            player was present, so a 0 was substituted.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    name: str
    alliance: str = ""
    start: float
    end: float
    change: float
    percent_change: float
    new: bool = False
    left: bool = False
    incomplete_data: bool = False

    @property
    def is_unbounded(self) -> bool:
        return math.isinf(self.percent_change)


class DeltaSummary(BaseModel):
    """Aggregates over a full per-player delta list.

    ``average_percent_change`` is the mean over finite percent changes only;
    unbounded entries are counted in ``unbounded_growth_count`` instead.
    It is ``None`` when no finite entry exists.
    """

    model_config = ConfigDict(frozen=True)

    player_count: int
    total_start: float
    total_end: float
    total_change: float
    average_percent_change: Optional[float]
    unbounded_growth_count: int
    new_count: int = 0
    left_count: int = 0
    incomplete_count: int = 0


class DeltaReport(BaseModel):
    """Full result of one delta computation.

    Attributes:
        event_id: Event the delta was computed for; ``None`` for an ad-hoc
            comparison of two snapshots.
        statistic: Canonical statistic name.
        start_snapshot_id: Start reference used.
        end_snapshot_id: End reference used.
        fight_id: Set when the delta covers a single fight.
        players: Per-player deltas in leaderboard order.
        summary: Aggregates over ``players``.
        diagnostics: Row anomalies for the start and end snapshots.
    """

    model_config = ConfigDict(frozen=True)

    event_id: Optional[str]
    statistic: str
    start_snapshot_id: str
    end_snapshot_id: str
    fight_id: Optional[str] = None
    players: list[PlayerDelta]
    summary: DeltaSummary
    diagnostics: list[SnapshotDiagnostics] = []

    def for_player(self, player_id: str) -> Optional[PlayerDelta]:
        """Return the delta row for ``player_id``, or ``None``."""
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None


class PlayerMatch(BaseModel):
    """A player search hit: identifier plus most recent display name and alliance."""

    model_config = ConfigDict(frozen=True)

    player_id: str
    name: str
    alliance: str = ""
