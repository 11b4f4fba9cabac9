"""
Time-series results over an event's honor snapshots.

``PlayerHistory`` holds only *observed* points: a snapshot where the player
is missing (or the statistic is blank) contributes no point at all, so gaps
in the series stay visible to the chart layer.

``StatisticTotals`` is the event-wide series: the sum over every player
present in each honor snapshot.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HistoryPoint(BaseModel):
    """One observed value in a player's series."""

    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    label: str
    order: int
    value: float


class PlayerHistory(BaseModel):
    """A player's statistic across honor snapshots, ascending snapshot order.

    Attributes:
        player_id: Player identifier.
        name: Most recent known display name across the whole event.
        alliance: Most recent known alliance across the whole event.
        statistic: Canonical statistic name.
        points: Observed values; empty when never observed in the honor series.
        excluded_snapshot_ids: Non-honor snapshots of the event left out of
            player lookup because they could not be normalized.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    name: str
    alliance: str = ""
    statistic: str
    points: list[HistoryPoint] = []
    excluded_snapshot_ids: list[str] = []

    @property
    def labels(self) -> list[str]:
        return [p.label for p in self.points]

    @property
    def values(self) -> list[float]:
        return [p.value for p in self.points]


class TotalsPoint(BaseModel):
    """Sum of a statistic over all players present in one snapshot."""

    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    label: str
    order: int
    total: float
    player_count: int


class StatisticTotals(BaseModel):
    """Event-wide totals series for one statistic.

    ``excluded_snapshot_ids`` has the same meaning as on ``PlayerHistory``.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    statistic: str
    points: list[TotalsPoint] = []
    excluded_snapshot_ids: list[str] = []
