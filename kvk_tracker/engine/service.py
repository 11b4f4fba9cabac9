"""
ProgressionService — the request-style operations over stored events.

Every call:
  1. loads the event descriptor and the snapshots it needs from the stores;
  2. normalizes those snapshots and builds a fresh ``PlayerIndex``;
  3. runs the Delta Engine or Progression Builder;
  4. returns an immutable result. Nothing is cached between calls.

Validation order is fixed: event lookup, then the statistic name, then the
snapshot references. Errors surface unchanged to the caller; the service
never falls back to another snapshot when a reference is missing.

Snapshots a computation actually reads (start, end, honor series) must
normalize. Other references only widen player lookup; one that cannot be
normalized is skipped with a warning and reported on the result.

Stores are duck-typed against ``SnapshotStore`` / ``EventStore``; the SQLite
repositories in ``kvk_tracker.db.repositories`` satisfy both.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from kvk_tracker.engine.delta import DeltaEngine
from kvk_tracker.engine.normalizer import NormalizedSnapshot, RowNormalizer
from kvk_tracker.engine.player_index import PlayerIndex
from kvk_tracker.engine.progression import ProgressionBuilder
from kvk_tracker.errors import (
    EventNotFoundError,
    FightNotFoundError,
    IncompleteEventError,
    SchemaError,
    SnapshotNotFoundError,
    UnknownStatisticError,
)
from kvk_tracker.models.event import EventDescriptor
from kvk_tracker.models.player import DeltaReport, PlayerMatch
from kvk_tracker.models.progression import PlayerHistory, StatisticTotals
from kvk_tracker.models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Read access to persisted snapshots."""

    def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]: ...

    def list_snapshots(self, event_id: str) -> list[Snapshot]: ...


class EventStore(Protocol):
    """Read access to persisted event descriptors."""

    def get_event(self, event_id: str) -> Optional[EventDescriptor]: ...


class ProgressionService:
    """Delta, history, totals and search operations for KvK events.

    Attributes:
        snapshots: Snapshot store collaborator (read-only use).
        events: Event store collaborator (read-only use).
        normalizer: Row Normalizer holding the alias tables.
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        events: EventStore,
        normalizer: Optional[RowNormalizer] = None,
    ) -> None:
        self.snapshots = snapshots
        self.events = events
        self.normalizer = normalizer or RowNormalizer()

    # ── Public operations ─────────────────────────────────────────────────────

    def compute_delta(self, event_id: str, statistic: str) -> DeltaReport:
        """Start→end delta for every player of the event.

        Raises:
            EventNotFoundError: Unknown ``event_id``.
            UnknownStatisticError: ``statistic`` not in the alias table.
            IncompleteEventError: Start or end reference unset/unresolvable.
            SchemaError: Start or end snapshot cannot be normalized.
        """
        event = self._get_event(event_id)
        self._require_statistic(statistic)
        report = self._delta_between(
            event, event.start_snapshot_id, event.end_snapshot_id, statistic
        )
        logger.info(
            "Delta computed | event=%s statistic=%s players=%d",
            event_id, statistic, report.summary.player_count,
        )
        return report

    def compute_fight_delta(
        self,
        event_id: str,
        fight_id: str,
        statistic: str,
    ) -> DeltaReport:
        """Start→end delta over a single fight's snapshot pair.

        Raises:
            FightNotFoundError: The event has no such fight.
            (plus everything ``compute_delta`` raises)
        """
        event = self._get_event(event_id)
        fight = event.fight(fight_id)
        if fight is None:
            raise FightNotFoundError(event_id, fight_id)
        self._require_statistic(statistic)
        return self._delta_between(
            event, fight.start_snapshot_id, fight.end_snapshot_id, statistic,
            fight_id=fight_id,
        )

    def compare_snapshots(
        self,
        start_snapshot_id: str,
        end_snapshot_id: str,
        statistic: str,
    ) -> DeltaReport:
        """Start→end delta between any two stored snapshots, no event needed.

        The report carries ``event_id = None``.

        Raises:
            UnknownStatisticError: ``statistic`` not in the alias table.
            SnapshotNotFoundError: Either snapshot is missing from the store.
            SchemaError: Either snapshot cannot be normalized.
        """
        self._require_statistic(statistic)
        start = self.snapshots.get_snapshot(start_snapshot_id)
        if start is None:
            raise SnapshotNotFoundError(start_snapshot_id)
        end = self.snapshots.get_snapshot(end_snapshot_id)
        if end is None:
            raise SnapshotNotFoundError(end_snapshot_id)

        report = self._diff(None, start, end, statistic)
        logger.info(
            "Comparison computed | start=%s end=%s statistic=%s players=%d",
            start_snapshot_id, end_snapshot_id, statistic, report.summary.player_count,
        )
        return report

    def compute_history(
        self,
        event_id: str,
        player_id: str,
        statistic: str,
    ) -> PlayerHistory:
        """A player's statistic across the event's honor snapshots.

        Non-honor references that cannot be normalized are left out of player
        lookup and listed in ``excluded_snapshot_ids``.

        Raises:
            EventNotFoundError: Unknown ``event_id``.
            UnknownStatisticError: ``statistic`` not in the alias table.
            SnapshotNotFoundError: An honor snapshot is missing from the store.
            SchemaError: An honor snapshot cannot be normalized.
            PlayerNotFoundError: ``player_id`` never appears in the event.
        """
        event = self._get_event(event_id)
        self._require_statistic(statistic)
        index, excluded = self._event_index(event)
        history = ProgressionBuilder(index).build(
            event_id, event.honor_snapshot_ids, player_id.strip(), statistic
        )
        logger.info(
            "History computed | event=%s player=%s statistic=%s points=%d",
            event_id, player_id, statistic, len(history.points),
        )
        return history.model_copy(update={"excluded_snapshot_ids": excluded})

    def compute_totals(self, event_id: str, statistic: str) -> StatisticTotals:
        """Event-wide per-snapshot totals of ``statistic`` over the honor series."""
        event = self._get_event(event_id)
        self._require_statistic(statistic)
        index, excluded = self._event_index(event)
        totals = ProgressionBuilder(index).totals(
            event_id, event.honor_snapshot_ids, statistic
        )
        return totals.model_copy(update={"excluded_snapshot_ids": excluded})

    def list_tracked_statistics(self, event_id: str) -> frozenset[str]:
        """Statistics recognized in every readable snapshot the event references.

        Snapshots that cannot be normalized are ignored. Returns an empty set
        when no referenced snapshot is readable.

        Raises:
            EventNotFoundError: Unknown ``event_id``.
        """
        event = self._get_event(event_id)
        normalized, _ = self._normalize_referenced(event, strict_honor=False)
        tracked: Optional[frozenset[str]] = None
        for snap in normalized:
            tracked = snap.statistics if tracked is None else tracked & snap.statistics
        return tracked or frozenset()

    def search_players(self, event_id: str, query: str) -> list[PlayerMatch]:
        """Find players by exact id, else by case-insensitive name substring.

        Names are matched against each player's latest display name.
        Results are sorted by name, then id.
        """
        event = self._get_event(event_id)
        needle = query.strip()
        if not needle:
            return []

        index, _ = self._event_index(event)
        if index.knows_player(needle):
            return [self._match(index, needle)]

        folded = needle.casefold()
        matches = [
            self._match(index, pid)
            for pid in index.known_player_ids()
            if folded in (index.latest_display_name(pid) or "").casefold()
        ]
        matches.sort(key=lambda m: (m.name.casefold(), m.player_id))
        return matches

    # ── Internals ─────────────────────────────────────────────────────────────

    def _get_event(self, event_id: str) -> EventDescriptor:
        event = self.events.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _require_statistic(self, statistic: str) -> None:
        if not self.normalizer.is_known_statistic(statistic):
            raise UnknownStatisticError(statistic, self.normalizer.statistics)

    @staticmethod
    def _match(index: PlayerIndex, player_id: str) -> PlayerMatch:
        return PlayerMatch(
            player_id=player_id,
            name=index.latest_display_name(player_id) or "",
            alliance=index.latest_alliance(player_id) or "",
        )

    def _delta_between(
        self,
        event: EventDescriptor,
        start_snapshot_id: Optional[str],
        end_snapshot_id: Optional[str],
        statistic: str,
        fight_id: Optional[str] = None,
    ) -> DeltaReport:
        start = self.snapshots.get_snapshot(start_snapshot_id) if start_snapshot_id else None
        end = self.snapshots.get_snapshot(end_snapshot_id) if end_snapshot_id else None

        missing = [label for label, snap in (("start", start), ("end", end)) if snap is None]
        if missing:
            raise IncompleteEventError(event.event_id, missing)

        return self._diff(event.event_id, start, end, statistic, fight_id=fight_id)

    def _diff(
        self,
        event_id: Optional[str],
        start: Snapshot,
        end: Snapshot,
        statistic: str,
        fight_id: Optional[str] = None,
    ) -> DeltaReport:
        normalized = [self.normalizer.normalize(start)]
        if end.snapshot_id != start.snapshot_id:
            normalized.append(self.normalizer.normalize(end))
        index = PlayerIndex.build(normalized)

        return DeltaEngine(index).compute(
            event_id, start.snapshot_id, end.snapshot_id, statistic,
            fight_id=fight_id,
        )

    def _load_referenced(self, event: EventDescriptor) -> list[Snapshot]:
        """Stored snapshots referenced by ``event``, chronological order.

        Honor snapshots must all resolve; other references are loaded when
        present since they only widen player lookup.
        """
        referenced = set(event.referenced_snapshot_ids())
        loaded = [
            s for s in self.snapshots.list_snapshots(event.event_id)
            if s.snapshot_id in referenced
        ]
        found = {s.snapshot_id for s in loaded}
        for snapshot_id in event.honor_snapshot_ids:
            if snapshot_id not in found:
                raise SnapshotNotFoundError(snapshot_id, event.event_id)
        return sorted(loaded, key=lambda s: s.sort_key)

    def _normalize_referenced(
        self,
        event: EventDescriptor,
        strict_honor: bool = True,
    ) -> tuple[list[NormalizedSnapshot], list[str]]:
        """Normalize the event's stored snapshots.

        A snapshot that raises ``SchemaError`` is dropped and its id returned
        in the second list, except an honor snapshot under ``strict_honor``,
        whose error propagates.
        """
        honor = set(event.honor_snapshot_ids)
        normalized: list[NormalizedSnapshot] = []
        excluded: list[str] = []
        for snapshot in self._load_referenced(event):
            try:
                normalized.append(self.normalizer.normalize(snapshot))
            except SchemaError as exc:
                if strict_honor and snapshot.snapshot_id in honor:
                    raise
                logger.warning(
                    "Snapshot %s excluded from event %s: %s",
                    snapshot.snapshot_id, event.event_id, exc.reason,
                )
                excluded.append(snapshot.snapshot_id)
        return normalized, excluded

    def _event_index(self, event: EventDescriptor) -> tuple[PlayerIndex, list[str]]:
        normalized, excluded = self._normalize_referenced(event)
        return PlayerIndex.build(normalized), excluded
