"""
Domain exceptions raised by the progression engine and its service layer.

Every error is terminal for the request that triggered it: the engine never
retries, never substitutes another snapshot, and never downgrades an error
to a log line. Row-level anomalies (skipped rows, duplicate ids) are NOT
errors; they travel as diagnostics on the result instead.

All classes derive from ``KvkTrackerError`` so an adapter layer can translate
the whole family with one ``except`` clause.
"""

from __future__ import annotations

from typing import Iterable, Optional


class KvkTrackerError(Exception):
    """Base class for all domain errors."""


class SchemaError(KvkTrackerError):
    """Raised when a snapshot cannot be normalized.

    Attributes:
        snapshot_id: The snapshot that failed.
        reason:      Human-readable description of what is missing.
        headers:     The header row that was inspected.
    """

    def __init__(self, snapshot_id: str, reason: str, headers: Iterable[str] = ()) -> None:
        self.snapshot_id = snapshot_id
        self.reason = reason
        self.headers = list(headers)
        super().__init__(
            f"Snapshot '{snapshot_id}' cannot be normalized: {reason}. "
            f"Found columns: {self.headers}"
        )


class IncompleteEventError(KvkTrackerError):
    """Raised when a delta is requested but start/end cannot be resolved.

    Attributes:
        event_id: The event being computed.
        missing:  Which references are unresolved (``"start"``, ``"end"``).
    """

    def __init__(self, event_id: str, missing: Iterable[str]) -> None:
        self.event_id = event_id
        self.missing = list(missing)
        super().__init__(
            f"Event '{event_id}' is incomplete: unresolved {' and '.join(self.missing)} "
            "snapshot reference."
        )


class UnknownStatisticError(KvkTrackerError):
    """Raised when the requested statistic is not in the alias table.

    Attributes:
        statistic: The name that was requested.
        known:     Sorted list of accepted statistic names.
    """

    def __init__(self, statistic: str, known: Iterable[str]) -> None:
        self.statistic = statistic
        self.known = sorted(known)
        super().__init__(
            f"Unknown statistic '{statistic}'. Must be one of {self.known}."
        )


class PlayerNotFoundError(KvkTrackerError):
    """Raised when a player id was never observed in any snapshot of an event."""

    def __init__(self, event_id: str, player_id: str) -> None:
        self.event_id = event_id
        self.player_id = player_id
        super().__init__(
            f"Player '{player_id}' does not appear in any snapshot of event '{event_id}'."
        )


class EventNotFoundError(KvkTrackerError, LookupError):
    """Raised when the event store has no event with the given id."""

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event '{event_id}' not found.")


class FightNotFoundError(KvkTrackerError, LookupError):
    """Raised when an event has no fight with the given id."""

    def __init__(self, event_id: str, fight_id: str) -> None:
        self.event_id = event_id
        self.fight_id = fight_id
        super().__init__(f"Fight '{fight_id}' not found in event '{event_id}'.")


class SnapshotNotFoundError(KvkTrackerError, LookupError):
    """Raised when an event references a snapshot the store does not hold."""

    def __init__(self, snapshot_id: str, event_id: Optional[str] = None) -> None:
        self.snapshot_id = snapshot_id
        self.event_id = event_id
        where = f" (referenced by event '{event_id}')" if event_id else ""
        super().__init__(f"Snapshot '{snapshot_id}' not found{where}.")
