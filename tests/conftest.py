"""
Shared pytest fixtures for the KvK tracker test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``make_snapshot``: Factory for ``Snapshot`` objects from row dicts.
  - ``make_event``: Factory for ``EventDescriptor`` objects.
  - ``store``: Snapshot + event repositories on ``in_memory_db`` and a
    ``ProgressionService`` wired to them.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generator, Optional

import pytest

from kvk_tracker.db.repositories.event_repo import KvkEventRepository
from kvk_tracker.db.repositories.snapshot_repo import SnapshotRepository
from kvk_tracker.db.schema import apply_schema
from kvk_tracker.engine.service import ProgressionService
from kvk_tracker.models.event import EventDescriptor, KvkFight
from kvk_tracker.models.snapshot import Snapshot

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
DEFAULT_HEADERS = ["id", "name", "honorPoint", "power", "killPoints"]


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Domain object factories ───────────────────────────────────────────────────

def build_snapshot(
    snapshot_id: str,
    rows: list[dict[str, Any]],
    order: int = 0,
    headers: Optional[list[str]] = None,
    name: Optional[str] = None,
    uploaded_at: Optional[datetime] = None,
) -> Snapshot:
    """Snapshot whose upload time follows ``order`` unless given explicitly."""
    return Snapshot(
        snapshot_id=snapshot_id,
        name=name or f"{snapshot_id}.xlsx",
        filename=f"{snapshot_id}.xlsx",
        uploaded_at=uploaded_at or BASE_TIME + timedelta(hours=order),
        order=order,
        headers=headers or list(DEFAULT_HEADERS),
        rows=rows,
    )


def build_event(
    event_id: str = "kvk1",
    start: Optional[str] = None,
    end: Optional[str] = None,
    honor: Optional[list[str]] = None,
    fights: Optional[list[KvkFight]] = None,
) -> EventDescriptor:
    return EventDescriptor(
        event_id=event_id,
        name=f"Event {event_id}",
        start_snapshot_id=start,
        end_snapshot_id=end,
        honor_snapshot_ids=honor or [],
        fights=fights or [],
        created_at=BASE_TIME,
    )


@pytest.fixture
def make_snapshot():
    return build_snapshot


@pytest.fixture
def make_event():
    return build_event


@dataclass
class Store:
    snapshots: SnapshotRepository
    events: KvkEventRepository
    service: ProgressionService

    def add(self, *snapshots: Snapshot) -> None:
        for snapshot in snapshots:
            self.snapshots.insert(snapshot)


@pytest.fixture
def store(in_memory_db) -> Store:
    """SQLite-backed stores plus a service using the default alias tables."""
    snapshots = SnapshotRepository(in_memory_db)
    events = KvkEventRepository(in_memory_db)
    return Store(
        snapshots=snapshots,
        events=events,
        service=ProgressionService(snapshots, events),
    )


@pytest.fixture
def sample_snapshots() -> list[Snapshot]:
    """Three honor exports of a small kingdom, German number formatting."""
    return [
        build_snapshot("s1", [
            {"id": "101", "name": "Aldric", "honorPoint": "1.000", "power": "50.000.000", "killPoints": "10"},
            {"id": "102", "name": "Brenna", "honorPoint": "500", "power": "30.000.000", "killPoints": "0"},
        ], order=0),
        build_snapshot("s2", [
            {"id": "101", "name": "Aldric", "honorPoint": "1.500", "power": "51.000.000", "killPoints": "20"},
            {"id": "102", "name": "Brenna", "honorPoint": "500", "power": "29.500.000", "killPoints": "5"},
            {"id": "103", "name": "Corvin", "honorPoint": "200", "power": "10.000.000", "killPoints": "0"},
        ], order=1),
        build_snapshot("s3", [
            {"id": "101", "name": "Aldric the Bold", "honorPoint": "2.250,5", "power": "52.000.000", "killPoints": "35"},
            {"id": "103", "name": "Corvin", "honorPoint": "900", "power": "11.000.000", "killPoints": "4"},
        ], order=2),
    ]


@pytest.fixture
def populated_store(store, sample_snapshots) -> Store:
    """``store`` holding ``sample_snapshots`` and event ``kvk1`` over them."""
    store.add(*sample_snapshots)
    store.events.insert(
        build_event(
            "kvk1",
            start="s1",
            end="s3",
            honor=["s1", "s2", "s3"],
            fights=[KvkFight(fight_id="f1", name="Pass 4", start_snapshot_id="s1", end_snapshot_id="s2")],
        )
    )
    return store
