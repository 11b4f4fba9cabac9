"""
KvK event descriptor — which snapshots make up one tracked event.

An event designates:
  - a *start* and an *end* snapshot, the reference pair for deltas
    (either may be unset while the event is still running);
  - an ordered list of *honor* snapshots, the series for progression charts;
  - optional named *fights*, each its own start/end pair for a sub-window
    of the event (e.g. one pass opening).

Start/end references need not appear in the honor list.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class KvkFight(BaseModel):
    """A named sub-window of an event with its own start/end snapshots.

    Attributes:
        fight_id: Identifier unique within the event.
        name: Display name, e.g. ``"Pass 4 opening"``.
        start_snapshot_id: Snapshot taken before the fight.
        end_snapshot_id: Snapshot taken after the fight.
    """

    model_config = ConfigDict(frozen=True)

    fight_id: str
    name: str
    start_snapshot_id: Optional[str] = None
    end_snapshot_id: Optional[str] = None


class EventDescriptor(BaseModel):
    """A tracked competitive period and the snapshots referenced by it.

    Attributes:
        event_id: Unique identifier.
        name: Display name.
        start_snapshot_id: Delta reference at the start, or ``None``.
        end_snapshot_id: Delta reference at the end, or ``None``.
        honor_snapshot_ids: Ordered honor series; may be empty.
        fights: Named sub-windows; may be empty.
        is_public: Visibility flag for the outer presentation layer.
        created_at: UTC creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str
    name: str
    start_snapshot_id: Optional[str] = None
    end_snapshot_id: Optional[str] = None
    honor_snapshot_ids: list[str] = []
    fights: list[KvkFight] = []
    is_public: bool = False
    created_at: datetime

    @field_validator("honor_snapshot_ids")
    @classmethod
    def validate_unique_honor_ids(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("honor_snapshot_ids must not contain duplicates.")
        return v

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def validate_unique_fight_ids(self) -> "EventDescriptor":
        fight_ids = [f.fight_id for f in self.fights]
        if len(set(fight_ids)) != len(fight_ids):
            raise ValueError("fight_id values must be unique within an event.")
        return self

    def fight(self, fight_id: str) -> Optional[KvkFight]:
        """Return the fight with ``fight_id``, or ``None``."""
        for f in self.fights:
            if f.fight_id == fight_id:
                return f
        return None

    def referenced_snapshot_ids(self) -> list[str]:
        """Every snapshot id this event references, once each, first-seen order."""
        ids: list[Optional[str]] = [self.start_snapshot_id, self.end_snapshot_id]
        ids.extend(self.honor_snapshot_ids)
        for f in self.fights:
            ids.extend([f.start_snapshot_id, f.end_snapshot_id])
        return list(dict.fromkeys(i for i in ids if i))
