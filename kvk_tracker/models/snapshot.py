"""
Roster snapshot model — one uploaded player stat export.

A ``Snapshot`` is the already-parsed form of an export file: a header row and
a list of data rows keyed by header name. Cells stay raw (string or number);
interpreting them is the Row Normalizer's job.

Chronology is governed by ``order``, never by ``uploaded_at``: exports are
often backfilled out of order. ``sort_key`` gives the total order used
everywhere a sequence of snapshots is walked::

    (order, uploaded_at, snapshot_id)
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

Cell = Optional[Union[int, float, str]]

_EXPORT_EXTENSION = re.compile(r"\.(xlsx|xls|csv)$", re.IGNORECASE)


def clean_label(name: str) -> str:
    """Strip a trailing spreadsheet extension from a file or snapshot name."""
    return _EXPORT_EXTENSION.sub("", name)


class Snapshot(BaseModel):
    """A named, ordered roster export.

    Attributes:
        snapshot_id: Unique identifier assigned by the store.
        name: Display name, usually the original file name.
        filename: Originating file name (or storage name).
        size_bytes: Size of the originating file in bytes.
        uploaded_at: UTC datetime the export was uploaded.
        order: Explicit chronological position. Need not be contiguous.
        headers: Ordered column names.
        rows: Data rows, each a mapping of header name → raw cell value.
    """

    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    name: str
    filename: str = ""
    size_bytes: int = 0
    uploaded_at: datetime
    order: int = 0
    headers: list[str]
    rows: list[dict[str, Any]] = []

    @field_validator("snapshot_id")
    @classmethod
    def validate_snapshot_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("snapshot_id must be a non-empty string.")
        return v

    @field_validator("uploaded_at")
    @classmethod
    def validate_uploaded_at(cls, v: datetime) -> datetime:
        # Naive and aware datetimes cannot be compared inside sort_key
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("size_bytes")
    @classmethod
    def validate_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"size_bytes must be >= 0, got {v}.")
        return v

    @model_validator(mode="after")
    def validate_row_keys(self) -> "Snapshot":
        """Reject rows that carry keys outside the header row."""
        known = set(self.headers)
        for i, row in enumerate(self.rows):
            extra = set(row) - known
            if extra:
                raise ValueError(
                    f"Row {i} has columns not present in headers: {sorted(extra)}."
                )
        return self

    @property
    def label(self) -> str:
        """Series label: the display name without its spreadsheet extension."""
        return clean_label(self.name)

    @property
    def sort_key(self) -> tuple[int, datetime, str]:
        """Total chronological order: ``order``, then upload time, then id."""
        return (self.order, self.uploaded_at, self.snapshot_id)
