"""
CSV import parser for roster exports.

Exports come straight out of spreadsheet tools, so the parser accepts:
  - comma, semicolon or tab delimiters (sniffed from the first lines);
  - a UTF-8 byte-order mark;
  - trailing fully-blank lines, which are dropped;
  - ragged rows: missing trailing cells become ``None``, surplus cells are
    dropped with a warning.

Cells are kept as raw strings. Column recognition and number parsing are
done later by the Row Normalizer, so a file with unexpected headers still
imports and only fails when a computation needs it.
"""

from __future__ import annotations

import csv
import logging
import uuid
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from kvk_tracker.models.snapshot import Snapshot
from kvk_tracker.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

_DELIMITERS = ",;\t"
_SNIFF_BYTES = 8192


def new_snapshot_id() -> str:
    """Return a fresh random snapshot id."""
    return uuid.uuid4().hex[:12]


def parse_roster_csv(
    path: Path,
    snapshot_id: Optional[str] = None,
    name: Optional[str] = None,
    order: int = 0,
    uploaded_at: Optional[datetime] = None,
) -> Snapshot:
    """Parse a roster export file into a :class:`Snapshot`.

    Args:
        path: CSV file to read (must exist).
        snapshot_id: Id to assign; a random one is generated when omitted.
        name: Display name; defaults to the file name.
        order: Chronological position of the snapshot.
        uploaded_at: Upload time; defaults to now (UTC).

    Returns:
        Validated ``Snapshot`` with raw string cells.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: Empty file, blank or duplicate header names.
    """
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    with open(path, encoding="utf-8-sig", newline="") as f:
        sample = f.read(_SNIFF_BYTES)
        f.seek(0)
        reader = csv.reader(f, dialect=_sniff_dialect(sample))
        table = [row for row in reader if any(cell.strip() for cell in row)]

    if not table:
        raise ValueError(f"Roster file is empty or has no header row: {path}")

    headers = [h.strip() for h in table[0]]
    _check_headers(headers, path)

    rows: list[dict[str, Any]] = []
    truncated = 0
    for cells in table[1:]:
        if len(cells) > len(headers):
            truncated += 1
        row: dict[str, Any] = {h: None for h in headers}
        row.update(zip(headers, cells))
        rows.append(row)

    if truncated:
        logger.warning(
            "%s: %d row(s) had more cells than headers; surplus cells dropped",
            path.name, truncated,
        )

    try:
        snapshot = Snapshot(
            snapshot_id=snapshot_id or new_snapshot_id(),
            name=name or path.name,
            filename=path.name,
            size_bytes=path.stat().st_size,
            uploaded_at=uploaded_at or utcnow(),
            order=order,
            headers=headers,
            rows=rows,
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid roster file {path.name}: {exc}") from exc

    logger.info("Parsed %d rows, %d columns from %s", len(rows), len(headers), path.name)
    return snapshot


# ── Private helpers ────────────────────────────────────────────────────────────


def _sniff_dialect(sample: str) -> type[csv.Dialect]:
    """Guess the delimiter, falling back to plain comma-separated."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS)
    except csv.Error:
        return csv.excel


def _check_headers(headers: list[str], path: Path) -> None:
    if any(not h for h in headers):
        raise ValueError(f"Header row of {path.name} contains a blank column name: {headers}")
    dupes = sorted(h for h, n in Counter(headers).items() if n > 1)
    if dupes:
        raise ValueError(f"Header row of {path.name} repeats column names: {dupes}")
