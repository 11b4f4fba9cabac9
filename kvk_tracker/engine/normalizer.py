"""
Row Normalizer — project a snapshot's raw header/rows onto ``PlayerRecord``s.

Column resolution
-----------------
Each wanted column is looked up against a list of accepted aliases in three
passes, stopping at the first pass that finds anything:

  1. exact header text;
  2. case-insensitive (``"GovernorId"`` == ``"governorid"``);
  3. alphanumerics only (``"Governor ID"`` == ``"governorId"``).

The identifier column is claimed first, then the name column, then the
optional alliance column, then each statistic in alias-table order.
A header is never claimed twice.

Failure modes
-------------
  - No identifier column, or no statistic column at all → ``SchemaError``.
  - Empty identifier cell, or non-numeric when ``numeric_ids`` is on → the
    row is skipped and counted in ``skipped_rows``.
  - Blank / unparseable statistic cell → the statistic is left out of
    ``PlayerRecord.stats`` (absent, NOT zero).

Derived statistic
-----------------
``totalKills`` is filled from the tier kill columns (``t1Kills`` .. ``t5Kills``)
when the export has tier columns but no total column: the sum of the tier
values present in the row, absent when every tier cell is blank.

Output preserves input row order and does not deduplicate; duplicate ids are
the Player Index's concern.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from kvk_tracker.config import NormalizerConfig
from kvk_tracker.errors import SchemaError
from kvk_tracker.models.player import PlayerRecord
from kvk_tracker.models.snapshot import Snapshot
from kvk_tracker.taxonomy.stat_taxonomy import TIER_KILL_STATISTICS, Statistic

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^0-9a-z]")
_INTEGRAL_TEXT = re.compile(r"^(\d+)\.0+$")
# Grouping characters that never carry numeric meaning
_GROUPING = str.maketrans("", "", "\u00a0\u202f '")


@dataclass(frozen=True)
class ColumnMap:
    """Resolved header names for one snapshot."""

    id_column: str
    name_column: Optional[str]
    alliance_column: Optional[str]
    stat_columns: dict[str, str]


@dataclass(frozen=True)
class NormalizedSnapshot:
    """A snapshot's rows as ``PlayerRecord``s plus what was learned on the way.

    Attributes:
        snapshot_id: Source snapshot id.
        label:       Series label (display name without extension).
        sort_key:    ``(order, uploaded_at, snapshot_id)`` of the source.
        records:     Player records in input row order (duplicates kept).
        statistics:  Canonical statistic names recognized or derived.
        skipped_rows: Rows dropped for an empty or malformed identifier.
    """

    snapshot_id: str
    label: str
    sort_key: tuple[int, datetime, str]
    records: list[PlayerRecord]
    statistics: frozenset[str]
    skipped_rows: int = 0

    @property
    def order(self) -> int:
        return self.sort_key[0]


# ── Cell parsing ──────────────────────────────────────────────────────────────


def _decimal_mark(text: str, decimal_separator: str) -> Optional[str]:
    """Return the character acting as decimal mark in ``text``, or ``None``.

    With both ``,`` and ``.`` present the rightmost one is the decimal mark.
    With only ``decimal_separator`` present it is still read as grouping when
    it repeats (``"1,234,567"``) or when exactly three digits follow its single
    occurrence (``"12,345"``). The other character alone is always grouping.
    """
    if "," in text and "." in text:
        return "," if text.rfind(",") > text.rfind(".") else "."
    if decimal_separator not in text:
        return None
    tail = text.rpartition(decimal_separator)[2]
    if text.count(decimal_separator) > 1 or (len(tail) == 3 and tail.isdigit()):
        return None
    return decimal_separator


def parse_stat_value(cell: Any, decimal_separator: str = ",") -> Optional[float]:
    """Parse a raw statistic cell, returning ``None`` when absent.

    Numbers pass through. Strings have grouping characters removed and are
    read with ``decimal_separator`` as the preferred decimal mark, so with
    ``","`` ``"1.234.567,5"`` → ``1234567.5`` and with ``"."``
    ``"1,234,567.5"`` → ``1234567.5``. Thousands-grouped integers in the
    other convention (``"1,234,567"``, ``"12,345"`` under ``","``) read as
    integers; see ``_decimal_mark``.

    Args:
        cell: Raw cell value (str, int, float or None).
        decimal_separator: ``","`` or ``"."``.

    Returns:
        Parsed finite float, or ``None`` for blank, NaN or unparseable cells.
    """
    if cell is None or isinstance(cell, bool):
        return None
    if isinstance(cell, (int, float)):
        value = float(cell)
        return value if math.isfinite(value) else None

    text = str(cell).strip().translate(_GROUPING)
    if not text:
        return None

    mark = _decimal_mark(text, decimal_separator)
    if mark is None:
        text = text.replace(",", "").replace(".", "")
    elif mark == ",":
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_identifier(cell: Any, numeric: bool = True) -> Optional[str]:
    """Render an identifier cell as text, or ``None`` if the row must be skipped.

    Integral floats (``178913422.0``, as spreadsheet readers produce) are
    rendered without the fractional part.
    """
    if cell is None or isinstance(cell, bool):
        return None
    if isinstance(cell, float):
        if not math.isfinite(cell):
            return None
        text = str(int(cell)) if cell.is_integer() else str(cell)
    else:
        text = str(cell).strip()
        if m := _INTEGRAL_TEXT.match(text):
            text = m.group(1)

    if not text:
        return None
    if numeric and not text.isdigit():
        return None
    return text


# ── Column resolution ─────────────────────────────────────────────────────────


def _casefold(name: str) -> str:
    return name.strip().casefold()


def _alnum(name: str) -> str:
    return _NON_ALNUM.sub("", name.casefold())


_MATCHERS = (str.strip, _casefold, _alnum)


def find_column(
    headers: list[str],
    aliases: list[str],
    claimed: frozenset[str] = frozenset(),
) -> Optional[str]:
    """Return the first header matching any alias, or ``None``.

    Args:
        headers: Header row in column order.
        aliases: Accepted names, in priority order.
        claimed: Headers already assigned to another column.

    Returns:
        The matching header text exactly as it appears in ``headers``.
    """
    candidates = [h for h in headers if h and h not in claimed]
    for matcher in _MATCHERS:
        keyed: dict[str, str] = {}
        for header in candidates:
            keyed.setdefault(matcher(header), header)
        for alias in aliases:
            key = matcher(alias)
            if key and key in keyed:
                return keyed[key]
    return None


class RowNormalizer:
    """Normalize snapshots using one configured set of alias tables.

    Stateless apart from its config; one instance can serve any number of
    concurrent computations.

    Attributes:
        config: Alias tables and cell parsing rules.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None) -> None:
        self.config = config or NormalizerConfig()

    @property
    def statistics(self) -> frozenset[str]:
        """Every canonical statistic name in the alias table."""
        return frozenset(self.config.stat_aliases)

    def is_known_statistic(self, statistic: str) -> bool:
        return statistic in self.config.stat_aliases

    def resolve_columns(self, snapshot: Snapshot) -> ColumnMap:
        """Map canonical columns onto this snapshot's header names.

        Raises:
            SchemaError: No identifier column, or no statistic column.
        """
        headers = list(snapshot.headers)

        id_column = find_column(headers, self.config.id_aliases)
        if id_column is None:
            raise SchemaError(
                snapshot.snapshot_id,
                f"no identifier column (accepted: {self.config.id_aliases})",
                headers,
            )
        claimed = {id_column}

        name_column = find_column(headers, self.config.name_aliases, frozenset(claimed))
        if name_column is not None:
            claimed.add(name_column)

        alliance_column = find_column(headers, self.config.alliance_aliases, frozenset(claimed))
        if alliance_column is not None:
            claimed.add(alliance_column)

        stat_columns: dict[str, str] = {}
        for statistic, aliases in self.config.stat_aliases.items():
            column = find_column(headers, aliases, frozenset(claimed))
            if column is not None:
                stat_columns[statistic] = column
                claimed.add(column)

        if not stat_columns:
            raise SchemaError(
                snapshot.snapshot_id,
                "no recognized statistic column "
                f"(known statistics: {sorted(self.config.stat_aliases)})",
                headers,
            )

        return ColumnMap(
            id_column=id_column,
            name_column=name_column,
            alliance_column=alliance_column,
            stat_columns=stat_columns,
        )

    def _derives_total_kills(self, columns: ColumnMap) -> bool:
        return (
            Statistic.TOTAL_KILLS in self.config.stat_aliases
            and Statistic.TOTAL_KILLS not in columns.stat_columns
            and any(tier in columns.stat_columns for tier in TIER_KILL_STATISTICS)
        )

    def normalize(self, snapshot: Snapshot) -> NormalizedSnapshot:
        """Convert every usable row of ``snapshot`` into a ``PlayerRecord``.

        Args:
            snapshot: Parsed snapshot from the store.

        Returns:
            ``NormalizedSnapshot`` with records in input row order.

        Raises:
            SchemaError: See ``resolve_columns``.
        """
        columns = self.resolve_columns(snapshot)
        separator = self.config.decimal_separator
        numeric_ids = self.config.numeric_ids
        derive_total = self._derives_total_kills(columns)

        records: list[PlayerRecord] = []
        skipped = 0

        for row in snapshot.rows:
            player_id = parse_identifier(row.get(columns.id_column), numeric=numeric_ids)
            if player_id is None:
                skipped += 1
                continue

            stats: dict[str, float] = {}
            for statistic, column in columns.stat_columns.items():
                value = parse_stat_value(row.get(column), separator)
                if value is not None:
                    stats[statistic] = value

            if derive_total:
                tiers = [stats[t] for t in TIER_KILL_STATISTICS if t in stats]
                if tiers:
                    stats[Statistic.TOTAL_KILLS] = sum(tiers)

            records.append(
                PlayerRecord(
                    player_id=player_id,
                    name=_text_cell(row, columns.name_column),
                    alliance=_text_cell(row, columns.alliance_column),
                    stats=stats,
                )
            )

        statistics = set(columns.stat_columns)
        if derive_total:
            statistics.add(Statistic.TOTAL_KILLS)

        logger.debug(
            "Normalized snapshot %s: %d records, %d skipped, statistics=%s",
            snapshot.snapshot_id, len(records), skipped, sorted(statistics),
        )

        return NormalizedSnapshot(
            snapshot_id=snapshot.snapshot_id,
            label=snapshot.label,
            sort_key=snapshot.sort_key,
            records=records,
            statistics=frozenset(statistics),
            skipped_rows=skipped,
        )


def _text_cell(row: dict[str, Any], column: Optional[str]) -> str:
    if column is None:
        return ""
    raw = row.get(column)
    return str(raw).strip() if raw is not None else ""
