"""
Export helpers for spreadsheet analysis.

All functions write to disk and return the written ``Path``. CSV exports are
flat (no nested dicts) so they open directly in Excel or LibreOffice.

Unbounded percent changes are exported as an empty ``percent_change`` plus
``unbounded_growth = True``: neither CSV readers nor strict JSON parsers
agree on how to spell infinity.
"""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path

from kvk_tracker.models.player import DeltaReport
from kvk_tracker.models.progression import PlayerHistory, StatisticTotals

DELTA_FIELDNAMES = [
    "rank", "player_id", "name", "alliance", "start", "end", "change",
    "percent_change", "unbounded_growth", "new", "left", "incomplete_data",
]


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of row dicts.
        path:       Destination file path (parent dirs created if missing).
        fieldnames: Column order.  If None, uses the keys of the first record.

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records and fieldnames is None:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` to a pretty-printed, strictly valid JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(data, indent=2, default=str, allow_nan=False, ensure_ascii=False),
        encoding="utf-8",
    )
    return path


def flatten_delta_report(report: DeltaReport) -> list[dict]:
    """One flat row per player, in leaderboard order."""
    rows: list[dict] = []
    for rank, p in enumerate(report.players, start=1):
        unbounded = math.isinf(p.percent_change)
        rows.append(
            {
                "rank":             rank,
                "player_id":        p.player_id,
                "name":             p.name,
                "alliance":         p.alliance,
                "start":            p.start,
                "end":              p.end,
                "change":           p.change,
                "percent_change":   None if unbounded else round(p.percent_change, 4),
                "unbounded_growth": unbounded,
                "new":              p.new,
                "left":             p.left,
                "incomplete_data":  p.incomplete_data,
            }
        )
    return rows


def delta_report_to_dict(report: DeltaReport) -> dict:
    """JSON-ready dict: metadata, summary, diagnostics and flattened players."""
    return {
        "event_id":          report.event_id,
        "statistic":         report.statistic,
        "fight_id":          report.fight_id,
        "start_snapshot_id": report.start_snapshot_id,
        "end_snapshot_id":   report.end_snapshot_id,
        "summary":           report.summary.model_dump(),
        "diagnostics":       [d.model_dump() for d in report.diagnostics],
        "players":           flatten_delta_report(report),
    }


def export_delta_report(report: DeltaReport, path: Path) -> Path:
    """Export by file suffix: ``.json`` → full document, anything else → CSV."""
    if path.suffix.lower() == ".json":
        return export_to_json(delta_report_to_dict(report), path)
    return export_to_csv(flatten_delta_report(report), path, fieldnames=DELTA_FIELDNAMES)


def flatten_history(history: PlayerHistory) -> list[dict]:
    return [
        {
            "player_id":   history.player_id,
            "alliance":    history.alliance,
            "statistic":   history.statistic,
            "snapshot_id": p.snapshot_id,
            "label":       p.label,
            "value":       p.value,
        }
        for p in history.points
    ]


def flatten_totals(totals: StatisticTotals) -> list[dict]:
    return [
        {
            "event_id":     totals.event_id,
            "statistic":    totals.statistic,
            "snapshot_id":  p.snapshot_id,
            "label":        p.label,
            "total":        p.total,
            "player_count": p.player_count,
        }
        for p in totals.points
    ]
