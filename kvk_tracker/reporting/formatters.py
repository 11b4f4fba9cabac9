"""
ASCII terminal formatters for CLI reporting commands.

All formatters accept result models and return plain multi-line strings
suitable for ``typer.echo()``. No third-party dependencies.

Percent changes
---------------
An unbounded percent change (start value 0, non-zero change) renders as
``+inf%`` / ``-inf%`` rather than a huge number, so "new growth from
nothing" reads differently from "grew a lot".
"""

from __future__ import annotations

import math
from typing import Optional

from kvk_tracker.models.event import EventDescriptor
from kvk_tracker.models.player import DeltaReport, PlayerMatch
from kvk_tracker.models.progression import PlayerHistory, StatisticTotals
from kvk_tracker.models.snapshot import Snapshot
from kvk_tracker.utils.time_utils import format_timestamp


def format_number(value: float) -> str:
    """Render a statistic value with thousands separators, no trailing ``.0``."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_percent(value: Optional[float]) -> str:
    """Render a percent change, including the unbounded sentinel."""
    if value is None:
        return "n/a"
    if math.isinf(value):
        return "+inf%" if value > 0 else "-inf%"
    return f"{value:+.1f}%"


def _flags(new: bool, left: bool, incomplete: bool) -> str:
    tags = []
    if new:
        tags.append("new")
    if left:
        tags.append("left")
    if incomplete:
        tags.append("incomplete")
    return ",".join(tags)


def _diagnostic_lines(report: DeltaReport) -> list[str]:
    noisy = [d for d in report.diagnostics if not d.is_clean]
    if not noisy:
        return []
    lines = [""]
    for d in noisy:
        lines.append(
            f"  [WARN] {d.snapshot_id}: {d.skipped_rows} row(s) skipped, "
            f"{len(d.duplicate_ids)} duplicate id(s)"
        )
    return lines


# ── Delta leaderboard ─────────────────────────────────────────────────────────


def format_delta_table(report: DeltaReport, limit: Optional[int] = None) -> str:
    """Format a delta report as a ranked leaderboard.

    Args:
        report: Result of ``ProgressionService.compute_delta``.
        limit:  Show only the first ``limit`` players (summary stays complete).

    Returns:
        Multi-line string.
    """
    s = report.summary
    lines: list[str] = [""]
    if report.event_id is None:
        lines.append(f"=== {report.statistic} comparison ===")
    else:
        scope = f"fight {report.fight_id}" if report.fight_id else "event"
        lines.append(f"=== {report.statistic} delta: {report.event_id} ({scope}) ===")
    lines.append(f"  Start: {report.start_snapshot_id}   End: {report.end_snapshot_id}")
    lines.append(
        f"  Players: {s.player_count}  (new {s.new_count}, left {s.left_count}, "
        f"incomplete {s.incomplete_count})"
    )
    lines.append(
        f"  Total:   {format_number(s.total_start)} -> {format_number(s.total_end)}  "
        f"({format_number(s.total_change)})"
    )
    lines.append(
        f"  Avg %:   {format_percent(s.average_percent_change)}  "
        f"(+ {s.unbounded_growth_count} from zero)"
    )

    lines.append("")
    if not report.players:
        lines.append("  (no players in either snapshot)")
        lines.extend(_diagnostic_lines(report))
        return "\n".join(lines)

    header = (
        f"  {'#':>4}  {'Player ID':<12}  {'Name':<20}  {'Alliance':<10}  {'Start':>14}  "
        f"{'End':>14}  {'Change':>14}  {'%':>9}  Flags"
    )
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))

    shown = report.players if limit is None else report.players[:limit]
    for rank, p in enumerate(shown, start=1):
        lines.append(
            f"  {rank:>4}  {p.player_id:<12}  {p.name[:20]:<20}  {p.alliance[:10]:<10}  "
            f"{format_number(p.start):>14}  {format_number(p.end):>14}  "
            f"{format_number(p.change):>14}  {format_percent(p.percent_change):>9}  "
            f"{_flags(p.new, p.left, p.incomplete_data)}"
        )
    if len(shown) < len(report.players):
        lines.append(f"  ... {len(report.players) - len(shown)} more")

    lines.extend(_diagnostic_lines(report))
    return "\n".join(lines)


# ── Series ────────────────────────────────────────────────────────────────────


def _excluded_lines(excluded: list[str]) -> list[str]:
    if not excluded:
        return []
    return ["", f"  [WARN] unreadable snapshot(s) left out: {', '.join(excluded)}"]


def format_history(history: PlayerHistory) -> str:
    """Format a player's honor series, one line per observed snapshot."""
    alliance = f" ({history.alliance})" if history.alliance else ""
    lines = [
        "",
        f"=== {history.statistic} history: {history.name or '(no name)'}{alliance} "
        f"[{history.player_id}] ===",
    ]
    if not history.points:
        lines.append("  (player not present in any honor snapshot)")
    else:
        lines.append(f"  {'Snapshot':<32}  {'Value':>14}")
        lines.append("  " + "-" * 48)
        for point in history.points:
            lines.append(f"  {point.label[:32]:<32}  {format_number(point.value):>14}")
    lines.extend(_excluded_lines(history.excluded_snapshot_ids))
    return "\n".join(lines)


def format_totals(totals: StatisticTotals) -> str:
    """Format the event-wide totals series."""
    lines = ["", f"=== {totals.statistic} totals: {totals.event_id} ==="]
    if not totals.points:
        lines.append("  (event has no honor snapshots)")
    else:
        lines.append(f"  {'Snapshot':<32}  {'Total':>16}  {'Players':>7}")
        lines.append("  " + "-" * 59)
        for point in totals.points:
            lines.append(
                f"  {point.label[:32]:<32}  {format_number(point.total):>16}  "
                f"{point.player_count:>7}"
            )
    lines.extend(_excluded_lines(totals.excluded_snapshot_ids))
    return "\n".join(lines)


# ── Listings ──────────────────────────────────────────────────────────────────


def format_snapshot_list(snapshots: list[Snapshot]) -> str:
    """Format stored snapshots in chronological order."""
    if not snapshots:
        return "  (no snapshots stored)"
    header = f"  {'Order':>5}  {'ID':<14}  {'Name':<32}  {'Rows':>6}  Uploaded"
    lines = [header, "  " + "-" * (len(header) - 2)]
    for snap in snapshots:
        lines.append(
            f"  {snap.order:>5}  {snap.snapshot_id:<14}  {snap.name[:32]:<32}  "
            f"{len(snap.rows):>6}  {format_timestamp(snap.uploaded_at)}"
        )
    return "\n".join(lines)


def format_event(event: EventDescriptor) -> str:
    """Format one event descriptor with its references."""
    lines = [
        f"  {event.event_id}: {event.name}" + ("  [public]" if event.is_public else ""),
        f"    start: {event.start_snapshot_id or '(unset)'}",
        f"    end:   {event.end_snapshot_id or '(unset)'}",
        f"    honor: {', '.join(event.honor_snapshot_ids) or '(none)'}",
    ]
    for fight in event.fights:
        lines.append(
            f"    fight {fight.fight_id} ({fight.name}): "
            f"{fight.start_snapshot_id or '(unset)'} -> {fight.end_snapshot_id or '(unset)'}"
        )
    return "\n".join(lines)


def format_search_results(matches: list[PlayerMatch]) -> str:
    if not matches:
        return "  (no matching players)"
    return "\n".join(
        f"  {m.player_id:<12}  {m.name}" + (f"  [{m.alliance}]" if m.alliance else "")
        for m in matches
    )
