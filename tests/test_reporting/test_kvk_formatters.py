"""Tests for kvk_tracker.reporting.formatters."""

from __future__ import annotations

import math

from kvk_tracker.models.player import (
    DeltaReport,
    DeltaSummary,
    PlayerDelta,
    PlayerMatch,
    SnapshotDiagnostics,
)
from kvk_tracker.models.progression import HistoryPoint, PlayerHistory, StatisticTotals, TotalsPoint
from kvk_tracker.reporting.formatters import (
    format_delta_table,
    format_history,
    format_number,
    format_percent,
    format_search_results,
    format_totals,
)


def _report(players: list[PlayerDelta], diagnostics=None) -> DeltaReport:
    return DeltaReport(
        event_id="kvk1",
        statistic="honorPoint",
        start_snapshot_id="s1",
        end_snapshot_id="s2",
        players=players,
        summary=DeltaSummary(
            player_count=len(players),
            total_start=sum(p.start for p in players),
            total_end=sum(p.end for p in players),
            total_change=sum(p.change for p in players),
            average_percent_change=None,
            unbounded_growth_count=0,
        ),
        diagnostics=diagnostics or [],
    )


def test_format_number():
    assert format_number(1234567.0) == "1,234,567"
    assert format_number(12.5) == "12.50"


def test_format_percent():
    assert format_percent(50.0) == "+50.0%"
    assert format_percent(-12.345) == "-12.3%"
    assert format_percent(math.inf) == "+inf%"
    assert format_percent(-math.inf) == "-inf%"
    assert format_percent(None) == "n/a"


def test_delta_table_rows_and_flags():
    players = [
        PlayerDelta(player_id="3", name="Corvin", start=0, end=20, change=20,
                    percent_change=math.inf, new=True),
        PlayerDelta(player_id="2", name="Brenna", start=50, end=0, change=-50,
                    percent_change=-100.0, left=True, incomplete_data=True),
    ]
    out = format_delta_table(_report(players))
    assert "honorPoint delta: kvk1" in out
    assert "Corvin" in out and "+inf%" in out and "new" in out
    assert "left,incomplete" in out


def test_delta_table_limit():
    players = [
        PlayerDelta(player_id=str(i), name=f"P{i}", start=0, end=0, change=0, percent_change=0.0)
        for i in range(5)
    ]
    out = format_delta_table(_report(players), limit=2)
    assert "... 3 more" in out


def test_delta_table_empty():
    assert "no players" in format_delta_table(_report([]))


def test_delta_table_warns_on_diagnostics():
    diag = [SnapshotDiagnostics(snapshot_id="s1", skipped_rows=2, duplicate_ids=["9"])]
    players = [PlayerDelta(player_id="1", name="A", start=1, end=1, change=0, percent_change=0.0)]
    out = format_delta_table(_report(players, diagnostics=diag))
    assert "[WARN] s1: 2 row(s) skipped, 1 duplicate id(s)" in out


def test_format_history():
    history = PlayerHistory(
        player_id="1", name="Aldric", statistic="honorPoint",
        points=[HistoryPoint(snapshot_id="s1", label="Week 1", order=0, value=1000)],
    )
    out = format_history(history)
    assert "Aldric" in out
    assert "Week 1" in out and "1,000" in out


def test_format_history_empty():
    history = PlayerHistory(player_id="1", name="", statistic="honorPoint")
    assert "not present" in format_history(history)


def test_format_totals():
    totals = StatisticTotals(
        event_id="kvk1", statistic="power",
        points=[TotalsPoint(snapshot_id="s1", label="Week 1", order=0, total=2500, player_count=3)],
    )
    out = format_totals(totals)
    assert "2,500" in out and "Week 1" in out


def test_format_search_results():
    assert "(no matching players)" in format_search_results([])
    assert "Aldric" in format_search_results([PlayerMatch(player_id="1", name="Aldric")])


def test_empty_delta_table_still_warns():
    diag = [SnapshotDiagnostics(snapshot_id="s1", skipped_rows=4)]
    out = format_delta_table(_report([], diagnostics=diag))
    assert "no players" in out
    assert "[WARN] s1: 4 row(s) skipped" in out


def test_delta_table_shows_alliance():
    players = [
        PlayerDelta(player_id="1", name="Aldric", alliance="NWO", start=1, end=2, change=1,
                    percent_change=100.0),
    ]
    out = format_delta_table(_report(players))
    assert "Alliance" in out
    assert "NWO" in out


def test_comparison_header_has_no_event():
    report = _report([]).model_copy(update={"event_id": None})
    out = format_delta_table(report)
    assert "=== honorPoint comparison ===" in out
    assert "delta:" not in out


def test_history_shows_alliance_and_excluded_snapshots():
    history = PlayerHistory(
        player_id="1", name="Aldric", alliance="NWO", statistic="honorPoint",
        excluded_snapshot_ids=["bad"],
    )
    out = format_history(history)
    assert "Aldric (NWO) [1]" in out
    assert "[WARN] unreadable snapshot(s) left out: bad" in out


def test_totals_warns_on_excluded_snapshots():
    totals = StatisticTotals(event_id="kvk1", statistic="power", excluded_snapshot_ids=["x"])
    assert "left out: x" in format_totals(totals)


def test_search_results_show_alliance():
    out = format_search_results([PlayerMatch(player_id="1", name="Aldric", alliance="NWO")])
    assert "[NWO]" in out
