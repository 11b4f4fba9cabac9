"""Tests for kvk_tracker.engine.delta."""

from __future__ import annotations

import math

import pytest

from kvk_tracker.engine.delta import DeltaEngine, summarize
from kvk_tracker.engine.normalizer import RowNormalizer
from kvk_tracker.engine.player_index import PlayerIndex
from kvk_tracker.models.player import PlayerDelta

HEADERS = ["id", "name", "honorPoint", "power"]


def _rows(values: dict[str, object], stat: str = "honorPoint") -> list[dict]:
    return [{"id": pid, "name": f"P{pid}", stat: v} for pid, v in values.items()]


@pytest.fixture
def compute(make_snapshot):
    """Delta report between two snapshots built from ``{id: value}`` maps."""

    def _compute(start: dict, end: dict, statistic: str = "honorPoint"):
        normalizer = RowNormalizer()
        s = make_snapshot("start", _rows(start), order=0, headers=HEADERS)
        e = make_snapshot("end", _rows(end), order=1, headers=HEADERS)
        index = PlayerIndex.build([normalizer.normalize(s), normalizer.normalize(e)])
        return DeltaEngine(index).compute("kvk1", "start", "end", statistic)

    return _compute


class TestDeltaScenarios:
    def test_joined_player_and_unchanged_player(self, compute):
        report = compute({"1": "100", "2": "50"}, {"1": "150", "2": "50", "3": "20"})

        p1 = report.for_player("1")
        assert (p1.start, p1.end, p1.change, p1.percent_change) == (100, 150, 50, 50.0)
        p2 = report.for_player("2")
        assert (p2.start, p2.end, p2.change, p2.percent_change) == (50, 50, 0, 0.0)
        p3 = report.for_player("3")
        assert (p3.start, p3.end, p3.change) == (0, 20, 20)
        assert p3.new and not p3.left

    def test_growth_from_zero_is_unbounded(self, compute):
        report = compute({"1": "0"}, {"1": "10"})
        p1 = report.for_player("1")
        assert math.isinf(p1.percent_change) and p1.percent_change > 0
        assert report.summary.unbounded_growth_count == 1
        assert report.summary.average_percent_change is None

    def test_loss_from_zero_is_negative_unbounded(self, compute):
        p1 = compute({"1": "0"}, {"1": "-5"}).for_player("1")
        assert p1.percent_change == -math.inf

    def test_zero_to_zero_is_zero_percent(self, compute):
        p1 = compute({"1": "0"}, {"1": "0"}).for_player("1")
        assert p1.percent_change == 0.0
        assert not p1.is_unbounded

    def test_negative_start_uses_absolute_value(self, compute):
        p1 = compute({"1": "-200"}, {"1": "-100"}).for_player("1")
        assert p1.percent_change == 50.0


class TestDeltaUniverse:
    def test_departed_player_kept(self, compute):
        report = compute({"1": "10", "2": "20"}, {"1": "15"})
        p2 = report.for_player("2")
        assert p2.left and not p2.new
        assert (p2.start, p2.end, p2.change) == (20, 0, -20)
        assert report.summary.left_count == 1

    def test_absent_statistic_flagged(self, compute):
        report = compute({"1": "", "2": "5"}, {"1": "40", "2": "5"})
        p1 = report.for_player("1")
        assert p1.incomplete_data
        assert (p1.start, p1.end) == (0, 40)
        assert not p1.new
        assert not report.for_player("2").incomplete_data
        assert report.summary.incomplete_count == 1

    def test_statistic_missing_from_both_headers(self, compute):
        report = compute({"1": "10"}, {"1": "20"}, statistic="killPoints")
        p1 = report.for_player("1")
        assert p1.incomplete_data
        assert p1.change == 0

    def test_empty_snapshots(self, compute):
        report = compute({}, {})
        assert report.players == []
        assert report.summary.player_count == 0
        assert report.summary.total_change == 0


class TestDeltaOrderingAndSummary:
    def test_ordering_change_then_end_then_id(self, compute):
        report = compute(
            {"1": "0", "2": "10", "3": "100", "4": "0"},
            {"1": "50", "2": "60", "3": "100", "4": "50"},
        )
        assert [p.player_id for p in report.players] == ["2", "1", "4", "3"]

    def test_sum_of_changes_equals_total(self, compute):
        report = compute(
            {"1": "1.000,5", "2": "333,3", "3": "7"},
            {"1": "2.000,25", "2": "0,1", "4": "12,7"},
        )
        s = report.summary
        assert s.total_change == sum(p.change for p in report.players)
        assert s.total_start == sum(p.start for p in report.players)
        assert s.total_end == sum(p.end for p in report.players)
        assert s.player_count == 4

    def test_average_ignores_unbounded(self, compute):
        report = compute({"1": "100", "2": "0"}, {"1": "150", "2": "10"})
        assert report.summary.average_percent_change == 50.0
        assert report.summary.unbounded_growth_count == 1

    def test_repeated_calls_are_identical(self, compute):
        start, end = {"1": "5", "2": "9"}, {"2": "1", "3": "4"}
        assert compute(start, end) == compute(start, end)

    def test_diagnostics_cover_both_snapshots(self, compute):
        report = compute({"1": "1"}, {"1": "2"})
        assert [d.snapshot_id for d in report.diagnostics] == ["start", "end"]

    def test_same_snapshot_for_start_and_end(self, make_snapshot):
        snap = RowNormalizer().normalize(make_snapshot("s", _rows({"1": "3"}), headers=HEADERS))
        report = DeltaEngine(PlayerIndex.build([snap])).compute("kvk1", "s", "s", "honorPoint")
        assert report.for_player("1").change == 0
        assert len(report.diagnostics) == 1


def test_summarize_empty_list():
    summary = summarize([])
    assert summary.player_count == 0
    assert summary.average_percent_change is None
    assert summary.unbounded_growth_count == 0


def test_summarize_counts_flags():
    players = [
        PlayerDelta(player_id="1", name="", start=0, end=5, change=5,
                    percent_change=math.inf, new=True),
        PlayerDelta(player_id="2", name="", start=4, end=0, change=-4,
                    percent_change=-100.0, left=True),
    ]
    summary = summarize(players)
    assert summary.new_count == 1
    assert summary.left_count == 1
    assert summary.average_percent_change == -100.0
    assert summary.total_change == 1
