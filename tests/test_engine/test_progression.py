"""Tests for kvk_tracker.engine.progression."""

from __future__ import annotations

import pytest

from kvk_tracker.engine.normalizer import RowNormalizer
from kvk_tracker.engine.player_index import PlayerIndex
from kvk_tracker.engine.progression import ProgressionBuilder
from kvk_tracker.errors import PlayerNotFoundError

HEADERS = ["id", "name", "honorPoint"]


@pytest.fixture
def builder(make_snapshot) -> ProgressionBuilder:
    """Honor series s1..s3 where player 1 skips s2 and player 2 has a blank."""
    normalizer = RowNormalizer()
    snaps = [
        make_snapshot("s1", [
            {"id": "1", "name": "Aldric", "honorPoint": "10"},
            {"id": "2", "name": "Brenna", "honorPoint": "4"},
        ], order=0, headers=HEADERS),
        make_snapshot("s2", [
            {"id": "2", "name": "Brenna", "honorPoint": ""},
        ], order=1, headers=HEADERS),
        make_snapshot("s3", [
            {"id": "1", "name": "Aldric II", "honorPoint": "30"},
            {"id": "2", "name": "Brenna", "honorPoint": "8"},
        ], order=2, headers=HEADERS),
    ]
    return ProgressionBuilder(PlayerIndex.build(normalizer.normalize(s) for s in snaps))


class TestHistory:
    def test_missing_snapshot_is_skipped_not_zero_filled(self, builder):
        history = builder.build("kvk1", ["s1", "s2", "s3"], "1", "honorPoint")
        assert [(p.snapshot_id, p.value) for p in history.points] == [("s1", 10), ("s3", 30)]

    def test_blank_value_is_skipped(self, builder):
        history = builder.build("kvk1", ["s1", "s2", "s3"], "2", "honorPoint")
        assert history.labels == ["s1", "s3"]
        assert history.values == [4, 8]

    def test_honor_list_order_is_irrelevant(self, builder):
        history = builder.build("kvk1", ["s3", "s1", "s2"], "1", "honorPoint")
        assert [p.snapshot_id for p in history.points] == ["s1", "s3"]

    def test_name_is_latest(self, builder):
        assert builder.build("kvk1", ["s1"], "1", "honorPoint").name == "Aldric II"

    def test_points_bounded_by_honor_count(self, builder):
        history = builder.build("kvk1", ["s1", "s3"], "2", "honorPoint")
        assert len(history.points) <= 2

    def test_unknown_player_raises(self, builder):
        with pytest.raises(PlayerNotFoundError) as exc_info:
            builder.build("kvk1", ["s1", "s2", "s3"], "999", "honorPoint")
        assert exc_info.value.player_id == "999"

    def test_player_outside_honor_series_gets_empty_history(self, builder):
        history = builder.build("kvk1", ["s2"], "1", "honorPoint")
        assert history.points == []

    def test_unindexed_honor_snapshot_raises(self, builder):
        with pytest.raises(KeyError):
            builder.build("kvk1", ["s1", "s9"], "1", "honorPoint")


class TestTotals:
    def test_totals_per_snapshot(self, builder):
        totals = builder.totals("kvk1", ["s1", "s2", "s3"], "honorPoint")
        assert [(p.snapshot_id, p.total, p.player_count) for p in totals.points] == [
            ("s1", 14, 2),
            ("s2", 0, 0),
            ("s3", 38, 2),
        ]

    def test_totals_empty_honor_series(self, builder):
        assert builder.totals("kvk1", [], "honorPoint").points == []
