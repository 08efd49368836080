"""Tests for classification/points.py — OPM point tables."""

from __future__ import annotations

import pytest

from classification.levels import Level
from classification.points import FES_POINTS, GSSG_POINTS, factor_ids, point_table, points
from classification.rating_system import RatingSystem


class TestFESLookup:
    @pytest.mark.parametrize("factor_id, level, expected", [
        ("1", "1-1", 50),
        ("1", "1-7", 1250),
        ("1", "1-9", 1850),
        ("2", "2-5", 650),
        ("4", "4-6", 450),
        ("6", "6-4", 110),
        ("7", "7-3", 120),
        ("9", "9-3", 50),
    ])
    def test_encoded_levels(self, factor_id: str, level: str, expected: int):
        assert points(factor_id, level) == expected

    def test_bare_number(self):
        assert points("1", 7) == 1250

    def test_level_value(self):
        assert points("5", Level("5", 4)) == 225

    def test_letter_level(self):
        assert points("7", "7-C") == 120


class TestGSSGLookup:
    def test_split_contact_factors(self):
        assert points("4A", "4A-2", RatingSystem.GSSG) == 50
        assert points("4B", "4B-4", RatingSystem.GSSG) == 125

    def test_system_as_string(self):
        assert points("6", "6-3", "GSSG") == 975

    def test_fes_only_factor_under_gssg(self):
        assert points("9", "9-1", RatingSystem.GSSG) == 0


class TestLookupMiss:
    def test_out_of_range_level_scores_zero(self):
        assert points("1", "1-99") == 0

    def test_zero_level_scores_zero(self):
        assert points("8", "8-0") == 0

    def test_wrong_prefix_scores_zero(self):
        assert points("2", "3-4") == 0

    def test_unknown_factor_scores_zero(self):
        assert points("10", "10-1") == 0

    def test_garbage_scores_zero(self):
        assert points("1", "not a level") == 0


class TestTables:
    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            FES_POINTS["1"] = (1, 2, 3)  # type: ignore[index]

    def test_gssg_factor_order(self):
        assert factor_ids(RatingSystem.GSSG) == ("1", "2", "3", "4A", "4B", "5", "6")

    def test_fes_has_nine_factors(self):
        assert factor_ids() == tuple(str(n) for n in range(1, 10))

    def test_point_table_dispatch(self):
        assert point_table(RatingSystem.GSSG) is GSSG_POINTS

    def test_rows_strictly_increase(self):
        for table in (FES_POINTS, GSSG_POINTS):
            for row in table.values():
                assert list(row) == sorted(set(row))
