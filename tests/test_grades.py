"""Tests for classification/grades.py — two-grade-interval bands."""

from __future__ import annotations

import pytest

from classification.grades import (
    ALLOWED_GRADES,
    UnknownGradeError,
    band_for_grade,
    band_for_points,
    forbidden_gaps,
    is_forbidden,
    nearest_band_above,
    normalize_grade,
)
from classification.rating_system import RatingSystem


class TestBandForPoints:
    @pytest.mark.parametrize("total, grade", [
        (855, "GS-05"),
        (1100, "GS-05"),
        (1355, "GS-07"),
        (2750, "GS-11"),
        (2755, "GS-12"),
        (4050, "GS-14"),
        (4055, "GS-15"),
        (9999, "GS-15"),
    ])
    def test_in_band(self, total: int, grade: str):
        band = band_for_points(total)
        assert band is not None
        assert band.grade == grade

    @pytest.mark.parametrize("total", [0, 854, 1200, 1601, 2752, 3153, 4051])
    def test_forbidden(self, total: int):
        assert band_for_points(total) is None
        assert is_forbidden(total)


class TestGaps:
    def test_fes_gaps(self):
        assert forbidden_gaps() == [
            (1101, 1354),
            (1601, 1854),
            (2101, 2354),
            (2751, 2754),
            (3151, 3154),
            (3601, 3604),
            (4051, 4054),
        ]

    def test_gssg_shares_boundaries(self):
        assert forbidden_gaps(RatingSystem.GSSG) == forbidden_gaps(RatingSystem.FES)


class TestNearestBandAbove:
    def test_from_old_gs06_range(self):
        assert nearest_band_above(1200).grade == "GS-07"

    def test_from_narrow_seam(self):
        assert nearest_band_above(2752).grade == "GS-12"

    def test_below_lowest_band(self):
        assert nearest_band_above(300).grade == "GS-05"


class TestGradeNames:
    @pytest.mark.parametrize("raw, expected", [
        ("GS-7", "GS-07"),
        ("gs 13", "GS-13"),
        ("GS-09", "GS-09"),
        (9, "GS-09"),
        ("11", "GS-11"),
        ("senior", None),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_grade(raw) == expected

    def test_band_for_grade(self):
        band = band_for_grade("GS-12")
        assert (band.min_points, band.max_points) == (2755, 3150)
        assert band.range_label == "2755-3150"

    def test_open_ended_label(self):
        assert band_for_grade("GS-15").range_label == "4055+"

    def test_skipped_grade_rejected(self):
        with pytest.raises(UnknownGradeError):
            band_for_grade("GS-06")

    def test_allowed_grades(self):
        assert ALLOWED_GRADES == ("GS-05", "GS-07", "GS-09", "GS-11", "GS-12", "GS-13", "GS-14", "GS-15")
