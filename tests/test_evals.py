"""Tests for the hard evaluation suite over the output contract."""

from __future__ import annotations

from classification.factors import build_factor_set
from classification.rating_system import RatingSystem
from classification.reconcile import reconcile
from evals.hard import (
    check_band_validity,
    check_factor_set,
    check_headers,
    check_level_bounds,
    check_points_consistency,
    run_all,
)


def _result(system: RatingSystem = RatingSystem.FES, grade: str = "GS-11") -> dict:
    return build_factor_set(system, "", grade).evaluation.to_dict()


def _forced_result() -> dict:
    evaluation = build_factor_set(RatingSystem.GSSG, "", "GS-05").evaluation
    reconcile(evaluation, "GS-05")
    return evaluation.to_dict()


class TestPassing:
    def test_fes_result_passes_everything(self):
        assert all(run_all(_result()).values())

    def test_gssg_result_passes_everything(self):
        assert all(run_all(_result(RatingSystem.GSSG, "GS-13")).values())

    def test_forced_result_passes_everything(self):
        result = _forced_result()
        assert result["forced"] is True
        assert result["totalPoints"] == 1355
        assert all(run_all(result).values())

    def test_only_forced_total_differs_from_factor_sum(self):
        normal = _result()
        forced = _forced_result()

        assert normal["forced"] is False
        assert normal["totalPoints"] == sum(f["points"] for f in normal["factors"].values())
        assert forced["totalPoints"] != sum(f["points"] for f in forced["factors"].values())
        assert sum(f["points"] for f in forced["factors"].values()) == 1165

    def test_run_all_keys(self):
        assert set(run_all(_result())) == {
            "factor_set", "points_consistency", "band_validity", "level_bounds", "headers",
        }


class TestTampering:
    def test_missing_factor(self):
        result = _result()
        del result["factors"]["Factor 9"]
        assert not check_factor_set(result)

    def test_foreign_factor(self):
        result = _result()
        result["factors"]["Factor 4A"] = {"level": "4A-1", "points": 25, "header": ""}
        assert not check_factor_set(result)

    def test_total_off_by_five(self):
        result = _result()
        result["totalPoints"] += 5
        assert not check_points_consistency(result)

    def test_factor_points_disagree_with_level(self):
        result = _result()
        result["factors"]["Factor 1"]["points"] = 900
        assert not check_points_consistency(result)

    def test_forced_total_must_be_band_floor(self):
        result = _forced_result()
        result["totalPoints"] = 1400
        assert not check_points_consistency(result)

    def test_forced_with_unknown_grade(self):
        result = _forced_result()
        result["finalGrade"] = "Unknown"
        assert not check_points_consistency(result)

    def test_grade_disagrees_with_total(self):
        result = _result()
        result["finalGrade"] = "GS-12"
        assert not check_band_validity(result)

    def test_range_label_disagrees(self):
        result = _result()
        result["gradeRange"] = "2355-2700"
        assert not check_band_validity(result)

    def test_level_above_maximum(self):
        result = _result()
        result["factors"]["Factor 8"]["level"] = "8-4"
        assert not check_level_bounds(result)

    def test_level_with_wrong_prefix(self):
        result = _result()
        result["factors"]["Factor 2"]["level"] = "3-2"
        assert not check_level_bounds(result)

    def test_malformed_level(self):
        result = _result()
        result["factors"]["Factor 2"]["level"] = "two"
        assert not check_level_bounds(result)

    def test_header_with_stale_points(self):
        result = _result()
        factor = result["factors"]["Factor 1"]
        factor["header"] = factor["header"].replace(f"{factor['points']} Points", "1 Points")
        assert not check_headers(result)
