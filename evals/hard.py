"""
Hard evaluation functions for returned evaluations.

All functions return simple pass/fail values over the output contract
dict (``Evaluation.to_dict()``).  These are the constraints every response
must satisfy; the evaluation agent runs them before answering.
"""

from __future__ import annotations

from typing import Any

from classification.grades import band_for_grade, band_for_points
from classification.levels import LevelParseError, Level, max_level
from classification.points import factor_ids, points
from classification.rating_system import RatingSystem, normalize_factor_id


def _system(result: dict[str, Any]) -> RatingSystem:
    return RatingSystem(result.get("ratingSystem", RatingSystem.FES.value))


def check_factor_set(result: dict[str, Any]) -> bool:
    """Every factor of the rating system is present, and nothing else."""
    keys = {normalize_factor_id(key) for key in result.get("factors", {})}
    return keys == set(factor_ids(_system(result)))


def check_points_consistency(result: dict[str, Any]) -> bool:
    """
    Each factor's points match its level, and the total is their sum.

    A forced result instead reports exactly the floor of its grade band.
    """
    system = _system(result)
    total = 0
    for key, factor in result.get("factors", {}).items():
        factor_id = normalize_factor_id(key)
        expected = points(factor_id, factor.get("level"), system)
        if expected == 0 or expected != factor.get("points"):
            return False
        total += expected

    if result.get("forced"):
        try:
            band = band_for_grade(result.get("finalGrade"), system)
        except ValueError:
            return False
        return result.get("totalPoints") == band.min_points
    return result.get("totalPoints") == total


def check_band_validity(result: dict[str, Any]) -> bool:
    """The reported total lies inside the band of the reported grade."""
    system = _system(result)
    band = band_for_points(result.get("totalPoints", -1), system)
    return band is not None and band.grade == result.get("finalGrade") and band.range_label == result.get("gradeRange")


def check_level_bounds(result: dict[str, Any]) -> bool:
    """Every level is well formed, owned by its factor and within 1..max."""
    system = _system(result)
    for key, factor in result.get("factors", {}).items():
        factor_id = normalize_factor_id(key)
        try:
            level = Level.parse(str(factor.get("level")), factor_id=factor_id)
        except LevelParseError:
            return False
        if level.factor_id != factor_id or not 1 <= level.number <= max_level(factor_id, system):
            return False
    return True


def check_headers(result: dict[str, Any]) -> bool:
    """Each header quotes the factor's own level and points."""
    for key, factor in result.get("factors", {}).items():
        header = factor.get("header", "")
        if not header.startswith(key):
            return False
        if f"Level {factor.get('level')}, {factor.get('points')} Points" not in header:
            return False
    return True


def run_all(result: dict[str, Any]) -> dict[str, bool]:
    return {
        "factor_set": check_factor_set(result),
        "points_consistency": check_points_consistency(result),
        "band_validity": check_band_validity(result),
        "level_bounds": check_level_bounds(result),
        "headers": check_headers(result),
    }
