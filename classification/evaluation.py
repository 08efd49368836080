"""
Evaluation model — factor assignments plus the totals derived from them.

Points are never stored: ``FactorAssignment.points`` is looked up from the
point table on every access, and ``Evaluation.points_sum`` is the live sum
of those lookups, so the totals cannot drift from the levels they describe.

The one exception is a forced evaluation: when the sum falls between two
bands, ``total_points`` reports the floor of the band above instead of the
sum.  ``forced`` (also in ``to_dict``) is True exactly in that case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from classification.grades import GradeBand, band_for_points
from classification.levels import Level
from classification.points import points
from classification.rating_system import RatingSystem


@dataclass
class FactorAssignment:
    factor_id: str
    level: Level
    title: str
    rationale: str = ""
    system: RatingSystem = RatingSystem.FES

    @property
    def points(self) -> int:
        return points(self.factor_id, self.level, self.system)

    @property
    def key(self) -> str:
        return f"Factor {self.factor_id}"

    @property
    def header(self) -> str:
        return f"{self.key} – {self.title} Level {self.level}, {self.points} Points"

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header,
            "level": self.level.encode(),
            "points": self.points,
            "rationale": self.rationale,
        }


@dataclass
class Evaluation:
    """One FES or GSSG evaluation for a single request."""

    system: RatingSystem
    assignments: dict[str, FactorAssignment]
    target_grade: str | None = None
    forced_band: GradeBand | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def points_sum(self) -> int:
        return sum(a.points for a in self.assignments.values())

    @property
    def forced(self) -> bool:
        return self.forced_band is not None

    @property
    def total_points(self) -> int:
        if self.forced_band is not None:
            return self.forced_band.min_points
        return self.points_sum

    @property
    def band(self) -> GradeBand | None:
        if self.forced_band is not None:
            return self.forced_band
        return band_for_points(self.points_sum, self.system)

    @property
    def final_grade(self) -> str:
        band = self.band
        return band.grade if band else "Unknown"

    @property
    def grade_range(self) -> str:
        band = self.band
        return band.range_label if band else "Unknown"

    def levels(self) -> dict[str, str]:
        return {fid: a.level.encode() for fid, a in self.assignments.items()}

    def set_level(self, factor_id: str, level: Level) -> None:
        """Move one factor; any earlier forced total no longer applies."""
        self.assignments[factor_id].level = level
        self.forced_band = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "factors": {a.key: a.to_dict() for a in self.assignments.values()},
            "totalPoints": self.total_points,
            "finalGrade": self.final_grade,
            "gradeRange": self.grade_range,
            "ratingSystem": self.system.value,
            "forced": self.forced,
            "warnings": list(self.warnings),
        }

    def summary(self) -> str:
        return (
            f"**Total Points: {self.total_points}**\n"
            f"**Final Grade: {self.final_grade}**\n"
            f"**Grade Range: {self.grade_range}**"
        )
