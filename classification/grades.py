"""
Grade bands for the two-grade-interval General Schedule.

Only GS-05, 07, 09, 11, 12, 13, 14 and 15 are reachable through point
totals.  Totals that fall between two bands (for example 1101-1354, the
old GS-06 range) have no grade and must never be reported as final; the
gaps are derived from the band table rather than listed by hand.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from classification.rating_system import RatingSystem


class UnknownGradeError(ValueError):
    """Raised for a grade name outside the two-grade-interval set."""


@dataclass(frozen=True)
class GradeBand:
    grade: str
    min_points: int
    max_points: int | None = None  # None: open-ended (GS-15)

    def contains(self, total: int) -> bool:
        if total < self.min_points:
            return False
        return self.max_points is None or total <= self.max_points

    @property
    def range_label(self) -> str:
        if self.max_points is None:
            return f"{self.min_points}+"
        return f"{self.min_points}-{self.max_points}"

    @property
    def midpoint(self) -> float:
        if self.max_points is None:
            return float(self.min_points)
        return (self.min_points + self.max_points) / 2


FES_BANDS: tuple[GradeBand, ...] = (
    GradeBand("GS-05", 855, 1100),
    GradeBand("GS-07", 1355, 1600),
    GradeBand("GS-09", 1855, 2100),
    GradeBand("GS-11", 2355, 2750),
    GradeBand("GS-12", 2755, 3150),
    GradeBand("GS-13", 3155, 3600),
    GradeBand("GS-14", 3605, 4050),
    GradeBand("GS-15", 4055, None),
)

# Supervisory evaluations share grade names and boundaries with FES, but
# the table is declared on its own so the two can diverge independently.
GSSG_BANDS: tuple[GradeBand, ...] = (
    GradeBand("GS-05", 855, 1100),
    GradeBand("GS-07", 1355, 1600),
    GradeBand("GS-09", 1855, 2100),
    GradeBand("GS-11", 2355, 2750),
    GradeBand("GS-12", 2755, 3150),
    GradeBand("GS-13", 3155, 3600),
    GradeBand("GS-14", 3605, 4050),
    GradeBand("GS-15", 4055, None),
)

_BANDS: Mapping[RatingSystem, tuple[GradeBand, ...]] = MappingProxyType({
    RatingSystem.FES: FES_BANDS,
    RatingSystem.GSSG: GSSG_BANDS,
})

ALLOWED_GRADES: tuple[str, ...] = tuple(band.grade for band in FES_BANDS)

_GRADE_PATTERN = re.compile(r"^\s*(?:gs\s*[-–]?\s*)?0*(\d{1,2})\s*$", re.IGNORECASE)


def bands(system: RatingSystem = RatingSystem.FES) -> tuple[GradeBand, ...]:
    return _BANDS[RatingSystem(system)]


def normalize_grade(raw) -> str | None:
    """``"GS-7"``, ``"gs 07"`` or ``7`` -> ``"GS-07"``; None when unrecognisable."""
    if raw is None:
        return None
    match = _GRADE_PATTERN.match(str(raw))
    if not match:
        return None
    return f"GS-{int(match.group(1)):02d}"


def band_for_grade(grade, system: RatingSystem = RatingSystem.FES) -> GradeBand:
    name = normalize_grade(grade)
    for band in bands(system):
        if band.grade == name:
            return band
    raise UnknownGradeError(
        f"Unknown grade {grade!r}; expected one of {', '.join(ALLOWED_GRADES)}"
    )


def band_for_points(total: int, system: RatingSystem = RatingSystem.FES) -> GradeBand | None:
    """The band containing ``total``, or None when ``total`` sits in a forbidden range."""
    for band in bands(system):
        if band.contains(total):
            return band
    return None


def is_forbidden(total: int, system: RatingSystem = RatingSystem.FES) -> bool:
    return band_for_points(total, system) is None


def forbidden_gaps(system: RatingSystem = RatingSystem.FES) -> list[tuple[int, int]]:
    """Inclusive point ranges lying between consecutive bands."""
    table = bands(system)
    gaps = []
    for lower, upper in zip(table, table[1:]):
        if lower.max_points is not None and upper.min_points > lower.max_points + 1:
            gaps.append((lower.max_points + 1, upper.min_points - 1))
    return gaps


def nearest_band_above(total: int, system: RatingSystem = RatingSystem.FES) -> GradeBand:
    """The lowest band whose minimum is at or above ``total`` (GS-15 when none is)."""
    table = bands(system)
    for band in table:
        if band.min_points >= total:
            return band
    return table[-1]
