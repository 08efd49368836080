"""
Grade/point reconciliation — band-seeking local search over factor levels.

Given an evaluation and a target grade, nudge factor levels one rung at a
time, in a fixed priority order, until the total lands in the grade's
point band.  The heavy factors (knowledge / scope, or program scope /
work directed under GSSG) are tried first so the search converges in few
moves; the light factors (physical demands, work environment) come last
as fine correction.  Decreasing tries the same order reversed.

If the search runs out of moves with the total in a forbidden range, the
reported total is forced to the floor of the next band up; a gradeless
total is never returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from classification.evaluation import Evaluation
from classification.grades import GradeBand, band_for_grade, is_forbidden, nearest_band_above
from classification.levels import Level, next_higher, next_lower
from classification.points import points
from classification.rating_system import RatingSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineProfile:
    """Search parameters for one rating system."""

    order: tuple[str, ...]
    tolerance: int
    max_iterations: int

    def adjustment_order(self, direction: int) -> tuple[str, ...]:
        return self.order if direction > 0 else tuple(reversed(self.order))


ENGINE_PROFILES: Mapping[RatingSystem, EngineProfile] = MappingProxyType({
    RatingSystem.FES: EngineProfile(
        order=("1", "5", "2", "4", "3", "6", "7", "8", "9"),
        tolerance=40,
        max_iterations=50,
    ),
    RatingSystem.GSSG: EngineProfile(
        order=("1", "5", "3", "2", "4A", "4B", "6"),
        tolerance=25,
        max_iterations=100,
    ),
})


@dataclass
class Move:
    factor_id: str
    before: Level
    after: Level
    delta: int
    total: int


@dataclass
class ReconcileReport:
    min_points: int
    max_points: int | None
    start_total: int
    end_total: int
    iterations: int = 0
    moves: list[Move] = field(default_factory=list)
    forced_band: GradeBand | None = None

    @property
    def in_band(self) -> bool:
        return _inside(self.end_total, self.min_points, self.max_points)

    @property
    def forced(self) -> bool:
        return self.forced_band is not None

    @property
    def changed(self) -> bool:
        return bool(self.moves) or self.forced


def _inside(total: int, low: int, high: int | None) -> bool:
    return total >= low and (high is None or total <= high)


def resolve_forbidden(evaluation: Evaluation) -> GradeBand | None:
    """
    Force a gradeless total onto the floor of the next band up.

    Returns the band forced to, or None when the total already has a grade.
    """
    total = evaluation.points_sum
    if not is_forbidden(total, evaluation.system):
        evaluation.forced_band = None
        return None
    band = nearest_band_above(total, evaluation.system)
    evaluation.forced_band = band
    logger.warning(
        "Total %d is in a forbidden range; reporting %s at %d points",
        total, band.grade, band.min_points,
    )
    return band


def reconcile(
    evaluation: Evaluation,
    target_grade: str | None = None,
    *,
    min_points: int | None = None,
    max_points: int | None = None,
    profile: EngineProfile | None = None,
) -> ReconcileReport:
    """
    Adjust ``evaluation`` in place so its total falls inside the target band.

    Parameters
    ----------
    evaluation : the evaluation to adjust; only levels change, titles never do
    target_grade : grade whose band is the target (defaults to evaluation.target_grade)
    min_points, max_points : explicit band override (max None = open-ended)
    profile : search parameters (defaults to the rating system's profile)

    Returns
    -------
    ReconcileReport describing every accepted move and whether the total was forced.
    """
    system = evaluation.system
    profile = profile or ENGINE_PROFILES[system]

    grade = target_grade or evaluation.target_grade
    if min_points is None or (max_points is None and grade):
        band = band_for_grade(grade, system)
        low = band.min_points if min_points is None else min_points
        high = band.max_points if max_points is None else max_points
    else:
        low, high = min_points, max_points

    start = evaluation.points_sum
    report = ReconcileReport(min_points=low, max_points=high, start_total=start, end_total=start)

    if _inside(start, low, high):
        evaluation.forced_band = None
        return report

    mid = (low + high) / 2 if high is not None else float(low)

    def _settled(current: int) -> bool:
        return _inside(current, low, high) and abs(mid - current) <= profile.tolerance

    total = start
    while report.iterations < profile.max_iterations:
        report.iterations += 1
        diff = mid - total
        if _settled(total):
            break
        direction = 1 if diff > 0 else -1
        step = next_higher if direction > 0 else next_lower
        changed = False

        for factor_id in profile.adjustment_order(direction):
            assignment = evaluation.assignments.get(factor_id)
            if assignment is None or not isinstance(assignment.level, Level):
                logger.debug("Skipping factor %s: no usable level", factor_id)
                continue

            candidate = step(factor_id, assignment.level, system)
            if candidate is None:
                continue

            delta = points(factor_id, candidate, system) - assignment.points
            if delta == 0 or (delta > 0) != (direction > 0):
                continue

            new_total = total + delta
            if _inside(total, low, high):
                # inside the band: only moves that stay inside and get closer to the midpoint
                if not _inside(new_total, low, high) or abs(mid - new_total) >= abs(mid - total):
                    continue

            before = assignment.level
            evaluation.set_level(factor_id, candidate)
            total = new_total
            report.moves.append(Move(factor_id, before, candidate, delta, total))
            changed = True
            logger.debug("Factor %s: %s -> %s (%+d) total=%d", factor_id, before, candidate, delta, total)

            if _settled(total):
                break
            if (mid - total > 0) != (direction > 0):
                break

        if not changed or _settled(total):
            break

    report.end_total = evaluation.points_sum
    report.forced_band = resolve_forbidden(evaluation)

    logger.info(
        "Reconciled %s evaluation %d -> %d (band %s, %d moves, %d passes%s)",
        system.value,
        report.start_total,
        report.end_total,
        f"{low}-{high}" if high is not None else f"{low}+",
        len(report.moves),
        report.iterations,
        ", forced" if report.forced else "",
    )
    return report
