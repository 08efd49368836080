"""
OPM point tables for the Factor Evaluation System and the General Schedule
Supervisory Guide.

Each table maps a factor id to the point value of levels 1..n, so the
maximum level of a factor is simply the length of its row.  The tables are
read-only; nothing at runtime may modify them.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

from classification.rating_system import RatingSystem

logger = logging.getLogger(__name__)


FES_POINTS: Mapping[str, tuple[int, ...]] = MappingProxyType({
    "1": (50, 200, 350, 550, 750, 950, 1250, 1550, 1850),
    "2": (25, 125, 275, 450, 650),
    "3": (25, 125, 275, 450, 650),
    "4": (25, 75, 150, 225, 325, 450),
    "5": (25, 75, 150, 225, 325, 450),
    "6": (10, 25, 60, 110),
    "7": (20, 50, 120, 220),
    "8": (5, 20, 50),
    "9": (5, 20, 50),
})

# 4A (nature of contacts) and 4B (purpose of contacts) are scored separately.
GSSG_POINTS: Mapping[str, tuple[int, ...]] = MappingProxyType({
    "1": (175, 350, 550, 775, 900),
    "2": (100, 250, 350),
    "3": (450, 775, 900, 1025),
    "4A": (25, 50, 75, 100),
    "4B": (30, 75, 100, 125),
    "5": (75, 205, 340, 505, 650, 800, 930, 1030),
    "6": (310, 575, 975, 1120, 1225, 1325),
})

_TABLES: Mapping[RatingSystem, Mapping[str, tuple[int, ...]]] = MappingProxyType({
    RatingSystem.FES: FES_POINTS,
    RatingSystem.GSSG: GSSG_POINTS,
})


def point_table(system: RatingSystem = RatingSystem.FES) -> Mapping[str, tuple[int, ...]]:
    return _TABLES[RatingSystem(system)]


def factor_ids(system: RatingSystem = RatingSystem.FES) -> tuple[str, ...]:
    """Factor ids in display order ("1".."9" or "1","2","3","4A","4B","5","6")."""
    return tuple(point_table(system))


def points(factor_id: str, level, system: RatingSystem = RatingSystem.FES) -> int:
    """
    Point value for ``level`` of ``factor_id`` under ``system``.

    ``level`` may be a ``Level``, an encoded string such as ``"1-7"`` or a
    bare level number.  Unknown combinations score 0 and are logged; this
    never raises and never snaps to a neighbouring level.
    """
    from classification.levels import Level, LevelParseError

    system = RatingSystem(system)
    row = point_table(system).get(factor_id)
    if row is None:
        logger.warning("Point lookup miss: unknown factor %r for %s", factor_id, system.value)
        return 0

    if isinstance(level, int):
        parsed = Level(factor_id, level)
    elif isinstance(level, Level):
        parsed = level
    else:
        try:
            parsed = Level.parse(str(level), factor_id=factor_id)
        except LevelParseError:
            logger.warning("Point lookup miss: unparseable level %r for factor %s", level, factor_id)
            return 0

    if parsed.factor_id != factor_id:
        logger.warning("Point lookup miss: level %s does not belong to factor %s", parsed, factor_id)
        return 0

    number = parsed.number

    if not 1 <= number <= len(row):
        logger.warning(
            "Point lookup miss: level %s out of range for factor %s (%s, max %d)",
            number, factor_id, system.value, len(row),
        )
        return 0
    return row[number - 1]
