"""
Factor levels and the level navigator.

A level is carried internally as a ``Level`` value; the ``"<factor>-<n>"``
string form ("1-7", "4A-2", or the letter form "7-C") only exists at the
request/response boundary.  ``normalize_level`` is the single place where
untrusted level strings enter the system: it repairs a wrong factor prefix,
caps out-of-range numbers and falls back to level 1 for garbage.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace

from classification.points import point_table
from classification.rating_system import RatingSystem

logger = logging.getLogger(__name__)


class LevelParseError(ValueError):
    """Raised when a level string cannot be decoded."""


class UnknownFactorError(ValueError):
    """Raised when a factor id does not exist in the active rating system."""


_LEVEL_PATTERN = re.compile(
    r"^\s*(?:level\s+)?(?:(?P<prefix>\d+[ab]?)\s*[-–—]\s*)?(?P<rung>\d+|[a-z])\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Level:
    """One rung of one factor.  ``letter`` keeps the "7-C" spelling alive."""

    factor_id: str
    number: int
    letter: bool = False

    def encode(self) -> str:
        if self.letter:
            return f"{self.factor_id}-{chr(ord('A') + self.number - 1)}"
        return f"{self.factor_id}-{self.number}"

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def parse(cls, text: str, *, factor_id: str | None = None) -> "Level":
        """
        Strictly decode ``"1-7"``, ``"4A-2"``, ``"7-C"``, ``"Level 2-3"`` or a bare ``"3"``.

        A bare rung takes ``factor_id`` as its prefix.  Raises LevelParseError
        on anything else; no clamping or prefix repair happens here.
        """
        match = _LEVEL_PATTERN.match(text or "")
        if not match:
            raise LevelParseError(f"Malformed level: {text!r}")

        prefix = match.group("prefix")
        rung = match.group("rung")
        owner = prefix.upper() if prefix else (factor_id or "")
        if rung.isdigit():
            return cls(owner, int(rung))
        return cls(owner, ord(rung.upper()) - ord("A") + 1, letter=True)


def max_level(factor_id: str, system: RatingSystem = RatingSystem.FES) -> int:
    row = point_table(system).get(factor_id)
    if row is None:
        raise UnknownFactorError(f"Unknown factor {factor_id!r} for {RatingSystem(system).value}")
    return len(row)


def normalize_level(
    factor_id: str,
    raw,
    system: RatingSystem = RatingSystem.FES,
    warnings: list[str] | None = None,
) -> Level:
    """
    Validate an untrusted level for ``factor_id`` and return a clean ``Level``.

    - missing or malformed        -> level 1
    - prefix of another factor    -> prefix replaced by ``factor_id``
    - above the factor's maximum  -> capped at the maximum
    - below 1                     -> 1

    Every repair is logged and, when ``warnings`` is given, appended to it.
    """
    ceiling = max_level(factor_id, system)

    def _warn(message: str) -> None:
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)

    if isinstance(raw, Level):
        level = raw
    elif isinstance(raw, int) and not isinstance(raw, bool):
        level = Level(factor_id, raw)
    elif raw is None or not str(raw).strip():
        _warn(f"Factor {factor_id}: no level provided, defaulting to {factor_id}-1")
        return Level(factor_id, 1)
    else:
        try:
            level = Level.parse(str(raw), factor_id=factor_id)
        except LevelParseError:
            _warn(f"Factor {factor_id}: could not parse level {raw!r}, defaulting to {factor_id}-1")
            return Level(factor_id, 1)

    if level.factor_id != factor_id:
        _warn(f"Factor {factor_id}: level {level} carries the wrong factor prefix, corrected")
        level = replace(level, factor_id=factor_id)

    if level.number > ceiling:
        _warn(f"Factor {factor_id}: level {level.number} above maximum {ceiling}, capped")
        level = replace(level, number=ceiling)
    elif level.number < 1:
        _warn(f"Factor {factor_id}: level {level.number} below 1, raised to 1")
        level = replace(level, number=1)

    return level


def _current(factor_id: str, level, system: RatingSystem) -> Level:
    if (
        isinstance(level, Level)
        and level.factor_id == factor_id
        and 1 <= level.number <= max_level(factor_id, system)
    ):
        return level
    return normalize_level(factor_id, level, system)


def next_higher(factor_id: str, level, system: RatingSystem = RatingSystem.FES) -> Level | None:
    """The next rung up, or None when ``level`` is already the factor's maximum."""
    current = _current(factor_id, level, system)
    if current.number >= max_level(factor_id, system):
        return None
    return replace(current, number=current.number + 1)


def next_lower(factor_id: str, level, system: RatingSystem = RatingSystem.FES) -> Level | None:
    """The next rung down, or None at level 1."""
    current = _current(factor_id, level, system)
    if current.number <= 1:
        return None
    return replace(current, number=current.number - 1)
