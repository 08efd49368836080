"""
Rating-system selection (FES vs. GSSG).

Decides which point tables an evaluation is locked to. No LLM involved,
pure pattern matching over whatever the request carries:

  1. An explicit ``ratingSystem`` flag always wins.
  2. A supervisory level ("Supervisory", "Manager", ...) selects GSSG.
  3. Prior factor data: 4A/4B keys or GSSG factor titles select GSSG.
  4. Otherwise FES.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable


class RatingSystem(str, Enum):
    FES = "FES"
    GSSG = "GSSG"


@dataclass
class SystemChoice:
    system: RatingSystem
    reason: str


# ── Patterns ──────────────────────────────────────────────────────

_SUPERVISORY_KEYWORDS = [
    "supervisory",
    "supervisor",
    "manager",
    "managerial",
    "team leader with supervisory",
]

_NON_SUPERVISORY_KEYWORDS = [
    "non-supervisory",
    "non supervisory",
    "nonsupervisory",
]

_GSSG_TITLE_KEYWORDS = [
    "program scope and effect",
    "organizational setting",
    "supervisory and managerial authority",
    "nature of contacts",
    "difficulty of typical work directed",
    "other conditions",
]

_GSSG_ONLY_IDS = {"4A", "4B"}

_FACTOR_KEY = re.compile(r"^\s*(?:factor\s*)?(\d+[ab]?)\s*$", re.IGNORECASE)


def normalize_factor_id(raw: Any) -> str | None:
    """Turn ``"Factor 4a"``, ``" 1 "`` or ``4`` into a bare id (``"4A"``, ``"1"``)."""
    if raw is None:
        return None
    match = _FACTOR_KEY.match(str(raw))
    if not match:
        return None
    return match.group(1).upper()


def parse_rating_system(raw: Any) -> RatingSystem | None:
    if raw is None:
        return None
    if isinstance(raw, RatingSystem):
        return raw
    text = str(raw).strip().upper()
    if not text:
        return None
    try:
        return RatingSystem(text)
    except ValueError:
        raise ValueError(f"Unknown rating system: {raw!r} (expected FES or GSSG)") from None


def _is_supervisory(supervisory_level: str | None) -> bool:
    if not supervisory_level:
        return False
    text = supervisory_level.lower()
    if any(kw in text for kw in _NON_SUPERVISORY_KEYWORDS):
        return False
    return any(kw in text for kw in _SUPERVISORY_KEYWORDS)


def _titles_from(existing: dict[str, Any]) -> Iterable[str]:
    for value in existing.values():
        if isinstance(value, dict):
            for key in ("title", "header"):
                text = value.get(key)
                if isinstance(text, str):
                    yield text.lower()


def detect_rating_system(
    *,
    explicit: Any = None,
    supervisory_level: str | None = None,
    existing_factors: dict[str, Any] | None = None,
) -> SystemChoice:
    """
    Lock the rating system for one evaluation.

    Parameters
    ----------
    explicit : value of the request's ``ratingSystem`` flag, if any
    supervisory_level : free text such as "Non-Supervisory" or "Supervisor"
    existing_factors : prior factor data keyed by factor key
    """
    system = parse_rating_system(explicit)
    if system is not None:
        return SystemChoice(system, "Explicit rating system flag")

    if _is_supervisory(supervisory_level):
        return SystemChoice(RatingSystem.GSSG, f"Supervisory level '{supervisory_level}'")

    existing = existing_factors or {}
    ids = {normalize_factor_id(key) for key in existing}
    if ids & _GSSG_ONLY_IDS:
        return SystemChoice(RatingSystem.GSSG, "Prior factors include 4A/4B")

    if any(kw in title for title in _titles_from(existing) for kw in _GSSG_TITLE_KEYWORDS):
        return SystemChoice(RatingSystem.GSSG, "Prior factor titles are GSSG titles")

    return SystemChoice(RatingSystem.FES, "Default to the Factor Evaluation System")
