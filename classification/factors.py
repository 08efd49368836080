"""
Factor-Set Builder — turn partial, missing or AI-suggested factor data into
a complete evaluation for one rating system.

Source priority per factor: the user's existing level, then the model's
suggested level, then an intelligent default (grade baseline adjusted by
duties keywords).  Titles always come from the locked rating system; the
input never gets to rename a factor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from classification.evaluation import Evaluation, FactorAssignment
from classification.grades import UnknownGradeError, normalize_grade
from classification.levels import Level, max_level, normalize_level
from classification.points import factor_ids
from classification.rating_system import RatingSystem, normalize_factor_id

logger = logging.getLogger(__name__)


FACTOR_TITLES: Mapping[RatingSystem, Mapping[str, str]] = MappingProxyType({
    RatingSystem.FES: MappingProxyType({
        "1": "Knowledge Required by the Position",
        "2": "Supervisory Controls",
        "3": "Guidelines",
        "4": "Complexity",
        "5": "Scope and Effect",
        "6": "Personal Contacts",
        "7": "Purpose of Contacts",
        "8": "Physical Demands",
        "9": "Work Environment",
    }),
    RatingSystem.GSSG: MappingProxyType({
        "1": "Program Scope and Effect",
        "2": "Organizational Setting",
        "3": "Supervisory and Managerial Authority Exercised",
        "4A": "Personal Contacts – Nature of Contacts",
        "4B": "Personal Contacts – Purpose of Contacts",
        "5": "Difficulty of Typical Work Directed",
        "6": "Other Conditions",
    }),
})


# ── Intelligent defaults ──────────────────────────────────────────
# Starting level numbers per grade. Every row totals inside its grade's band
# before any keyword adjustment, except GSSG GS-05 (see below).

_FES_BASELINES = {
    "GS-05": (4, 2, 2, 2, 2, 2, 1, 1, 1),
    "GS-07": (5, 3, 2, 3, 2, 2, 2, 1, 1),
    "GS-09": (6, 3, 3, 3, 3, 2, 2, 1, 1),
    "GS-11": (7, 4, 3, 4, 3, 3, 2, 1, 1),
    "GS-12": (7, 4, 4, 4, 4, 3, 3, 1, 1),
    "GS-13": (8, 4, 4, 5, 4, 3, 3, 1, 1),
    "GS-14": (8, 5, 5, 5, 5, 3, 3, 1, 1),
    "GS-15": (9, 5, 5, 6, 5, 4, 4, 1, 1),
}

# GSSG cannot reach the GS-05 band. Its baseline is the lowest possible set,
# which is uniform, so the builder diversifies it to 1805 and reconciliation
# then forces the result up to GS-07.
_GSSG_BASELINES = {
    "GS-05": (1, 1, 1, 1, 1, 1, 1),
    "GS-07": (1, 1, 1, 1, 1, 3, 1),
    "GS-09": (2, 1, 1, 2, 1, 4, 2),
    "GS-11": (2, 2, 2, 2, 2, 4, 2),
    "GS-12": (3, 2, 2, 2, 2, 5, 2),
    "GS-13": (3, 2, 3, 3, 3, 5, 3),
    "GS-14": (4, 3, 3, 3, 3, 6, 3),
    "GS-15": (5, 3, 4, 4, 4, 7, 4),
}

GRADE_BASELINES: Mapping[RatingSystem, Mapping[str, dict[str, int]]] = MappingProxyType({
    system: MappingProxyType({
        grade: dict(zip(factor_ids(system), row)) for grade, row in table.items()
    })
    for system, table in ((RatingSystem.FES, _FES_BASELINES), (RatingSystem.GSSG, _GSSG_BASELINES))
})


@dataclass(frozen=True)
class KeywordRule:
    phrases: tuple[str, ...]
    deltas: Mapping[str, int]

    def matches(self, text: str) -> bool:
        return any(phrase in text for phrase in self.phrases)


KEYWORD_RULES: Mapping[RatingSystem, tuple[KeywordRule, ...]] = MappingProxyType({
    RatingSystem.FES: (
        KeywordRule(("national", "nationwide", "agency-wide"), {"5": 1}),
        KeywordRule(("independently", "minimal supervision"), {"2": 1}),
        KeywordRule(("policy", "expert", "novel"), {"1": 1, "3": 1}),
        KeywordRule(("routine", "clerical"), {"1": -1, "4": -1}),
        KeywordRule(("congress", "senior officials"), {"6": 1, "7": 1}),
        KeywordRule(("travel", "lifting", "inspection"), {"8": 1}),
        KeywordRule(("hazard", "laboratory", "outdoors"), {"9": 1}),
    ),
    RatingSystem.GSSG: (
        KeywordRule(("national", "nationwide", "agency-wide"), {"1": 1}),
        KeywordRule(("supervises",), {"3": 1}),
        KeywordRule(("routine", "clerical"), {"5": -1}),
        KeywordRule(("congress", "senior officials"), {"4A": 1, "4B": 1}),
    ),
})


def default_level(
    factor_id: str,
    system: RatingSystem,
    target_grade: str,
    duties_text: str = "",
) -> Level:
    """Grade baseline for ``factor_id``, shifted by every matching duties keyword rule."""
    system = RatingSystem(system)
    grade = normalize_grade(target_grade)
    baseline = GRADE_BASELINES[system].get(grade or "")
    if baseline is None:
        raise UnknownGradeError(f"No baseline levels for grade {target_grade!r}")

    number = baseline[factor_id]
    text = (duties_text or "").lower()
    for rule in KEYWORD_RULES[system]:
        if factor_id in rule.deltas and rule.matches(text):
            number += rule.deltas[factor_id]

    number = max(1, min(number, max_level(factor_id, system)))
    return Level(factor_id, number)


# ── Diversification ───────────────────────────────────────────────


@dataclass(frozen=True)
class DiversificationRule:
    """
    Presentation heuristic for a degenerate factor set.

    When every factor carries the same level number the result reads as
    unrealistic, so the impact factors are bumped up and one factor is
    nudged down.  Only exact universal duplication triggers it; this is
    not a scoring law.
    """

    bumps: Mapping[str, int] = field(default_factory=lambda: {"1": 2, "5": 2})
    nudges: Mapping[str, int] = field(default_factory=lambda: {"3": -1})

    def applies(self, levels: Mapping[str, Level]) -> bool:
        return len(levels) > 1 and len({level.number for level in levels.values()}) == 1


DEFAULT_DIVERSIFICATION = DiversificationRule()


def diversify(
    levels: dict[str, Level],
    system: RatingSystem,
    rule: DiversificationRule = DEFAULT_DIVERSIFICATION,
) -> bool:
    """Apply ``rule`` to ``levels`` in place; True when anything moved."""
    if not rule.applies(levels):
        return False

    moved = False
    for factor_id, delta in {**rule.bumps, **rule.nudges}.items():
        current = levels.get(factor_id)
        if current is None:
            continue
        number = max(1, min(current.number + delta, max_level(factor_id, system)))
        if number != current.number:
            levels[factor_id] = Level(factor_id, number, current.letter)
            moved = True

    if moved:
        logger.info("All %s factors shared one level; diversified factor set", RatingSystem(system).value)
    return moved


# ── Builder ───────────────────────────────────────────────────────


@dataclass
class BuildResult:
    evaluation: Evaluation
    sources: dict[str, str] = field(default_factory=dict)  # factor id -> existing|suggested|default
    diversified: bool = False

    @property
    def warnings(self) -> list[str]:
        return self.evaluation.warnings


def _index_entries(raw: Mapping[str, Any] | None, system: RatingSystem, warnings: list[str]) -> dict[str, dict]:
    """Key factor data by bare factor id, dropping ids foreign to ``system``."""
    known = set(factor_ids(system))
    indexed: dict[str, dict] = {}
    for key, value in (raw or {}).items():
        factor_id = normalize_factor_id(key)
        if factor_id not in known:
            message = f"Dropped factor {key!r}: not a {system.value} factor"
            logger.warning(message)
            warnings.append(message)
            continue
        if isinstance(value, Mapping):
            indexed[factor_id] = dict(value)
        else:
            indexed[factor_id] = {"level": value}
    return indexed


def _has_level(entry: dict | None) -> bool:
    if not entry:
        return False
    level = entry.get("level")
    return level is not None and str(level).strip() != ""


def _placeholder_rationale(title: str) -> str:
    return f"{title} level assigned from the duties described; no rationale was provided."


def build_factor_set(
    system: RatingSystem,
    duties_text: str,
    target_grade: str,
    existing: Mapping[str, Any] | None = None,
    suggested: Mapping[str, Any] | None = None,
    *,
    rule: DiversificationRule = DEFAULT_DIVERSIFICATION,
) -> BuildResult:
    """
    Assemble a complete, normalized factor set.

    Parameters
    ----------
    system : locked rating system
    duties_text : free-text duties, used only for default levels
    target_grade : requested grade; selects the baseline levels
    existing : prior factor data (user edits), keyed by "Factor <id>" or id
    suggested : model-suggested factor data in the same shape

    Returns
    -------
    BuildResult whose evaluation has one assignment per factor of ``system``.
    """
    system = RatingSystem(system)
    warnings: list[str] = []
    user = _index_entries(existing, system, warnings)
    model = _index_entries(suggested, system, warnings)

    levels: dict[str, Level] = {}
    rationales: dict[str, str] = {}
    sources: dict[str, str] = {}

    for factor_id in factor_ids(system):
        for source, entries in (("existing", user), ("suggested", model)):
            entry = entries.get(factor_id)
            if _has_level(entry):
                levels[factor_id] = normalize_level(factor_id, entry["level"], system, warnings)
                sources[factor_id] = source
                break
        else:
            levels[factor_id] = default_level(factor_id, system, target_grade, duties_text)
            sources[factor_id] = "default"

        for entries in (user, model):
            text = (entries.get(factor_id) or {}).get("rationale")
            if isinstance(text, str) and text.strip():
                rationales[factor_id] = text.strip()
                break

    diversified = diversify(levels, system, rule)

    titles = FACTOR_TITLES[system]
    assignments = {
        factor_id: FactorAssignment(
            factor_id=factor_id,
            level=level,
            title=titles[factor_id],
            rationale=rationales.get(factor_id) or _placeholder_rationale(titles[factor_id]),
            system=system,
        )
        for factor_id, level in levels.items()
    }

    evaluation = Evaluation(
        system=system,
        assignments=assignments,
        target_grade=normalize_grade(target_grade),
        warnings=warnings,
    )
    logger.debug("Built %s factor set: %s", system.value, sources)
    return BuildResult(evaluation=evaluation, sources=sources, diversified=diversified)
