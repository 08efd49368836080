"""
Keep AI-written evaluation prose consistent with a reconciled Evaluation.

The model drafts headers like ``**Factor 2 – Supervisory Controls Level 2-4,
450 Points**`` and a three-line summary; whatever numbers it wrote, the
headers and summary are rewritten from the Evaluation so the statement can
never disagree with the computed levels, total and grade.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from classification.evaluation import Evaluation

logger = logging.getLogger(__name__)


_HEADER = re.compile(
    r"Factor\s+(?P<id>\d+[AaBb]?)\s*[–—-]\s*[^\n]*?Level\s+(?P<level>[0-9A-Za-z]+-[0-9A-Za-z]+|\d+),\s*(?P<points>[\d,]+)\s*Points"
)

_SUMMARY = {
    "totalPoints": re.compile(r"\*\*Total Points:[^*\n]*\*\*"),
    "finalGrade": re.compile(r"\*\*Final Grade:[^*\n]*\*\*"),
    "gradeRange": re.compile(r"\*\*Grade Range:[^*\n]*\*\*"),
}

_SUMMARY_VALUE = {
    "totalPoints": re.compile(r"Total Points:\s*\**\s*([\d,]+)"),
    "finalGrade": re.compile(r"Final Grade:\s*\**\s*(GS-\d{1,2})", re.IGNORECASE),
    "gradeRange": re.compile(r"Grade Range:\s*\**\s*(\d+\s*(?:-\s*\d+|\+))"),
}


@dataclass
class FactorHeader:
    factor_id: str
    level: str
    points: int
    start: int
    end: int


@dataclass
class StatementResult:
    text: str
    corrections: list[str] = field(default_factory=list)


def parse_factor_headers(text: str) -> list[FactorHeader]:
    """Every ``Factor N – … Level X-Y, Z Points`` header in ``text``, in order."""
    found = []
    for match in _HEADER.finditer(text or ""):
        found.append(FactorHeader(
            factor_id=match.group("id").upper(),
            level=match.group("level"),
            points=int(match.group("points").replace(",", "")),
            start=match.start(),
            end=match.end(),
        ))
    return found


def extract_summary(text: str) -> dict[str, str | int | None]:
    """Read the Total Points / Final Grade / Grade Range values the text claims."""
    summary: dict[str, str | int | None] = {}
    for key, pattern in _SUMMARY_VALUE.items():
        match = pattern.search(text or "")
        if not match:
            summary[key] = None
        elif key == "totalPoints":
            summary[key] = int(match.group(1).replace(",", ""))
        else:
            summary[key] = re.sub(r"\s+", "", match.group(1)).upper()
    return summary


def apply_evaluation(text: str, evaluation: Evaluation) -> StatementResult:
    """
    Rewrite factor headers and the summary block of ``text`` from ``evaluation``.

    Headers for factors the evaluation does not know are left alone and
    reported; factors the text never mentions are reported too.  A missing
    summary block is appended.
    """
    corrections: list[str] = []
    pieces: list[str] = []
    cursor = 0
    seen: set[str] = set()

    for header in parse_factor_headers(text):
        assignment = evaluation.assignments.get(header.factor_id)
        if assignment is None:
            corrections.append(f"Factor {header.factor_id}: not part of the {evaluation.system.value} evaluation")
            continue
        seen.add(header.factor_id)
        if header.level != assignment.level.encode() or header.points != assignment.points:
            corrections.append(
                f"Factor {header.factor_id}: Level {header.level}, {header.points} Points"
                f" -> Level {assignment.level}, {assignment.points} Points"
            )
        pieces.append(text[cursor:header.start])
        pieces.append(assignment.header)
        cursor = header.end
    pieces.append(text[cursor:])
    rewritten = "".join(pieces)

    for factor_id in evaluation.assignments:
        if factor_id not in seen:
            corrections.append(f"Factor {factor_id}: missing from statement")

    claimed = extract_summary(rewritten)
    replacements = {
        "totalPoints": f"**Total Points: {evaluation.total_points}**",
        "finalGrade": f"**Final Grade: {evaluation.final_grade}**",
        "gradeRange": f"**Grade Range: {evaluation.grade_range}**",
    }
    actual = {
        "totalPoints": evaluation.total_points,
        "finalGrade": evaluation.final_grade,
        "gradeRange": evaluation.grade_range,
    }
    if all(pattern.search(rewritten) for pattern in _SUMMARY.values()):
        for key, pattern in _SUMMARY.items():
            if claimed[key] is not None and claimed[key] != actual[key]:
                corrections.append(f"{key}: {claimed[key]} -> {actual[key]}")
            rewritten = pattern.sub(lambda _m, line=replacements[key]: line, rewritten)
    else:
        for pattern in _SUMMARY.values():
            rewritten = pattern.sub("", rewritten)
        rewritten = rewritten.rstrip() + "\n\n" + evaluation.summary() + "\n"
        corrections.append("Summary block missing or incomplete; appended")

    if corrections:
        logger.info("Evaluation statement corrected (%d changes)", len(corrections))
        for note in corrections:
            logger.debug("  %s", note)
    return StatementResult(text=rewritten, corrections=corrections)
