"""
Series Agent — job-series classification and grade relevancy.

Both calls are thin: the LLM answers, and this module turns loosely
formatted replies into clean lists.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from classification.grades import ALLOWED_GRADES, normalize_grade
from core.config import get_settings
from core.llm import LLMError

logger = logging.getLogger(__name__)

_SERIES_LINE = re.compile(r"\d+\.\s*(\d{4})\s*[-:–]?\s*(.*)")
_GRADE_MENTION = re.compile(r"GS-\d{1,2}", re.IGNORECASE)

MAX_GRADES = 5


# ── Series ────────────────────────────────────────────────────────


def parse_series_list(text: str) -> list[dict[str, str]]:
    """``"1. 0343 - Management and Program Analysis"`` lines → code/title dicts."""
    results = [
        {"seriesCode": match.group(1), "seriesTitle": match.group(2).strip()}
        for match in _SERIES_LINE.finditer((text or "").strip())
    ]
    if not results and text and text.strip():
        logger.warning("Series reply had no numbered lines; returning it verbatim")
        results.append({"seriesCode": text.strip(), "seriesTitle": ""})
    return results


def classify_series(duties: str, *, position_title: str = "") -> list[dict[str, str]]:
    """Top three job series for the duties."""
    from core.llm import chat_text
    from core.prompts import load_prompt, render_prompt

    if not duties or not duties.strip():
        raise ValueError("No duties provided")

    user = render_prompt("classify_series", duties=duties.strip(), position_title=position_title or "not specified")
    response = chat_text(load_prompt("system_classifier"), user)
    series = parse_series_list(response.text)
    logger.info("Classified duties into %d series", len(series))
    return series


# ── Grade relevancy ───────────────────────────────────────────────


def _percentage(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        try:
            value = float(str(raw).strip().rstrip("%"))
        except ValueError:
            return 0.0
    return min(max(value, 0.0), 100.0)


def _entries_from_reply(text: str) -> list[dict[str, Any]]:
    from core.llm import parse_json_payload

    try:
        payload = parse_json_payload(text)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        payload = payload.get("grades") or payload.get("gradeRelevancy")
    if isinstance(payload, list):
        return [entry for entry in payload if isinstance(entry, dict)]

    # Plain text: take grade mentions in order with a descending share.
    logger.warning("Grade relevancy reply was not JSON; falling back to grade mentions")
    entries: list[dict[str, Any]] = []
    for match in _GRADE_MENTION.finditer(text or ""):
        if len(entries) >= MAX_GRADES:
            break
        entries.append({"grade": match.group(), "percentage": 100 / (len(entries) + 1)})
    return entries


def normalize_relevancy(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Clean grade/percentage pairs.

    Grades are normalized ("GS-9" → "GS-09") and anything outside the
    two-grade-interval set is dropped; percentages are clamped to 0-100
    and rescaled to sum to 100, with the rounding remainder on the last
    entry.
    """
    cleaned: list[dict[str, Any]] = []
    seen: set[str] = set()
    for entry in entries:
        grade = normalize_grade(entry.get("grade"))
        if grade not in ALLOWED_GRADES or grade in seen:
            continue
        seen.add(grade)
        cleaned.append({"grade": grade, "percentage": _percentage(entry.get("percentage"))})

    cleaned = cleaned[:MAX_GRADES]
    total = sum(entry["percentage"] for entry in cleaned)
    if total > 0 and abs(total - 100) > 0.01:
        for entry in cleaned:
            entry["percentage"] = float(round(entry["percentage"] / total * 100))
        remainder = 100 - sum(entry["percentage"] for entry in cleaned)
        if abs(remainder) > 0.01:
            cleaned[-1]["percentage"] += remainder
    return cleaned


def grade_relevancy(duties: str, *, position_title: str = "", job_series: str = "") -> list[dict[str, Any]]:
    """Most likely grades for the duties with percentage likelihoods."""
    from core.llm import chat_text
    from core.prompts import load_prompt, render_prompt

    user = render_prompt(
        "grade_relevancy",
        duties=duties.strip(),
        position_title=position_title or "not specified",
        job_series=job_series or "not specified",
        allowed_grades=", ".join(ALLOWED_GRADES),
    )
    response = chat_text(load_prompt("system_classifier"), user)
    return normalize_relevancy(_entries_from_reply(response.text))


def top_grade(relevancy: list[dict[str, Any]]) -> str:
    """Highest-likelihood grade, or the configured default when there is none."""
    if not relevancy:
        return normalize_grade(get_settings().default_target_grade)
    return max(relevancy, key=lambda entry: entry["percentage"])["grade"]


def recommend_series(duties: str, *, position_title: str = "", job_series: str = "") -> dict[str, Any]:
    """Series recommendations plus grade relevancy; a relevancy failure degrades to an empty list."""
    series = classify_series(duties, position_title=position_title)

    try:
        relevancy = grade_relevancy(duties, position_title=position_title, job_series=job_series)
    except LLMError as exc:
        logger.warning("Grade relevancy unavailable: %s", exc)
        relevancy = []

    recommendations = [
        {"code": item["seriesCode"], "title": item["seriesTitle"], "rank": rank}
        for rank, item in enumerate(series, start=1)
    ]
    return {
        "recommendations": recommendations,
        "gsGrade": top_grade(relevancy),
        "gradeRelevancy": relevancy,
    }
