"""
PD Agent — position description drafting.

Two flows:
- ``stream_position_description``: stream a PD for values the caller supplies
  (or that are derived from the caller's factor levels).
- ``generate_with_evaluation``: pick the most likely grade, run a full
  evaluation with statement, then stream a PD locked to those numbers.
  Progress is reported as a sequence of event dicts for the SSE layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from agents.evaluation.agent import EvaluationRequest, evaluate, generate_evaluation, write_statement
from classification.evaluation import Evaluation
from classification.factors import FACTOR_TITLES
from classification.grades import band_for_grade, normalize_grade
from classification.rating_system import detect_rating_system
from classification.statement import apply_evaluation
from core.config import get_settings

logger = logging.getLogger(__name__)

HANDBOOK = "occupationalhandbook"


@dataclass
class PdRequest:
    duties: str
    job_series: str = "0343"
    position_title: str = ""
    agency: str = ""
    organization: str = ""
    lowest_org: str = ""
    supervisory_level: str = "Non-Supervisory"
    gs_grade: str | None = None
    grade_range: str | None = None
    total_points: int | None = None
    rating_system: str | None = None
    factor_levels: dict[str, Any] = field(default_factory=dict)

    def evaluation_request(self, target_grade: str | None = None) -> EvaluationRequest:
        return EvaluationRequest(
            duties=self.duties,
            target_grade=target_grade or self.gs_grade,
            existing_factors=self.factor_levels,
            rating_system=self.rating_system,
            supervisory_level=self.supervisory_level,
            job_series=self.job_series,
            position_title=self.position_title,
        )


def _str(data: dict[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def validate_pd_request(data: dict[str, Any]) -> PdRequest:
    """Raises ValueError when duties are missing or the grade is unknown."""
    duties = _str(data, "historicalData", "dutiesText", "duties")
    if not duties:
        raise ValueError("Job duties are required to generate a position description")

    grade = _str(data, "gsGrade", "targetGrade")
    factor_levels = data.get("factorLevels") or data.get("existingFactors") or {}
    if not isinstance(factor_levels, dict):
        raise ValueError("'factorLevels' must be an object")

    total = data.get("totalPoints")
    return PdRequest(
        duties=duties,
        job_series=_str(data, "jobSeries", default="0343"),
        position_title=_str(data, "subJobSeries", "positionTitle", "jobTitle"),
        agency=_str(data, "federalAgency", "agency"),
        organization=_str(data, "subOrganization", "organization"),
        lowest_org=_str(data, "lowestOrg"),
        supervisory_level=_str(data, "supervisoryLevel", default="Non-Supervisory"),
        gs_grade=band_for_grade(grade).grade if grade else None,
        grade_range=_str(data, "gradeRange") or None,
        total_points=int(total) if isinstance(total, (int, float)) and not isinstance(total, bool) else None,
        rating_system=_str(data, "ratingSystem") or None,
        factor_levels=factor_levels,
    )


def _factor_block(request: PdRequest, evaluation: Evaluation | None) -> str:
    if evaluation is not None:
        return "\n".join(f"**{a.header}**" for a in evaluation.assignments.values())

    system = detect_rating_system(
        explicit=request.rating_system,
        supervisory_level=request.supervisory_level,
    ).system
    return "\n".join(
        f"**Factor {factor_id} – {title} Level {factor_id}-X, XXX Points**"
        for factor_id, title in FACTOR_TITLES[system].items()
    )


def build_pd_prompt(request: PdRequest, evaluation: Evaluation | None = None) -> str:
    """
    Fill the PD template.  Values from ``evaluation`` override whatever
    grade, range and total the request carried.
    """
    from core.prompts import render_prompt
    from core.reference import reference_text

    if evaluation is not None:
        final_grade = evaluation.final_grade
        grade_range = evaluation.grade_range
        total_points: Any = evaluation.total_points
    else:
        final_grade = request.gs_grade or "[not provided]"
        grade_range = request.grade_range or (
            band_for_grade(request.gs_grade).range_label if request.gs_grade else "[not provided]"
        )
        total_points = request.total_points if request.total_points is not None else "[not provided]"

    grade_number = final_grade.replace("GS-", "") if final_grade.startswith("GS-") else "[grade]"
    organization = " ".join(part for part in (request.organization, request.lowest_org) if part)

    return render_prompt(
        "position_description",
        final_grade=final_grade,
        grade_range=grade_range,
        total_points=total_points,
        job_series=request.job_series,
        grade_number=grade_number,
        position_title=request.position_title or "Position",
        agency=request.agency or "Federal Agency",
        organization=organization or "Organization",
        supervisory_level=request.supervisory_level,
        duties=request.duties,
        factor_block=_factor_block(request, evaluation),
        reference=reference_text(HANDBOOK),
    )


def locked_evaluation(request: PdRequest) -> Evaluation | None:
    """Deterministic evaluation of the request's own factor levels, if it has any."""
    if not request.factor_levels:
        return None
    return evaluate(request.evaluation_request()).evaluation


def stream_position_description(request: PdRequest, evaluation: Evaluation | None = None) -> Iterator[str]:
    """Yield PD text deltas from the PD model."""
    from core.llm import stream_chat_text
    from core.prompts import load_prompt

    if evaluation is None:
        evaluation = locked_evaluation(request)
    prompt = build_pd_prompt(request, evaluation)
    logger.info("Streaming PD (%d char prompt)", len(prompt))
    yield from stream_chat_text(load_prompt("system_classifier"), prompt, model=get_settings().llm_pd_model)


def generate_with_evaluation(request: PdRequest) -> Iterator[dict[str, Any]]:
    """
    Coordinated evaluation + PD generation as progress events.

    Events, in order: ``{"status": ...}`` updates, one ``{"evaluation": ...}``,
    many ``{"response": <delta>}``, and a final ``{"complete": True, "results": ...}``.
    """
    from agents.series.agent import grade_relevancy, top_grade

    yield {"status": "Determining grade relevancy..."}
    target = request.gs_grade
    if target is None:
        relevancy = grade_relevancy(
            request.duties, position_title=request.position_title, job_series=request.job_series,
        )
        target = top_grade(relevancy)
    target = normalize_grade(target)

    yield {"status": f"Generating evaluation statement for {target}..."}
    evaluation_request = request.evaluation_request(target)
    outcome = generate_evaluation(evaluation_request)
    result = write_statement(evaluation_request, outcome)
    evaluation = outcome.evaluation
    yield {"evaluation": result}

    yield {"status": "Generating position description with validated results..."}
    parts: list[str] = []
    for delta in stream_position_description(request, evaluation):
        parts.append(delta)
        yield {"response": delta}

    description = apply_evaluation("".join(parts), evaluation)
    yield {
        "complete": True,
        "results": {
            "evaluationStatement": result["evaluationStatement"],
            "positionDescription": description.text,
            "finalGrade": evaluation.final_grade,
            "gradeRange": evaluation.grade_range,
            "totalPoints": evaluation.total_points,
            "ratingSystem": evaluation.system.value,
        },
    }


# ── Prompt inspection ─────────────────────────────────────────────

PREVIEW_CHARS = 500
LONG_PROMPT_CHARS = 12000


def prompt_warnings(prompt: str) -> list[str]:
    warnings = []
    if "[not provided]" in prompt or "[grade]" in prompt:
        warnings.append("Prompt has values that were not provided")
    if "XXX" in prompt:
        warnings.append("Prompt carries unfilled factor level placeholders")
    if len(prompt) > LONG_PROMPT_CHARS:
        warnings.append("Prompt is very long - may be truncated")
    return warnings


def inspect_prompt(request: PdRequest, *, check_connection: bool = False) -> dict[str, Any]:
    """Build the PD prompt without sending it, and report on it."""
    prompt = build_pd_prompt(request, locked_evaluation(request))
    settings = get_settings()
    result: dict[str, Any] = {
        "status": "success",
        "hasApiKey": bool(settings.openai_api_key.strip()),
        "promptLength": len(prompt),
        "promptPreview": prompt[:PREVIEW_CHARS],
        "warnings": prompt_warnings(prompt),
    }
    if check_connection:
        from core.llm import check_connection as _check

        result["openaiConnectionOk"] = _check()
    return result
