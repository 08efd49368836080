"""
Evaluation Agent — orchestrates one factor evaluation.

Pipeline:
1. Validate the request
2. Lock the rating system (FES / GSSG)
3. Optionally ask the LLM for suggested factor levels
4. Build a complete factor set (existing > suggested > defaults)
5. Reconcile the total into the target grade band
6. Run hard evals on the output contract
7. Optionally draft the evaluation statement and rewrite its numbers
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from classification.evaluation import Evaluation
from classification.factors import FACTOR_TITLES, BuildResult, build_factor_set
from classification.grades import band_for_grade, normalize_grade
from classification.points import point_table
from classification.rating_system import RatingSystem, SystemChoice, detect_rating_system, normalize_factor_id
from classification.reconcile import ReconcileReport, reconcile, resolve_forbidden
from classification.statement import apply_evaluation
from core.config import get_settings
from evals.hard import run_all

logger = logging.getLogger(__name__)


@dataclass
class EvaluationRequest:
    """Validated evaluation input."""

    duties: str
    target_grade: str | None = None
    existing_factors: dict[str, Any] = field(default_factory=dict)
    rating_system: str | None = None
    supervisory_level: str | None = None
    job_series: str = ""
    position_title: str = ""
    requirements: str = ""


@dataclass
class EvaluationOutcome:
    """Result of one evaluation run."""

    evaluation: Evaluation
    system_choice: SystemChoice
    build: BuildResult
    report: ReconcileReport
    eval_results: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = self.evaluation.to_dict()
        result["ratingSystemReason"] = self.system_choice.reason
        result["targetGrade"] = self.evaluation.target_grade
        return result


def _text(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def validate_request(data: dict[str, Any]) -> EvaluationRequest:
    """
    Validate a raw request dict.

    Raises ValueError for missing duties, an unknown target grade or a
    malformed ``existingFactors``.
    """
    duties = _text(data, "dutiesText", "duties", "historicalData")
    if not duties:
        raise ValueError("Missing or empty required field: 'dutiesText'")

    raw_grade = _text(data, "targetGrade", "gsGrade", "expectedGrade")
    target_grade = None
    if raw_grade:
        target_grade = band_for_grade(raw_grade).grade

    existing = data.get("existingFactors") or {}
    if not isinstance(existing, dict):
        raise ValueError(f"'existingFactors' must be an object, got {type(existing).__name__}")

    return EvaluationRequest(
        duties=duties,
        target_grade=target_grade,
        existing_factors=existing,
        rating_system=_text(data, "ratingSystem") or None,
        supervisory_level=_text(data, "supervisoryLevel") or None,
        job_series=_text(data, "jobSeries"),
        position_title=_text(data, "positionTitle", "jobTitle", "subJobSeries"),
        requirements=_text(data, "requirements"),
    )


def lock_system(request: EvaluationRequest) -> SystemChoice:
    choice = detect_rating_system(
        explicit=request.rating_system,
        supervisory_level=request.supervisory_level,
        existing_factors=request.existing_factors,
    )
    logger.info("Rating system %s (%s)", choice.system.value, choice.reason)
    return choice


def factor_table_text(system: RatingSystem) -> str:
    """One line per factor listing every valid level and its points, for prompts."""
    titles = FACTOR_TITLES[system]
    lines = []
    for factor_id, row in point_table(system).items():
        levels = ", ".join(f"{factor_id}-{n} ({pts})" for n, pts in enumerate(row, start=1))
        lines.append(f"Factor {factor_id} ({titles[factor_id]}): {levels}")
    return "\n".join(lines)


def suggest_factor_levels(request: EvaluationRequest, system: RatingSystem, target_grade: str) -> dict[str, Any]:
    """
    Ask the LLM for starting levels.

    Returns factor data keyed by factor id; an unparseable reply yields {}
    so the builder falls back to defaults.  LLMError propagates.
    """
    from core.llm import chat_text, parse_json_payload
    from core.prompts import load_prompt, render_prompt

    user = render_prompt(
        "factor_levels",
        rating_system=system.value,
        factor_table=factor_table_text(system),
        target_grade=target_grade,
        grade_range=band_for_grade(target_grade, system).range_label,
        job_series=request.job_series or "not specified",
        position_title=request.position_title or "not specified",
        supervisory_level=request.supervisory_level or "Non-Supervisory",
        duties=request.duties,
    )
    response = chat_text(load_prompt("system_classifier"), user, json_mode=True)

    try:
        payload = parse_json_payload(response.text)
    except ValueError as exc:
        logger.warning("Ignoring factor suggestions: %s", exc)
        return {}

    factors = payload.get("factors", payload) if isinstance(payload, dict) else None
    if not isinstance(factors, dict):
        logger.warning("Ignoring factor suggestions: expected an object, got %s", type(factors).__name__)
        return {}
    return factors


def evaluate(request: EvaluationRequest, *, suggested: dict[str, Any] | None = None) -> EvaluationOutcome:
    """Deterministic half of the pipeline: lock, build, reconcile, check."""
    choice = lock_system(request)
    target_grade = request.target_grade or normalize_grade(get_settings().default_target_grade)

    build = build_factor_set(
        choice.system,
        request.duties,
        target_grade,
        existing=request.existing_factors,
        suggested=suggested,
    )
    evaluation = build.evaluation
    report = reconcile(evaluation, target_grade)

    if evaluation.final_grade != target_grade:
        evaluation.warnings.append(
            f"{target_grade} is not reachable with {choice.system.value} levels; "
            f"reported {evaluation.final_grade} at {evaluation.total_points} points"
        )

    outcome = EvaluationOutcome(evaluation=evaluation, system_choice=choice, build=build, report=report)
    outcome.eval_results = run_all(evaluation.to_dict())
    failed = [name for name, passed in outcome.eval_results.items() if not passed]
    if failed:
        logger.error("Evaluation failed hard checks: %s", failed)

    logger.info(
        "Evaluated %s: %d points, %s (%d moves)",
        choice.system.value, evaluation.total_points, evaluation.final_grade, len(report.moves),
    )
    return outcome


def generate_evaluation(request: EvaluationRequest) -> EvaluationOutcome:
    """LLM-suggested levels, then the deterministic pipeline."""
    choice = lock_system(request)
    target_grade = request.target_grade or normalize_grade(get_settings().default_target_grade)
    suggested = suggest_factor_levels(request, choice.system, target_grade)
    return evaluate(request, suggested=suggested)


def _factor_lines(evaluation: Evaluation) -> str:
    return "\n".join(f"**{a.header}**" for a in evaluation.assignments.values())


def write_statement(request: EvaluationRequest, outcome: EvaluationOutcome) -> dict[str, Any]:
    """
    Have the LLM write the statement for an evaluation's locked levels.

    Whatever numbers the model writes, headers and summary lines are
    rewritten from the evaluation before returning.
    """
    from core.llm import chat_text
    from core.prompts import load_prompt, render_prompt

    evaluation = outcome.evaluation

    user = render_prompt(
        "evaluation_statement",
        rating_system=evaluation.system.value,
        factor_lines=_factor_lines(evaluation),
        job_series=request.job_series or "not specified",
        position_title=request.position_title or "not specified",
        supervisory_level=request.supervisory_level or "Non-Supervisory",
        duties=request.duties,
        requirements=request.requirements or "None specified",
        total_points=evaluation.total_points,
        final_grade=evaluation.final_grade,
        grade_range=evaluation.grade_range,
    )
    response = chat_text(load_prompt("system_classifier"), user, model=get_settings().llm_pd_model)
    statement = apply_evaluation(response.text, evaluation)

    result = outcome.to_dict()
    result["evaluationStatement"] = statement.text.strip()
    result["corrections"] = statement.corrections
    return result


def generate_evaluation_statement(request: EvaluationRequest) -> dict[str, Any]:
    """LLM-suggested evaluation plus its statement."""
    return write_statement(request, generate_evaluation(request))


# ── Factor reassessment (edited factor text) ──────────────────────


def _factor_content(factor_texts: dict[str, Any]) -> dict[str, str]:
    content = {}
    for key, value in factor_texts.items():
        factor_id = normalize_factor_id(key)
        if factor_id and isinstance(value, str) and value.strip():
            content[factor_id] = value.strip()
    return content


def reassess_factors(
    factor_texts: dict[str, Any],
    *,
    expected_grade: str | None = None,
    supervisory_level: str | None = None,
    rating_system: str | None = None,
) -> dict[str, Any]:
    """
    Re-level factors from their (possibly user-edited) text.

    The LLM assigns a level per factor; levels are normalized, the set is
    rebuilt and, when ``expected_grade`` is given, reconciled toward it.
    Any remaining difference between the expected and calculated grade is
    reported rather than hidden.
    """
    from core.llm import chat_text, parse_json_payload
    from core.prompts import load_prompt, render_prompt

    content = _factor_content(factor_texts)
    if not content:
        raise ValueError("No factor content provided for evaluation")

    expected = band_for_grade(expected_grade).grade if expected_grade else None
    choice = detect_rating_system(
        explicit=rating_system,
        supervisory_level=supervisory_level,
        existing_factors={key: {} for key in content},
    )
    system = choice.system

    grade_constraint = ""
    if expected:
        band = band_for_grade(expected, system)
        span = (
            f"between {band.min_points} and {band.max_points}" if band.max_points is not None
            else f"at least {band.min_points}"
        )
        grade_constraint = f"CRITICAL: Factor levels MUST total {span} points to achieve {expected} classification."

    user = render_prompt(
        "reassess_factors",
        rating_system=system.value,
        supervisory_level=supervisory_level or "Non-Supervisory",
        grade_constraint=grade_constraint,
        factor_table=factor_table_text(system),
        factor_content="\n\n".join(f"Factor {fid}: {text}" for fid, text in content.items()),
    )
    response = chat_text(load_prompt("system_classifier"), user, json_mode=True)
    payload = parse_json_payload(response.text)
    if not isinstance(payload, dict):
        raise ValueError("LLM returned invalid JSON: expected an object of factor levels")

    target = expected or normalize_grade(get_settings().default_target_grade)
    duties = " ".join(content.values())
    build = build_factor_set(system, duties, target, suggested=payload)
    evaluation = build.evaluation
    for factor_id, source in build.sources.items():
        if source == "default":
            evaluation.warnings.append(f"No level provided for factor {factor_id}; default applied")

    if expected:
        reconcile(evaluation, expected)
    else:
        resolve_forbidden(evaluation)

    result = evaluation.to_dict()
    for factor_id, assignment in evaluation.assignments.items():
        result["factors"][assignment.key]["content"] = content.get(factor_id, "")
    result["summary"] = evaluation.summary()

    if expected:
        if evaluation.final_grade != expected:
            result["warnings"].append(
                f"Calculated grade ({evaluation.final_grade}) differs from expected grade ({expected})"
            )
            result["gradeDiscrepancy"] = True
            result["expectedGrade"] = expected
            result["calculatedGrade"] = evaluation.final_grade
        else:
            result["gradeMatchConfirmed"] = True

    logger.info("Reassessed %d factors: %d points, %s", len(content), evaluation.total_points, evaluation.final_grade)
    return result
