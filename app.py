"""FastAPI service for PD classification, evaluation and drafting."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Iterator

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from agents.duties.agent import rewrite_duties, stream_rewrite_duties
from agents.evaluation.agent import (
    evaluate,
    generate_evaluation,
    generate_evaluation_statement,
    reassess_factors,
    validate_request,
)
from agents.pd.agent import (
    generate_with_evaluation,
    inspect_prompt,
    stream_position_description,
    validate_pd_request,
)
from agents.series.agent import classify_series, recommend_series
from core.config import Settings, get_settings
from core.llm import LLMError

logger = logging.getLogger(__name__)

_SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


# ── SSE helpers ───────────────────────────────────────────────────


def _sse_event(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _sse(events: Iterator[dict[str, Any]], label: str) -> Iterator[str]:
    """Frame events as SSE; upstream failures become an ``error`` event, always followed by [DONE]."""
    started = time.perf_counter()
    try:
        for event in events:
            yield _sse_event(event)
    except (LLMError, ValueError) as exc:
        logger.warning("Stream %s failed: %s", label, exc)
        yield _sse_event({"error": str(exc)})
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("Stream %s finished latency_ms=%s", label, elapsed_ms)
    yield "data: [DONE]\n\n"


def _wrap_deltas(deltas: Iterator[str], key: str) -> Iterator[dict[str, Any]]:
    for delta in deltas:
        yield {key: delta}


def _stream(events: Iterator[dict[str, Any]], label: str) -> StreamingResponse:
    return StreamingResponse(_sse(events, label), media_type="text/event-stream", headers=_SSE_HEADERS)


def _duties(payload: dict[str, Any]) -> str:
    duties = payload.get("duties") or payload.get("dutiesText") or ""
    if not isinstance(duties, str) or not duties.strip():
        raise ValueError("No duties provided")
    return duties


def _timed(label: str, fn: Callable[[], Any]) -> Any:
    started = time.perf_counter()
    result = fn()
    logger.info("%s completed latency_ms=%s", label, int((time.perf_counter() - started) * 1000))
    return result


# ── App factory ───────────────────────────────────────────────────


def create_app(*, settings: Settings | Any | None = None) -> FastAPI:
    """Create the classification API."""
    resolved_settings = settings or get_settings()

    web_app = FastAPI(title="PD Classification Service")
    web_app.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved_settings.cors_allowed_origins) or ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @web_app.exception_handler(ValueError)
    async def _bad_request(_: Request, exc: ValueError) -> JSONResponse:
        logger.info("Rejected request: %s", exc)
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @web_app.exception_handler(LLMError)
    async def _upstream_failed(_: Request, exc: LLMError) -> JSONResponse:
        logger.error("LLM failure: %s", exc)
        return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})

    @web_app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # ── Evaluation ────────────────────────────────────────────────

    @web_app.post("/api/evaluate")
    def evaluate_route(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        request = validate_request(payload)
        if payload.get("suggest"):
            outcome = _timed("evaluate+suggest", lambda: generate_evaluation(request))
        else:
            outcome = _timed("evaluate", lambda: evaluate(request))
        return outcome.to_dict()

    @web_app.post("/api/generate-evaluation-statement")
    def evaluation_statement_route(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        request = validate_request(payload)
        return _timed("evaluation statement", lambda: generate_evaluation_statement(request))

    @web_app.post("/api/update-factor-points")
    def update_factor_points_route(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        options = {"expectedGrade", "supervisoryLevel", "ratingSystem"}
        factor_texts = {key: value for key, value in payload.items() if key not in options}
        result = _timed(
            "update factor points",
            lambda: reassess_factors(
                factor_texts,
                expected_grade=payload.get("expectedGrade") or None,
                supervisory_level=payload.get("supervisoryLevel") or None,
                rating_system=payload.get("ratingSystem") or None,
            ),
        )
        result["success"] = True
        return result

    # ── Drafting (SSE) ────────────────────────────────────────────

    @web_app.post("/api/generate")
    def generate_route(payload: dict[str, Any] = Body(...)) -> StreamingResponse:
        request = validate_pd_request(payload)
        return _stream(_wrap_deltas(stream_position_description(request), "response"), "generate")

    @web_app.post("/api/generate-with-evaluation")
    def generate_with_evaluation_route(payload: dict[str, Any] = Body(...)) -> StreamingResponse:
        request = validate_pd_request(payload)
        return _stream(generate_with_evaluation(request), "generate-with-evaluation")

    @web_app.post("/api/rewrite-duties")
    def rewrite_duties_route(payload: dict[str, Any] = Body(...)) -> StreamingResponse:
        duties = _duties(payload)
        return _stream(_wrap_deltas(stream_rewrite_duties(duties), "rewritten"), "rewrite-duties")

    @web_app.post("/api/rewrite-duties-sync")
    def rewrite_duties_sync_route(payload: dict[str, Any] = Body(...)) -> dict[str, str]:
        duties = _duties(payload)
        return {"rewritten": _timed("rewrite duties", lambda: rewrite_duties(duties))}

    # ── Series ────────────────────────────────────────────────────

    @web_app.post("/api/recommend-series")
    def recommend_series_route(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        duties = _duties(payload)
        return recommend_series(
            duties,
            position_title=payload.get("positionTitle") or "",
            job_series=payload.get("jobSeries") or "",
        )

    @web_app.post("/api/classify-series")
    def classify_series_route(payload: dict[str, Any] = Body(...)) -> list[dict[str, str]]:
        duties = _duties(payload)
        return classify_series(duties, position_title=payload.get("positionTitle") or "")

    # ── Diagnostics ───────────────────────────────────────────────

    @web_app.post("/api/test-prompt")
    def test_prompt_route(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        if not payload:
            raise HTTPException(status_code=400, detail="Request is missing")
        request = validate_pd_request(payload)
        return inspect_prompt(request, check_connection=bool(payload.get("checkConnection")))

    return web_app


app = create_app()


def run_server() -> None:
    """Run the API server with uvicorn."""
    settings = get_settings()
    uvicorn.run("app:app", host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    run_server()
