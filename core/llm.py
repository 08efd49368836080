"""
LLM gateway — thin wrapper around the OpenAI SDK.

Provides:
  1. `chat()` / `chat_text()` for one-shot completions, with fallback models
     when the requested one is unavailable or rate limited.
  2. `stream_chat_text()` yielding content deltas for SSE endpoints.
  3. `parse_json_payload()` for models that wrap JSON in prose or fences.

Every upstream failure (transport error, non-2xx, empty content) surfaces
as `LLMError`; callers never see raw SDK exceptions.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator

from openai import OpenAI, OpenAIError

from core.config import get_settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The upstream model failed or returned nothing usable."""


@dataclass
class LLMResponse:
    """Structured response from an LLM call."""

    text: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


def _build_client() -> OpenAI:
    settings = get_settings()
    return OpenAI(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key or "missing",
        timeout=settings.llm_timeout_seconds,
    )


_client: OpenAI | None = None


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = _build_client()
    return _client


def _parse_fallback_models(raw: str) -> list[str]:
    return [m.strip() for m in raw.split(",") if m.strip()]


def _is_model_endpoint_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return (
        "model not found" in message
        or "does not exist" in message
        or "not available" in message
        or "rate limit" in message
        or "too many requests" in message
        or "error code: 429" in message
    )


def _models_to_try(model: str | None) -> list[str]:
    settings = get_settings()
    requested = model or settings.llm_model
    models = [requested]
    if model is None:
        for fallback in _parse_fallback_models(settings.llm_fallback_models):
            if fallback not in models:
                models.append(fallback)
    return models


def chat(
    messages: list[dict[str, str]],
    *,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    json_mode: bool = False,
) -> LLMResponse:
    """
    Send a chat completion request.

    Parameters
    ----------
    messages : list of {"role": ..., "content": ...} dicts
    model : override the default model from config (disables fallbacks)
    temperature : override default temperature
    max_tokens : override default max_tokens
    json_mode : if True, request JSON output format

    Raises
    ------
    LLMError when every candidate model fails or the reply is empty.
    """
    settings = get_settings()
    client = _get_client()
    models_to_try = _models_to_try(model)

    kwargs: dict[str, Any] = {
        "messages": messages,
        "temperature": temperature if temperature is not None else settings.llm_temperature,
        "max_tokens": max_tokens or settings.llm_max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = None
    used_model = models_to_try[0]
    for candidate_model in models_to_try:
        try:
            kwargs["model"] = candidate_model
            response = client.chat.completions.create(**kwargs)
            used_model = candidate_model
            break
        except OpenAIError as exc:
            if _is_model_endpoint_error(exc) and candidate_model != models_to_try[-1]:
                logger.warning("Model %s unavailable (%s); trying next", candidate_model, exc)
                continue
            raise LLMError(f"LLM request failed: {exc}") from exc

    if response is None or not response.choices:
        raise LLMError("LLM returned no choices")

    text = response.choices[0].message.content or ""
    if not text.strip():
        raise LLMError(f"LLM returned empty content (model {used_model})")

    usage = response.usage
    prompt_tokens = usage.prompt_tokens if usage else 0
    completion_tokens = usage.completion_tokens if usage else 0
    logger.info("LLM %s: %d prompt / %d completion tokens", used_model, prompt_tokens, completion_tokens)

    return LLMResponse(
        text=text,
        model=used_model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


def chat_text(
    system: str,
    user: str,
    *,
    model: str | None = None,
    json_mode: bool = False,
    max_tokens: int | None = None,
) -> LLMResponse:
    """Convenience: system + user message → LLMResponse."""
    return chat(
        [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        model=model,
        json_mode=json_mode,
        max_tokens=max_tokens,
    )


def stream_chat_text(
    system: str,
    user: str,
    *,
    model: str | None = None,
    max_tokens: int | None = None,
) -> Iterator[str]:
    """
    Stream a system + user completion, yielding content deltas as they arrive.

    The upstream stream is closed when the consumer stops iterating, so a
    client disconnect does not leave the connection open.
    """
    settings = get_settings()
    client = _get_client()
    used_model = model or settings.llm_model

    try:
        stream = client.chat.completions.create(
            model=used_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=settings.llm_temperature,
            max_tokens=max_tokens or settings.llm_max_tokens,
            stream=True,
        )
    except OpenAIError as exc:
        raise LLMError(f"LLM stream failed to start: {exc}") from exc

    emitted = 0
    try:
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                emitted += len(delta)
                yield delta
    except OpenAIError as exc:
        raise LLMError(f"LLM stream interrupted: {exc}") from exc
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()
        logger.info("LLM stream %s closed after %d chars", used_model, emitted)

    if emitted == 0:
        raise LLMError(f"LLM stream returned no content (model {used_model})")


def check_connection() -> bool:
    """Tiny completion to confirm the key and endpoint work."""
    try:
        chat_text("Reply with OK.", "ping", max_tokens=5)
    except LLMError as exc:
        logger.warning("LLM connection check failed: %s", exc)
        return False
    return True


# ── JSON helpers ──────────────────────────────────────────────────

_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def parse_json_payload(text: str) -> Any:
    """
    Decode the JSON object or array in a model reply.

    Strips markdown code fences and, failing a direct parse, decodes the
    outermost ``{...}`` or ``[...]`` span.  Raises ValueError when nothing
    decodes.
    """
    cleaned = _FENCE.sub("", text or "").strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError(f"LLM returned invalid JSON: {cleaned[:120]!r}")
