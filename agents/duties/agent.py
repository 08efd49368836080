"""
Duties Agent — rewrite free-text duties into federal PD language.
"""

from __future__ import annotations

import logging
from typing import Iterator

from core.config import get_settings

logger = logging.getLogger(__name__)


def truncate_duties(duties: str, max_chars: int | None = None) -> str:
    """Trim duties to the configured budget, marking the cut with an ellipsis."""
    limit = max_chars if max_chars is not None else get_settings().duties_max_chars
    text = (duties or "").strip()
    if len(text) > limit:
        logger.info("Duties truncated from %d to %d chars", len(text), limit)
        return text[:limit] + "..."
    return text


def _rewrite_prompt(duties: str) -> tuple[str, str]:
    from core.prompts import load_prompt, render_prompt

    if not duties or not duties.strip():
        raise ValueError("No duties provided")
    return load_prompt("system_classifier"), render_prompt("rewrite_duties", duties=truncate_duties(duties))


def rewrite_duties(duties: str) -> str:
    """One-shot rewrite; raises LLMError on upstream failure."""
    from core.llm import chat_text

    system, user = _rewrite_prompt(duties)
    response = chat_text(system, user)
    return response.text.strip()


def stream_rewrite_duties(duties: str) -> Iterator[str]:
    """Yield the rewrite as it is generated."""
    from core.llm import stream_chat_text

    system, user = _rewrite_prompt(duties)
    yield from stream_chat_text(system, user, max_tokens=1500)
