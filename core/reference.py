"""
Reference text provider — plain text from OPM guidance PDFs.

Prompts can quote the occupational handbook or classification standards
kept under ``REFERENCE_DIR``.  Extraction is capped by page and character
count so a large handbook cannot blow the prompt budget, and results are
cached per file and budget for the life of the process.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pymupdf

from core.config import get_settings

logger = logging.getLogger(__name__)

# ── In-memory cache ((path, pages, chars) → text) ────────────────
_cache: dict[tuple[str, int, int], str] = {}


def _resolve(name: str) -> Path:
    path = Path(name)
    if not path.is_absolute():
        path = get_settings().reference_dir / path
    if not path.suffix:
        path = path.with_suffix(".pdf")
    return path


def extract_text(path: Path, *, max_pages: int, max_chars: int) -> str:
    """Text of the first ``max_pages`` pages, truncated to ``max_chars``."""
    parts: list[str] = []
    size = 0
    with pymupdf.open(path) as doc:
        for index, page in enumerate(doc):
            if index >= max_pages or size >= max_chars:
                break
            text = page.get_text("text").strip()
            if text:
                parts.append(text)
                size += len(text) + 2
    return "\n\n".join(parts)[:max_chars]


def reference_text(
    name: str,
    *,
    max_pages: int | None = None,
    max_chars: int | None = None,
) -> str:
    """
    Cached, budgeted text of a reference PDF.

    ``name`` is a path or a bare file name under the reference directory
    (``.pdf`` is implied).  A missing or unreadable file yields ``""``.
    """
    settings = get_settings()
    pages = max_pages if max_pages is not None else settings.reference_max_pages
    chars = max_chars if max_chars is not None else settings.reference_max_chars
    path = _resolve(name)

    key = (str(path), pages, chars)
    if key in _cache:
        return _cache[key]

    if not path.exists():
        logger.warning("Reference document not found: %s", path)
        return ""

    try:
        text = extract_text(path, max_pages=pages, max_chars=chars)
    except (RuntimeError, ValueError) as exc:
        logger.warning("Could not read reference document %s: %s", path, exc)
        return ""

    logger.info("Loaded %d chars of reference text from %s", len(text), path.name)
    _cache[key] = text
    return text


def clear_cache() -> None:
    _cache.clear()
