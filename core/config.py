"""
Centralised configuration for the PD classification service.

Reads from .env and exposes a Settings dataclass.
Model names, timeouts, text budgets and paths all live here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# ── locate project root (parent of core/) ────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _env_list(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable app-wide settings.  Instantiate once at startup."""

    # ── LLM (OpenAI-compatible) ───────────────────────────────────
    openai_api_key: str = field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY", "")
    )
    openai_base_url: str = field(
        default_factory=lambda: os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
    )
    llm_model: str = field(
        default_factory=lambda: os.environ.get("LLM_MODEL", "gpt-4o-mini")
    )
    llm_pd_model: str = field(
        default_factory=lambda: os.environ.get("LLM_PD_MODEL", "gpt-4o")
    )
    llm_fallback_models: str = field(
        default_factory=lambda: os.environ.get("LLM_FALLBACK_MODELS", "")
    )
    llm_temperature: float = field(
        default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.3"))
    )
    llm_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("LLM_MAX_TOKENS", "4000"))
    )
    llm_timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("LLM_TIMEOUT_SECONDS", "120"))
    )

    # ── HTTP ──────────────────────────────────────────────────────
    cors_allowed_origins: tuple[str, ...] = field(
        default_factory=lambda: _env_list("CORS_ALLOWED_ORIGINS", "*")
    )
    host: str = field(
        default_factory=lambda: os.environ.get("PD_HOST", "0.0.0.0")
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PD_PORT", "8000"))
    )

    # ── Classification ────────────────────────────────────────────
    duties_max_chars: int = field(
        default_factory=lambda: int(os.environ.get("DUTIES_MAX_CHARS", "2000"))
    )
    default_target_grade: str = field(
        default_factory=lambda: os.environ.get("DEFAULT_TARGET_GRADE", "GS-13")
    )

    # ── Reference documents ───────────────────────────────────────
    reference_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("REFERENCE_MAX_PAGES", "20"))
    )
    reference_max_chars: int = field(
        default_factory=lambda: int(os.environ.get("REFERENCE_MAX_CHARS", "12000"))
    )

    # ── Paths ─────────────────────────────────────────────────────
    project_root: Path = PROJECT_ROOT
    prompts_dir: Path = field(default_factory=lambda: PROJECT_ROOT / "core" / "prompts")
    reference_dir: Path = field(
        default_factory=lambda: PROJECT_ROOT / os.environ.get("REFERENCE_DIR", "reference")
    )


# ── Singleton accessor ────────────────────────────────────────────
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return (and cache) the global Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
