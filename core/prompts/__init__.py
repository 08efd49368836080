"""
Versioned prompt loader.

Prompts live as plain-text files under core/prompts/ with the naming
convention:  {name}_v{version}.txt

Templates use ``str.format`` fields; literal braces (JSON examples) are
doubled.

Usage:
    from core.prompts import render_prompt
    user = render_prompt("factor_levels", duties=text, target_grade="GS-12")
"""

from __future__ import annotations

import string

from core.config import get_settings


def load_prompt(name: str, *, version: int = 1) -> str:
    """Load a prompt template by name and version number."""
    prompts_dir = get_settings().prompts_dir
    filename = f"{name}_v{version}.txt"
    path = prompts_dir / filename

    if not path.exists():
        raise FileNotFoundError(
            f"Prompt '{filename}' not found in {prompts_dir}. "
            f"Available: {[p.name for p in prompts_dir.glob('*.txt')]}"
        )

    return path.read_text(encoding="utf-8").strip()


def template_fields(template: str) -> set[str]:
    """Names of the ``{field}`` placeholders a template expects."""
    return {name for _, name, _, _ in string.Formatter().parse(template) if name}


def render_prompt(name: str, *, version: int = 1, **values: object) -> str:
    """
    Load and fill a template.

    Raises KeyError naming the missing fields when ``values`` is incomplete.
    """
    template = load_prompt(name, version=version)
    missing = template_fields(template) - values.keys()
    if missing:
        raise KeyError(f"Prompt '{name}_v{version}' is missing values for: {sorted(missing)}")
    return template.format(**values)


def list_prompts() -> list[str]:
    """List all available prompt template filenames."""
    prompts_dir = get_settings().prompts_dir
    if not prompts_dir.exists():
        return []
    return sorted(p.name for p in prompts_dir.glob("*.txt"))
