"""Tests for core/prompts — versioned template loading and rendering."""

from __future__ import annotations

import pytest

from core.prompts import list_prompts, load_prompt, render_prompt, template_fields


def _names() -> list[str]:
    return [name.rsplit("_v", 1)[0] for name in list_prompts()]


def test_expected_templates_exist():
    assert set(_names()) >= {
        "system_classifier",
        "factor_levels",
        "evaluation_statement",
        "position_description",
        "rewrite_duties",
        "grade_relevancy",
        "classify_series",
        "reassess_factors",
    }


@pytest.mark.parametrize("name", _names())
def test_every_template_renders(name: str):
    template = load_prompt(name)
    values = {field: f"<{field}>" for field in template_fields(template)}

    rendered = render_prompt(name, **values)

    for field in values:
        assert f"<{field}>" in rendered


def test_missing_values_raise():
    with pytest.raises(KeyError, match="duties"):
        render_prompt("rewrite_duties")


def test_json_example_braces_survive():
    template = load_prompt("factor_levels")
    values = {field: "x" for field in template_fields(template)}

    rendered = render_prompt("factor_levels", **values)

    assert '{"factors": {"1": {"level": "1-7"' in rendered


def test_unknown_prompt():
    with pytest.raises(FileNotFoundError):
        load_prompt("does_not_exist")


def test_unknown_version():
    with pytest.raises(FileNotFoundError):
        load_prompt("factor_levels", version=99)
