"""Tests for agents/pd/agent.py — PD prompts and the coordinated flow."""

from __future__ import annotations

import json
from dataclasses import dataclass

import pytest

import agents.pd.agent as pd_agent
import core.llm as llm
import core.reference as reference
from agents.pd.agent import (
    build_pd_prompt,
    generate_with_evaluation,
    inspect_prompt,
    prompt_warnings,
    stream_position_description,
    validate_pd_request,
)

_DUTIES = "Conducts program evaluations and recommends improvements to agency operations."

_PD_DRAFT = (
    "**HEADER:** Management Analyst\n"
    "**Factor 1 – Knowledge Required by the Position Level 1-9, 1850 Points**\n"
    "Mastery of evaluation methods.\n"
    "**Total Points: 4300**\n**Final Grade: GS-15**\n**Grade Range: 4055+**\n"
)


def _response(text: str) -> llm.LLMResponse:
    return llm.LLMResponse(text=text, model="fake", prompt_tokens=0, completion_tokens=0, total_tokens=0)


@pytest.fixture(autouse=True)
def _no_handbook(monkeypatch):
    monkeypatch.setattr(reference, "reference_text", lambda name, **kwargs: "Handbook excerpt for 0343.")


class _FakeLLM:
    def __init__(self, relevancy: list[dict] | None = None) -> None:
        self.relevancy = relevancy or [{"grade": "GS-12", "percentage": 100}]
        self.prompts: list[str] = []
        self.stream_prompts: list[str] = []

    def chat_text(self, system, user, *, model=None, json_mode=False, max_tokens=None):
        self.prompts.append(user)
        if "percentage likelihood" in user:
            return _response(json.dumps(self.relevancy))
        if json_mode:
            return _response("{}")
        return _response("**Total Points: 1**\n**Final Grade: GS-05**\n**Grade Range: 855-1100**")

    def stream_chat_text(self, system, user, *, model=None, max_tokens=None):
        self.stream_prompts.append(user)
        midpoint = len(_PD_DRAFT) // 2
        yield _PD_DRAFT[:midpoint]
        yield _PD_DRAFT[midpoint:]


@pytest.fixture
def fake_llm(monkeypatch) -> _FakeLLM:
    fake = _FakeLLM()
    monkeypatch.setattr(llm, "chat_text", fake.chat_text)
    monkeypatch.setattr(llm, "stream_chat_text", fake.stream_chat_text)
    return fake


class TestValidatePdRequest:
    def test_defaults(self):
        request = validate_pd_request({"historicalData": _DUTIES})
        assert request.job_series == "0343"
        assert request.supervisory_level == "Non-Supervisory"
        assert request.gs_grade is None
        assert request.total_points is None

    def test_fields(self):
        request = validate_pd_request({
            "duties": _DUTIES,
            "gsGrade": "GS-12",
            "subJobSeries": "Management Analyst",
            "federalAgency": "Department of Energy",
            "totalPoints": 2900,
            "factorLevels": {"Factor 1": {"level": "1-7"}},
        })
        assert request.gs_grade == "GS-12"
        assert request.position_title == "Management Analyst"
        assert request.agency == "Department of Energy"
        assert request.total_points == 2900
        assert request.factor_levels == {"Factor 1": {"level": "1-7"}}

    def test_missing_duties(self):
        with pytest.raises(ValueError, match="Job duties are required"):
            validate_pd_request({"gsGrade": "GS-12"})

    def test_factor_levels_must_be_object(self):
        with pytest.raises(ValueError, match="factorLevels"):
            validate_pd_request({"duties": _DUTIES, "factorLevels": "1-7"})


class TestBuildPrompt:
    def test_unprovided_values_are_marked(self):
        prompt = build_pd_prompt(validate_pd_request({"duties": _DUTIES}))

        assert "Final Grade: [not provided]" in prompt
        assert "Level 1-X, XXX Points" in prompt
        assert "Handbook excerpt for 0343." in prompt
        assert "Prompt has values that were not provided" in prompt_warnings(prompt)

    def test_grade_fills_range(self):
        prompt = build_pd_prompt(validate_pd_request({"duties": _DUTIES, "gsGrade": "GS-12"}))

        assert "Grade Range: 2755-3150" in prompt
        assert "GS-0343-12" in prompt

    def test_supervisory_template_uses_gssg_titles(self):
        prompt = build_pd_prompt(validate_pd_request({"duties": _DUTIES, "supervisoryLevel": "Supervisor"}))
        assert "Factor 4A – Personal Contacts – Nature of Contacts Level 4A-X" in prompt

    def test_factor_levels_lock_the_numbers(self, fake_llm):
        request = validate_pd_request({
            "duties": _DUTIES,
            "gsGrade": "GS-12",
            "totalPoints": 1,
            "factorLevels": {"Factor 1": {"level": "1-7"}},
        })

        list(stream_position_description(request))
        prompt = fake_llm.stream_prompts[0]

        assert "Final Grade: GS-12" in prompt
        assert "Total Points: 1\n" not in prompt
        assert "XXX" not in prompt


class TestGenerateWithEvaluation:
    def test_event_sequence(self, fake_llm):
        events = list(generate_with_evaluation(validate_pd_request({"duties": _DUTIES})))

        kinds = [next(iter(event)) for event in events]
        assert kinds[:2] == ["status", "status"]
        assert kinds[2] == "evaluation"
        assert kinds[3] == "status"
        assert kinds[4:-1] == ["response", "response"]
        assert kinds[-1] == "complete"

    def test_results_use_one_evaluation(self, fake_llm):
        events = list(generate_with_evaluation(validate_pd_request({"duties": _DUTIES})))
        evaluation = next(e["evaluation"] for e in events if "evaluation" in e)
        results = events[-1]["results"]

        assert evaluation["finalGrade"] == "GS-12"
        assert results["finalGrade"] == "GS-12"
        assert results["totalPoints"] == evaluation["totalPoints"]
        assert f"**Total Points: {results['totalPoints']}**" in results["positionDescription"]
        assert "1850 Points" not in results["positionDescription"]
        assert "**Final Grade: GS-12**" in results["evaluationStatement"]

    def test_given_grade_skips_relevancy(self, fake_llm):
        events = list(generate_with_evaluation(validate_pd_request({"duties": _DUTIES, "gsGrade": "GS-09"})))

        assert events[-1]["results"]["finalGrade"] == "GS-09"
        assert not any("percentage likelihood" in p for p in fake_llm.prompts)


@dataclass
class _DummySettings:
    openai_api_key: str = "sk-test"


class TestInspectPrompt:
    def test_report(self, monkeypatch):
        monkeypatch.setattr(pd_agent, "get_settings", lambda: _DummySettings())
        monkeypatch.setattr(llm, "check_connection", lambda: True)

        result = inspect_prompt(validate_pd_request({"duties": _DUTIES, "gsGrade": "GS-11"}), check_connection=True)

        assert result["status"] == "success"
        assert result["hasApiKey"] is True
        assert result["promptLength"] > len(result["promptPreview"])
        assert len(result["promptPreview"]) == pd_agent.PREVIEW_CHARS
        assert result["openaiConnectionOk"] is True

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(pd_agent, "get_settings", lambda: _DummySettings(openai_api_key=" "))

        result = inspect_prompt(validate_pd_request({"duties": _DUTIES}))

        assert result["hasApiKey"] is False
        assert "openaiConnectionOk" not in result
        assert result["warnings"]

    def test_long_prompt_warning(self):
        assert "Prompt is very long - may be truncated" in prompt_warnings("x" * (pd_agent.LONG_PROMPT_CHARS + 1))
