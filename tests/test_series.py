"""Tests for agents/series/agent.py — series parsing and grade relevancy."""

from __future__ import annotations

import json

import pytest

import core.llm as llm
from agents.series.agent import (
    classify_series,
    grade_relevancy,
    normalize_relevancy,
    parse_series_list,
    recommend_series,
    top_grade,
)
from classification.grades import normalize_grade
from core.config import get_settings

_SERIES_REPLY = "1. 0343 - Management and Program Analysis\n2. 0560: Budget Analysis\n3. 0501 Financial Administration"


def _response(text: str) -> llm.LLMResponse:
    return llm.LLMResponse(text=text, model="fake", prompt_tokens=0, completion_tokens=0, total_tokens=0)


def _fake_chat(relevancy_reply: str | None):
    def _chat(system, user, *, model=None, json_mode=False, max_tokens=None):
        if "numbered list" in user:
            return _response(_SERIES_REPLY)
        if relevancy_reply is None:
            raise llm.LLMError("relevancy unavailable")
        return _response(relevancy_reply)

    return _chat


class TestSeriesParsing:
    def test_numbered_lines(self):
        assert parse_series_list(_SERIES_REPLY) == [
            {"seriesCode": "0343", "seriesTitle": "Management and Program Analysis"},
            {"seriesCode": "0560", "seriesTitle": "Budget Analysis"},
            {"seriesCode": "0501", "seriesTitle": "Financial Administration"},
        ]

    def test_unstructured_reply_kept_verbatim(self):
        assert parse_series_list("Probably 0343.") == [{"seriesCode": "Probably 0343.", "seriesTitle": ""}]

    def test_empty_reply(self):
        assert parse_series_list("") == []

    def test_classify_requires_duties(self):
        with pytest.raises(ValueError, match="No duties provided"):
            classify_series(" ")

    def test_classify(self, monkeypatch):
        monkeypatch.setattr(llm, "chat_text", _fake_chat("[]"))
        assert [s["seriesCode"] for s in classify_series("Analyzes programs.")] == ["0343", "0560", "0501"]


class TestNormalizeRelevancy:
    def test_skipped_grade_dropped_and_rescaled(self):
        entries = [
            {"grade": "GS-13", "percentage": 60},
            {"grade": "GS-12", "percentage": 30},
            {"grade": "GS-06", "percentage": 10},
        ]
        assert normalize_relevancy(entries) == [
            {"grade": "GS-13", "percentage": 67.0},
            {"grade": "GS-12", "percentage": 33.0},
        ]

    def test_rounding_remainder_on_last_entry(self):
        entries = [{"grade": g, "percentage": 1} for g in ("GS-11", "GS-12", "GS-13")]
        assert [e["percentage"] for e in normalize_relevancy(entries)] == [33.0, 33.0, 34.0]

    def test_percentages_clamped(self):
        entries = [{"grade": "GS-9", "percentage": 150}, {"grade": "GS-11", "percentage": -5}]
        assert normalize_relevancy(entries) == [
            {"grade": "GS-09", "percentage": 100.0},
            {"grade": "GS-11", "percentage": 0.0},
        ]

    def test_duplicates_and_garbage(self):
        entries = [
            {"grade": "GS-12", "percentage": "50%"},
            {"grade": "gs 12", "percentage": 20},
            {"grade": "senior", "percentage": 30},
            {"grade": "GS-13", "percentage": "fifty"},
        ]
        assert normalize_relevancy(entries) == [
            {"grade": "GS-12", "percentage": 100.0},
            {"grade": "GS-13", "percentage": 0.0},
        ]

    def test_sums_to_one_hundred(self):
        entries = [{"grade": g, "percentage": p} for g, p in (("GS-07", 7), ("GS-09", 13), ("GS-11", 19))]
        assert sum(e["percentage"] for e in normalize_relevancy(entries)) == 100


class TestGradeRelevancy:
    def test_json_reply(self, monkeypatch):
        reply = json.dumps([{"grade": "GS-12", "percentage": 70}, {"grade": "GS-11", "percentage": 30}])
        monkeypatch.setattr(llm, "chat_text", _fake_chat(reply))

        assert grade_relevancy("Analyzes programs.")[0] == {"grade": "GS-12", "percentage": 70.0}

    def test_wrapped_json_reply(self, monkeypatch):
        reply = json.dumps({"grades": [{"grade": "GS-14", "percentage": 100}]})
        monkeypatch.setattr(llm, "chat_text", _fake_chat(reply))

        assert grade_relevancy("Leads policy analysis.") == [{"grade": "GS-14", "percentage": 100.0}]

    def test_text_reply_fallback(self, monkeypatch):
        monkeypatch.setattr(llm, "chat_text", _fake_chat("Most likely GS-13, possibly GS-12."))

        assert grade_relevancy("Analyzes programs.") == [
            {"grade": "GS-13", "percentage": 67.0},
            {"grade": "GS-12", "percentage": 33.0},
        ]

    def test_top_grade(self):
        relevancy = [{"grade": "GS-11", "percentage": 30.0}, {"grade": "GS-12", "percentage": 70.0}]
        assert top_grade(relevancy) == "GS-12"

    def test_top_grade_default(self):
        assert top_grade([]) == normalize_grade(get_settings().default_target_grade)


class TestRecommendSeries:
    def test_recommendations(self, monkeypatch):
        reply = json.dumps([{"grade": "GS-12", "percentage": 80}, {"grade": "GS-11", "percentage": 20}])
        monkeypatch.setattr(llm, "chat_text", _fake_chat(reply))

        result = recommend_series("Analyzes programs.", position_title="Program Analyst")

        assert result["recommendations"][0] == {"code": "0343", "title": "Management and Program Analysis", "rank": 1}
        assert [r["rank"] for r in result["recommendations"]] == [1, 2, 3]
        assert result["gsGrade"] == "GS-12"

    def test_relevancy_failure_degrades(self, monkeypatch):
        monkeypatch.setattr(llm, "chat_text", _fake_chat(None))

        result = recommend_series("Analyzes programs.")

        assert result["gradeRelevancy"] == []
        assert result["gsGrade"] == normalize_grade(get_settings().default_target_grade)
        assert len(result["recommendations"]) == 3
