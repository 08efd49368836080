"""Tests for core/reference.py — budgeted PDF text extraction."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pymupdf
import pytest

import core.reference as reference


@dataclass
class _DummySettings:
    reference_dir: Path
    reference_max_pages: int = 20
    reference_max_chars: int = 12000


def _write_pdf(path: Path, pages: list[str]) -> Path:
    doc = pymupdf.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    doc.save(path)
    doc.close()
    return path


@pytest.fixture
def settings(tmp_path, monkeypatch):
    dummy = _DummySettings(reference_dir=tmp_path)
    monkeypatch.setattr(reference, "get_settings", lambda: dummy)
    reference.clear_cache()
    yield dummy
    reference.clear_cache()


def test_reads_bare_name_from_reference_dir(settings, tmp_path):
    _write_pdf(tmp_path / "handbook.pdf", ["Budget Analysis 0560", "Management Analysis 0343"])

    text = reference.reference_text("handbook")

    assert "Budget Analysis 0560" in text
    assert "Management Analysis 0343" in text


def test_page_budget(settings, tmp_path):
    _write_pdf(tmp_path / "handbook.pdf", ["first page", "second page"])

    text = reference.reference_text("handbook", max_pages=1)

    assert "first page" in text
    assert "second page" not in text


def test_char_budget(settings, tmp_path):
    _write_pdf(tmp_path / "handbook.pdf", ["x" * 80])

    assert len(reference.reference_text("handbook", max_chars=25)) == 25


def test_result_is_cached(settings, tmp_path, monkeypatch):
    _write_pdf(tmp_path / "handbook.pdf", ["cached text"])
    assert "cached text" in reference.reference_text("handbook")

    def _boom(*args, **kwargs):
        raise AssertionError("extract_text called twice")

    monkeypatch.setattr(reference, "extract_text", _boom)
    assert "cached text" in reference.reference_text("handbook")


def test_missing_file_yields_empty(settings):
    assert reference.reference_text("nope") == ""


def test_corrupt_file_yields_empty(settings, tmp_path):
    (tmp_path / "broken.pdf").write_bytes(b"this is not a pdf")

    assert reference.reference_text("broken") == ""
