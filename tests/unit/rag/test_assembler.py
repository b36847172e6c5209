"""Tests for RAG context assembly."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from quarry.rag.assembler import DOCUMENT_DELIMITER, build_context, format_document
from quarry.rag.search import SearchResult


def _result(page_id: str, title: str, content: str) -> SearchResult:
    return SearchResult(
        entry_id=f"{page_id}-chunk-0", score=0.8, page_id=page_id, title=title, content=content
    )


@pytest.fixture(autouse=True)
def _char_token_counter():
    with patch(
        "quarry.rag.assembler.count_tokens",
        side_effect=lambda model, text: len(text) // 4,
    ):
        yield


def test_format_document():
    assert format_document(2, _result("p", "Setup", "Install it.")) == (
        '[Document 2: "Setup"]\nInstall it.'
    )


def test_build_context_numbers_in_rank_order():
    results = [_result("a", "First", "alpha"), _result("b", "Second", "beta")]

    ctx = build_context(results, "openai/gpt-4o-mini", token_budget=1000)

    assert ctx.text == (
        '[Document 1: "First"]\nalpha' + DOCUMENT_DELIMITER + '[Document 2: "Second"]\nbeta'
    )
    assert ctx.results == results
    assert ctx.total_tokens > 0


def test_build_context_skips_empty_content_without_gaps():
    results = [_result("a", "A", ""), _result("b", "B", "  "), _result("c", "C", "gamma")]

    ctx = build_context(results, "m", token_budget=1000)

    assert ctx.text == '[Document 1: "C"]\ngamma'
    assert [r.page_id for r in ctx.results] == ["c"]


def test_build_context_drops_results_beyond_budget():
    results = [
        _result("a", "A", "x" * 40),
        _result("b", "B", "y" * 400),
        _result("c", "C", "z" * 4),
    ]

    ctx = build_context(results, "m", token_budget=30)

    # b would overflow the budget; assembly stops there
    assert [r.page_id for r in ctx.results] == ["a"]
    assert ctx.total_tokens <= 30


def test_build_context_empty():
    ctx = build_context([], "m", token_budget=100)
    assert ctx.text == ""
    assert ctx.results == []
    assert ctx.total_tokens == 0
