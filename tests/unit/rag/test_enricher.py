"""Tests for search result enrichment."""

from __future__ import annotations

from unittest.mock import MagicMock

from quarry.db.models import Page, PageRecord, Space
from quarry.db.repository import Repository
from quarry.rag.enricher import enrich_results
from quarry.rag.hybrid import HybridResult
from quarry.rag.search import SearchResult


def _result(page_id: str, entry: str | None = None) -> SearchResult:
    return SearchResult(
        entry_id=entry or f"{page_id}-chunk-0",
        score=0.8,
        page_id=page_id,
        title=page_id,
        content="",
    )


def test_empty_input_makes_no_query():
    repo = MagicMock()
    assert enrich_results([], repo) == []
    repo.get_page_metadata.assert_not_called()


def test_single_batched_lookup_with_distinct_ids():
    repo = MagicMock()
    repo.get_page_metadata.return_value = []
    results = [_result("a"), _result("a", "a-chunk-1"), _result("b"), _result("")]

    enrich_results(results, repo)

    repo.get_page_metadata.assert_called_once_with(["a", "b"])


def test_attaches_page_and_space(tmp_db):
    repo = Repository(tmp_db)
    repo.upsert_space(Space(id="eng", name="Engineering", collection_id="docs"))
    repo.upsert_page(Page(id="a", title="A", space_id="eng", path="/a"))
    repo.upsert_page(Page(id="b", title="B"))

    enriched = enrich_results([_result("a"), _result("b"), _result("gone")], repo)

    assert [r.page_id for r in enriched] == ["a", "b", "gone"]
    assert enriched[0].page.path == "/a"
    assert enriched[0].space.name == "Engineering"
    assert enriched[1].page.title == "B"
    assert enriched[1].space is None
    assert enriched[2].page is None


def test_returns_copies_and_keeps_result_type():
    original = HybridResult(
        entry_id="a-chunk-0",
        score=0.9,
        page_id="a",
        title="A",
        content="",
        source="semantic",
        adjusted_score=0.9,
    )
    repo = MagicMock()
    repo.get_page_metadata.return_value = [PageRecord(page=Page(id="a", title="A"))]

    (enriched,) = enrich_results([original], repo)

    assert isinstance(enriched, HybridResult)
    assert enriched.source == "semantic"
    assert enriched.page is not None
    assert original.page is None
