"""Tests for semantic, chunk-level and lexical search."""

from __future__ import annotations

import pytest

from quarry.db.models import Page, Space, VectorMatch
from quarry.db.repository import Repository
from quarry.rag.search import SearchOptions, lexical_search, search_chunks, semantic_search


def _match(page_id: str, i: int, score: float, **extra: str) -> VectorMatch:
    return VectorMatch(
        entry_id=f"{page_id}-chunk-{i}",
        score=score,
        metadata={
            "page_id": page_id,
            "chunk_index": str(i),
            "total_chunks": "3",
            "title": f"Page {page_id}",
            "content": f"text of {page_id} chunk {i}",
            **extra,
        },
    )


@pytest.fixture
def matches() -> list[VectorMatch]:
    return [
        _match("a", 0, 0.90, space_id="eng"),
        _match("a", 1, 0.85, space_id="eng"),
        _match("b", 0, 0.70),
        _match("c", 2, 0.40),
    ]


# ------------------------------------------------------------------
# semantic_search
# ------------------------------------------------------------------


def test_semantic_dedups_by_page_and_applies_threshold(make_store, fake_embedder, matches):
    store = make_store(matches=matches)

    results = semantic_search("deploy", store, fake_embedder, SearchOptions(min_score=0.5))

    assert [r.page_id for r in results] == ["a", "b"]
    assert results[0].entry_id == "a-chunk-0"
    assert results[0].score == 0.90


def test_semantic_overfetches_twice_the_limit(make_store, fake_embedder, matches):
    store = make_store(matches=matches)

    semantic_search("q", store, fake_embedder, SearchOptions(limit=3))

    assert store.queries[0]["top_k"] == 6
    assert fake_embedder.calls == [["q"]]


def test_semantic_stops_at_limit(make_store, fake_embedder, matches):
    store = make_store(matches=matches)
    results = semantic_search("q", store, fake_embedder, SearchOptions(limit=1, min_score=0.0))
    assert [r.page_id for r in results] == ["a"]


def test_semantic_threshold_above_best_match_returns_empty(make_store, fake_embedder):
    store = make_store(matches=[_match("a", 0, 0.85)])
    assert semantic_search("q", store, fake_embedder, SearchOptions(min_score=0.9)) == []


def test_semantic_no_candidates(make_store, fake_embedder):
    assert semantic_search("q", make_store(), fake_embedder) == []


def test_semantic_results_are_unique_and_above_threshold(make_store, fake_embedder):
    scores = [0.95, 0.9, 0.8, 0.75, 0.6, 0.55, 0.5, 0.45]
    store = make_store(matches=[_match(f"p{i % 3}", i, s) for i, s in enumerate(scores)])

    results = semantic_search("q", store, fake_embedder, SearchOptions(limit=10, min_score=0.6))

    page_ids = [r.page_id for r in results]
    assert len(page_ids) == len(set(page_ids))
    assert all(r.score >= 0.6 for r in results)


def test_semantic_passes_container_filter(make_store, fake_embedder):
    store = make_store()
    options = SearchOptions(space_id="eng", collection_id="docs")

    semantic_search("q", store, fake_embedder, options)

    assert store.queries[0]["filter"] == {"space_id": "eng", "collection_id": "docs"}


def test_semantic_without_container_has_no_filter(make_store, fake_embedder):
    store = make_store()
    semantic_search("q", store, fake_embedder)
    assert store.queries[0]["filter"] is None


def test_result_fields_parsed_from_metadata(make_store, fake_embedder):
    store = make_store(matches=[_match("a", 1, 0.9, space_id="eng", path="/a")])

    (result,) = semantic_search("q", store, fake_embedder)

    assert result.title == "Page a"
    assert result.content == "text of a chunk 1"
    assert result.chunk_index == 1
    assert result.total_chunks == 3
    assert result.metadata == {"space_id": "eng", "path": "/a"}
    assert result.space_id == "eng"
    assert result.collection_id is None
    assert result.page is None


def test_missing_title_defaults_to_untitled(make_store, fake_embedder):
    match = VectorMatch(entry_id="x", score=0.9, metadata={"page_id": "x"})
    (result,) = semantic_search("q", make_store(matches=[match]), fake_embedder)
    assert result.title == "Untitled"
    assert result.chunk_index is None


# ------------------------------------------------------------------
# search_chunks
# ------------------------------------------------------------------


def test_search_chunks_keeps_multiple_chunks_per_page(make_store, fake_embedder, matches):
    store = make_store(matches=matches)

    results = search_chunks("q", store, fake_embedder, SearchOptions(limit=5, min_score=0.3))

    assert [r.entry_id for r in results] == ["a-chunk-0", "a-chunk-1", "b-chunk-0", "c-chunk-2"]
    assert store.queries[0]["top_k"] == 5


def test_search_chunks_default_threshold_is_lower(make_store, fake_embedder):
    store = make_store(matches=[_match("a", 0, 0.35), _match("b", 0, 0.25)])
    results = search_chunks("q", store, fake_embedder)
    assert [r.page_id for r in results] == ["a"]


# ------------------------------------------------------------------
# lexical_search
# ------------------------------------------------------------------


@pytest.fixture
def repo(tmp_db) -> Repository:
    r = Repository(tmp_db)
    r.upsert_space(Space(id="eng", name="Engineering", collection_id="docs"))
    r.upsert_page(Page(id="p1", title="Deploy guide", space_id="eng", path="/deploy", updated_at=1))
    r.upsert_page(Page(id="p2", title="Runbook", description="deploy steps", updated_at=2))
    r.upsert_page(Page(id="p3", title="Other", updated_at=3))
    return r


def test_lexical_constant_score_newest_first(repo):
    results = lexical_search("deploy", repo)

    assert [r.page_id for r in results] == ["p2", "p1"]
    assert all(r.score == 1.0 for r in results)


def test_lexical_result_carries_page_and_space(repo):
    results = lexical_search("deploy guide", repo)

    (result,) = results
    assert result.entry_id == "p1"
    assert result.page is not None and result.page.path == "/deploy"
    assert result.space is not None and result.space.name == "Engineering"
    assert result.space_id == "eng"
    assert result.collection_id == "docs"


def test_lexical_custom_score_and_filter(repo):
    results = lexical_search("deploy", repo, SearchOptions(collection_id="docs"), score=0.5)
    assert [(r.page_id, r.score) for r in results] == [("p1", 0.5)]


def test_lexical_uses_description_as_content(repo):
    (result,) = lexical_search("runbook", repo)
    assert result.content == "deploy steps"
