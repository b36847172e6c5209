"""Semantic and lexical search over the page index.

Semantic search (one result per page):
  1. embed the query
  2. query the vector store for top_k = 2 * limit candidates (over-fetch to
     survive threshold + dedup), with the optional container filter
  3. drop candidates with score < min_score
  4. keep the first (best-scored) entry per page_id
  5. stop at `limit` pages

Chunk search is the same query without dedup, used to gather RAG context.
Lexical search is a substring match on page title / description in the
canonical store, newest first, with a constant score. It is an availability
fallback, not a ranking model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from quarry.db.models import Page, PageRecord, Space, VectorMatch
from quarry.db.repository import PageStore
from quarry.db.vectors import VectorStore
from quarry.ingest.embedder import EmbeddingClient

logger = logging.getLogger(__name__)

DEFAULT_LEXICAL_SCORE = 1.0


@dataclass
class SearchOptions:
    """Container filter, result limit and score threshold for one search.

    Attributes:
        space_id: Restrict results to pages in this space.
        collection_id: Restrict results to pages in this collection.
        limit: Maximum number of results.
        min_score: Similarity threshold (semantic / chunk search only).
    """

    space_id: str | None = None
    collection_id: str | None = None
    limit: int = 10
    min_score: float = 0.5

    def container_filter(self) -> dict[str, str] | None:
        """Metadata filter for the vector store, or None when unfiltered."""
        filter: dict[str, str] = {}
        if self.space_id:
            filter["space_id"] = self.space_id
        if self.collection_id:
            filter["collection_id"] = self.collection_id
        return filter or None


@dataclass
class SearchResult:
    """One search hit. ``page`` / ``space`` are set only after enrichment."""

    entry_id: str
    score: float
    page_id: str
    title: str
    content: str
    metadata: dict[str, str] = field(default_factory=dict)
    chunk_index: int | None = None
    total_chunks: int | None = None
    page: Page | None = None
    space: Space | None = None

    @property
    def space_id(self) -> str | None:
        return self.metadata.get("space_id") or None

    @property
    def collection_id(self) -> str | None:
        return self.metadata.get("collection_id") or None

    @property
    def path(self) -> str | None:
        return self.metadata.get("path") or None


def semantic_search(
    query: str,
    store: VectorStore,
    embedder: EmbeddingClient,
    options: SearchOptions | None = None,
) -> list[SearchResult]:
    """Return up to ``options.limit`` pages ranked by best chunk similarity.

    No candidates, or none above the threshold, yields an empty list.

    Raises:
        ProviderError: If the query cannot be embedded.
    """
    options = options or SearchOptions()
    vector = embedder.embed_one(query)
    matches = store.query(
        vector,
        top_k=options.limit * 2,
        filter=options.container_filter(),
        return_metadata=True,
    )
    logger.debug("Semantic search: %d candidates for limit %d", len(matches), options.limit)

    seen_pages: set[str] = set()
    results: list[SearchResult] = []
    for match in matches:
        if match.score < options.min_score:
            continue
        result = _match_to_result(match)
        if result.page_id in seen_pages:
            continue
        seen_pages.add(result.page_id)
        results.append(result)
        if len(results) >= options.limit:
            break

    return results


def search_chunks(
    query: str,
    store: VectorStore,
    embedder: EmbeddingClient,
    options: SearchOptions | None = None,
) -> list[SearchResult]:
    """Return matching chunks (several per page allowed), best first.

    Raises:
        ProviderError: If the query cannot be embedded.
    """
    options = options or SearchOptions(min_score=0.3)
    vector = embedder.embed_one(query)
    matches = store.query(
        vector,
        top_k=options.limit,
        filter=options.container_filter(),
        return_metadata=True,
    )
    return [_match_to_result(m) for m in matches if m.score >= options.min_score]


def lexical_search(
    query: str,
    repo: PageStore,
    options: SearchOptions | None = None,
    score: float = DEFAULT_LEXICAL_SCORE,
) -> list[SearchResult]:
    """Substring match on title / description, most recently updated first.

    Every result carries the same constant *score*; ``min_score`` is ignored.
    """
    options = options or SearchOptions()
    records = repo.search_by_title_or_description(
        query,
        space_id=options.space_id,
        collection_id=options.collection_id,
        limit=options.limit,
    )
    return [_record_to_result(r, score) for r in records]


# ------------------------------------------------------------------
# Conversion helpers
# ------------------------------------------------------------------


def _match_to_result(match: VectorMatch) -> SearchResult:
    meta = match.metadata
    container = {
        k: v
        for k, v in meta.items()
        if k not in ("page_id", "title", "content", "chunk_index", "total_chunks")
    }
    return SearchResult(
        entry_id=match.entry_id,
        score=match.score,
        page_id=meta.get("page_id", ""),
        title=meta.get("title") or "Untitled",
        content=meta.get("content", ""),
        metadata=container,
        chunk_index=_as_int(meta.get("chunk_index")),
        total_chunks=_as_int(meta.get("total_chunks")),
    )


def _record_to_result(record: PageRecord, score: float) -> SearchResult:
    page = record.page
    metadata = {"path": page.path}
    if page.space_id:
        metadata["space_id"] = page.space_id
    if record.space is not None and record.space.collection_id:
        metadata["collection_id"] = record.space.collection_id
    return SearchResult(
        entry_id=page.id,
        score=score,
        page_id=page.id,
        title=page.title,
        content=page.description or "",
        metadata=metadata,
        page=page,
        space=record.space,
    )


def _as_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None
