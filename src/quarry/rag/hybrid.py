"""Hybrid search: semantic + lexical legs merged into one ranked list.

Both legs run concurrently and are joined before merging:
  - semantic results keep their score (adjusted_score == score)
  - lexical results are discounted: adjusted_score = score * discount
  - a page already returned by the semantic leg is dropped from the lexical leg
  - stable sort by adjusted_score desc, truncate to limit

There is no degraded single-leg mode: if either leg fails the whole search
fails with SearchError.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields

from quarry.db.repository import PageStore
from quarry.db.vectors import VectorStore
from quarry.errors import SearchError
from quarry.ingest.embedder import EmbeddingClient
from quarry.rag.search import SearchOptions, SearchResult, lexical_search, semantic_search

logger = logging.getLogger(__name__)

DEFAULT_LEXICAL_DISCOUNT = 0.8

SOURCE_SEMANTIC = "semantic"
SOURCE_LEXICAL = "lexical"


@dataclass
class HybridResult(SearchResult):
    """A SearchResult tagged with its leg and post-merge ranking score.

    ``score`` is the leg's raw score; ``adjusted_score`` is what the merged
    list is sorted by.
    """

    source: str = SOURCE_SEMANTIC
    adjusted_score: float = 0.0


def merge_results(
    semantic: list[SearchResult],
    lexical: list[SearchResult],
    limit: int,
    discount: float = DEFAULT_LEXICAL_DISCOUNT,
) -> list[HybridResult]:
    """Merge two result lists with semantic priority and a lexical discount.

    Args:
        semantic: Semantic leg results, best first.
        lexical: Lexical leg results.
        limit: Maximum number of merged results.
        discount: Multiplier applied to every lexical score.

    Returns:
        At most *limit* results, sorted by ``adjusted_score`` descending.
        Ties keep their merge order (semantic before lexical).
    """
    merged: list[HybridResult] = []
    seen_pages: set[str] = set()

    for result in semantic:
        seen_pages.add(result.page_id)
        merged.append(_tag(result, SOURCE_SEMANTIC, result.score))

    for result in lexical:
        if result.page_id in seen_pages:
            continue
        seen_pages.add(result.page_id)
        merged.append(_tag(result, SOURCE_LEXICAL, result.score * discount))

    merged.sort(key=lambda r: r.adjusted_score, reverse=True)
    return merged[:limit]


def hybrid_search(
    query: str,
    store: VectorStore,
    embedder: EmbeddingClient,
    repo: PageStore,
    options: SearchOptions | None = None,
    discount: float = DEFAULT_LEXICAL_DISCOUNT,
    lexical_score: float = 1.0,
) -> list[HybridResult]:
    """Run semantic and lexical search concurrently and merge the results.

    Raises:
        SearchError: If either leg raises; the leg's exception is chained.
    """
    options = options or SearchOptions()

    with ThreadPoolExecutor(max_workers=2) as pool:
        semantic_future = pool.submit(semantic_search, query, store, embedder, options)
        lexical_future = pool.submit(lexical_search, query, repo, options, lexical_score)
        try:
            semantic = semantic_future.result()
            lexical = lexical_future.result()
        except Exception as exc:
            logger.warning("Hybrid search leg failed: %s", exc)
            raise SearchError() from exc

    logger.debug(
        "Hybrid search: %d semantic, %d lexical results", len(semantic), len(lexical)
    )
    return merge_results(semantic, lexical, options.limit, discount)


def _tag(result: SearchResult, source: str, adjusted_score: float) -> HybridResult:
    # Shallow copy: page / space objects are shared, not converted to dicts.
    values = {f.name: getattr(result, f.name) for f in fields(SearchResult)}
    return HybridResult(**values, source=source, adjusted_score=adjusted_score)
