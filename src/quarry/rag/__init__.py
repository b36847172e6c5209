"""Quarry read path: semantic / lexical / hybrid search, enrichment and RAG."""

from quarry.rag.enricher import enrich_results
from quarry.rag.hybrid import HybridResult, hybrid_search, merge_results
from quarry.rag.orchestrator import RagAnswer, RagOrchestrator, RagStream, Source
from quarry.rag.search import (
    SearchOptions,
    SearchResult,
    lexical_search,
    search_chunks,
    semantic_search,
)

__all__ = [
    "SearchOptions",
    "SearchResult",
    "semantic_search",
    "search_chunks",
    "lexical_search",
    "HybridResult",
    "hybrid_search",
    "merge_results",
    "enrich_results",
    "RagOrchestrator",
    "RagAnswer",
    "RagStream",
    "Source",
]
