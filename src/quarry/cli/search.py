"""quarry search: query the knowledge base and print a ranked table.

Modes:
  semantic  one result per page, ranked by best chunk similarity (default)
  chunks    matching chunks, several per page allowed
  lexical   title / description substring match, newest first
  hybrid    semantic + lexical, lexical scores discounted
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from quarry.cli.errors import err_search_failed
from quarry.cli.runtime import DEFAULT_DB, open_runtime, require_api_key
from quarry.errors import ProviderError, SearchError
from quarry.rag.enricher import enrich_results
from quarry.rag.hybrid import hybrid_search
from quarry.rag.search import (
    SearchOptions,
    SearchResult,
    lexical_search,
    search_chunks,
    semantic_search,
)

console = Console()

_SNIPPET_CHARS = 80


class SearchMode(str, Enum):
    semantic = "semantic"
    hybrid = "hybrid"
    lexical = "lexical"
    chunks = "chunks"


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search query.")],
    mode: Annotated[
        SearchMode, typer.Option("--mode", "-m", help="Search mode.")
    ] = SearchMode.semantic,
    space: Annotated[str | None, typer.Option("--space", help="Restrict to a space.")] = None,
    collection: Annotated[
        str | None, typer.Option("--collection", help="Restrict to a collection.")
    ] = None,
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", min=1, help="Maximum results.")
    ] = None,
    min_score: Annotated[
        float | None, typer.Option("--min-score", help="Similarity threshold.")
    ] = None,
    enrich: Annotated[
        bool, typer.Option("--enrich", help="Join results with page / space metadata.")
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Search indexed pages."""
    rt = open_runtime(console, db)
    try:
        cfg = rt.config.search
        default_min = cfg.chunks_min_score if mode is SearchMode.chunks else cfg.min_score
        options = SearchOptions(
            space_id=space,
            collection_id=collection,
            limit=limit if limit is not None else cfg.limit,
            min_score=min_score if min_score is not None else default_min,
        )

        if mode is not SearchMode.lexical:
            require_api_key(console, rt.config.embedding.model)

        try:
            results: list[SearchResult]
            if mode is SearchMode.semantic:
                results = semantic_search(query, rt.store, rt.embedder, options)
            elif mode is SearchMode.chunks:
                results = search_chunks(query, rt.store, rt.embedder, options)
            elif mode is SearchMode.lexical:
                results = lexical_search(query, rt.repo, options, cfg.lexical_score)
            else:
                results = hybrid_search(
                    query,
                    rt.store,
                    rt.embedder,
                    rt.repo,
                    options,
                    discount=cfg.lexical_discount,
                    lexical_score=cfg.lexical_score,
                )
        except (ProviderError, SearchError) as exc:
            console.print(err_search_failed())
            raise typer.Exit(1) from exc

        if enrich:
            results = enrich_results(results, rt.repo)
    finally:
        rt.close()

    if not results:
        console.print(f"[yellow]No results for[/] '{query}'")
        return

    _print_results(results, mode, enrich)


def _print_results(results: list[SearchResult], mode: SearchMode, enriched: bool) -> None:
    table = Table(title=f"{mode.value} search", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Page")
    if mode is SearchMode.hybrid:
        table.add_column("Source")
    if mode is SearchMode.chunks:
        table.add_column("Chunk", justify="right")
    if enriched:
        table.add_column("Space")
    table.add_column("Snippet", overflow="ellipsis")

    for i, r in enumerate(results, start=1):
        score = getattr(r, "adjusted_score", r.score)
        row = [str(i), f"{score:.3f}", r.title, r.page_id]
        if mode is SearchMode.hybrid:
            row.append(getattr(r, "source", ""))
        if mode is SearchMode.chunks:
            row.append(f"{r.chunk_index}/{r.total_chunks}" if r.chunk_index is not None else "")
        if enriched:
            row.append(r.space.name if r.space is not None else "")
        snippet = " ".join(r.content.split())
        row.append(snippet[:_SNIPPET_CHARS] + ("…" if len(snippet) > _SNIPPET_CHARS else ""))
        table.add_row(*row)

    console.print(table)
