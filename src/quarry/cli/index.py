"""quarry index: rebuild the vector entries of one page or of every page."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from quarry.cli.errors import err_indexing_failed, err_page_not_found
from quarry.cli.runtime import DEFAULT_DB, Runtime, open_runtime, page_to_index, require_api_key
from quarry.errors import ProviderError
from quarry.ingest.indexer import PageToIndex

console = Console()


def index_cmd(
    page: Annotated[
        str | None, typer.Option("--page", "-p", help="Page ID to reindex.")
    ] = None,
    all_pages: Annotated[
        bool, typer.Option("--all", help="Reindex every live page.")
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Reindex a page (--page ID) or all pages (--all)."""
    if bool(page) == all_pages:
        console.print("[red]Error:[/] Specify exactly one of --page ID or --all.")
        raise typer.Exit(1)

    rt = open_runtime(console, db)
    try:
        require_api_key(console, rt.config.embedding.model)
        if page:
            _index_one(rt, page)
        else:
            _index_all(rt)
    finally:
        rt.close()


def _index_one(rt: Runtime, page_id: str) -> None:
    page = rt.repo.get_page(page_id)
    if page is None or page.deleted_at is not None:
        console.print(err_page_not_found(page_id))
        raise typer.Exit(1)

    item = page_to_index(rt.repo, page)
    try:
        n = rt.index_manager().reindex(item.page_id, item.content, item.metadata)
    except ProviderError as exc:
        console.print(err_indexing_failed(page_id))
        raise typer.Exit(1) from exc
    console.print(f"[green]✓[/] {page_id}: {n} chunks")


def _index_all(rt: Runtime) -> None:
    pages = rt.repo.list_pages()
    if not pages:
        console.print("[yellow]No pages to index.[/]  Run:  quarry add --file <path> --title <t>")
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as prog:
        task = prog.add_task("Indexing pages…", total=len(pages))
        current: list[str] = []

        def _items() -> Iterator[PageToIndex]:
            for page in pages:
                current[:] = [page.id]
                yield page_to_index(rt.repo, page)

        try:
            summary = rt.index_manager().batch_reindex(
                _items(), on_page=lambda item, n: prog.advance(task)
            )
        except ProviderError as exc:
            console.print(err_indexing_failed(current[0]))
            raise typer.Exit(1) from exc

    console.print(
        f"[green]✓[/] Indexed {summary.pages_indexed} pages, {summary.total_chunks} chunks"
    )
