"""quarry add: import a page into the canonical store and index it.

File dispatch by extension:
  .md / .markdown / .txt  → page content is the file text
  .json                   → editor block list, flattened to text
"""

from __future__ import annotations

import json
import re
import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.errors import err_indexing_failed, err_unsupported_file
from quarry.cli.runtime import DEFAULT_DB, open_runtime, page_to_index, require_api_key
from quarry.db.models import Page, Space
from quarry.errors import ProviderError
from quarry.ingest.blocks import extract_text_from_blocks

console = Console()

_TEXT_EXTS = {".md", ".markdown", ".txt"}
_JSON_EXTS = {".json"}


def add_cmd(
    file: Annotated[Path, typer.Option("--file", "-f", help="Page content file.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Page title.")],
    page_id: Annotated[
        str | None,
        typer.Option("--id", help="Page ID. Defaults to a new UUID; reuse one to update a page."),
    ] = None,
    space: Annotated[
        str | None,
        typer.Option("--space", help="Space ID (created if missing)."),
    ] = None,
    collection: Annotated[
        str | None,
        typer.Option("--collection", help="Collection ID for a newly created space."),
    ] = None,
    description: Annotated[
        str | None, typer.Option("--description", help="Short page description.")
    ] = None,
    path: Annotated[
        str | None, typer.Option("--path", help="Page path. Defaults to /<slug>.")
    ] = None,
    no_index: Annotated[
        bool, typer.Option("--no-index", help="Store the page without embedding it.")
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Add (or update) a page from a file and index it for search."""
    content = _read_content(file)

    rt = open_runtime(console, db)
    try:
        if not no_index:
            require_api_key(console, rt.config.embedding.model)

        if space and rt.repo.get_space(space) is None:
            rt.repo.upsert_space(
                Space(id=space, name=space, slug=_slugify(space), collection_id=collection)
            )

        slug = _slugify(title)
        page = Page(
            id=page_id or str(uuid.uuid4()),
            title=title,
            space_id=space,
            description=description,
            path=path or f"/{slug}",
            slug=slug,
            content=content,
        )
        rt.repo.upsert_page(page)
        console.print(f"[green]✓[/] Stored page [bold]{page.id}[/] ({len(content):,} chars)")

        if no_index:
            console.print(f"  [dim]Not indexed. Run:  quarry index --page {page.id}[/]")
            return

        item = page_to_index(rt.repo, page)
        try:
            n = rt.index_manager().reindex(item.page_id, item.content, item.metadata)
        except ProviderError as exc:
            console.print(err_indexing_failed(page.id))
            raise typer.Exit(1) from exc

        if n == 0:
            console.print("  [yellow]✗ No indexable content (page is empty)[/]")
        else:
            console.print(f"  [green]✓[/] Indexed {n} chunk{'s' if n != 1 else ''}")
    finally:
        rt.close()


def _read_content(file: Path) -> str:
    ext = file.suffix.lower()
    if ext not in _TEXT_EXTS | _JSON_EXTS:
        console.print(err_unsupported_file(str(file)))
        raise typer.Exit(1)
    if not file.is_file():
        console.print(f"[red]Error:[/] File not found: '{file}'")
        raise typer.Exit(1)

    text = file.read_text(encoding="utf-8")
    if ext in _TEXT_EXTS:
        return text

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/] '{file}' is not valid JSON: {exc.msg}")
        raise typer.Exit(1) from exc
    blocks = data.get("blocks", []) if isinstance(data, dict) else data
    if not isinstance(blocks, list):
        console.print(f"[red]Error:[/] '{file}' must contain a list of blocks")
        raise typer.Exit(1)
    return extract_text_from_blocks(blocks)


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "page"
