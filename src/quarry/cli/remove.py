"""quarry remove: delete a page's vector entries (and, by default, the page).

Usage:
  quarry remove --page 3f2a...
  quarry remove --page 3f2a... --keep-page --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.errors import err_page_not_found
from quarry.cli.runtime import DEFAULT_DB, open_runtime

console = Console()


def remove_cmd(
    page: Annotated[str, typer.Option("--page", "-p", help="Page ID to remove.")],
    keep_page: Annotated[
        bool,
        typer.Option("--keep-page", help="Only drop vector entries; keep the page itself."),
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Remove a page from the search index."""
    rt = open_runtime(console, db)
    try:
        existing = rt.repo.get_page(page)
        if existing is None:
            console.print(err_page_not_found(page))
            raise typer.Exit(0)

        entries = rt.store.count(page_id=page)
        console.print(f"\nRemove page: [bold]{existing.title}[/] ({page})")
        console.print(
            f"  Vector entries: {entries}  |  "
            f"Page record: {'kept' if keep_page else 'soft-deleted'}"
        )
        if not yes and not typer.confirm("Confirm removal?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        rt.index_manager().delete_index(page)
        if not keep_page:
            rt.repo.soft_delete_page(page)

        remaining = rt.store.count(page_id=page)
        console.print(f"\n[green]✓[/] Removed {entries - remaining} vector entries")
        if remaining:
            console.print(f"  [yellow]⚠ {remaining} entries could not be removed[/]")
    finally:
        rt.close()
