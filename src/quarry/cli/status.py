"""quarry status: knowledge base overview (pages, vector entries, models)."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from quarry.cli.runtime import DEFAULT_DB, load_config_or_exit, open_db
from quarry.db.migrations import current_version
from quarry.db.repository import Repository
from quarry.db.schema import CURRENT_VERSION
from quarry.db.vectors import SqliteVectorStore

console = Console()


def status_cmd(
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Show pages, indexed entries and configured models."""
    cfg = load_config_or_exit(console)

    model_lines = [
        f"Embedding:   [bold]{cfg.embedding.model}[/] ({cfg.embedding.dimensions} dims)",
        f"Generation:  [bold]{cfg.generation.model}[/]",
    ]
    console.print(Panel("\n".join(model_lines), title="[bold]Models[/]", expand=False))

    if not db.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  quarry init",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    conn = open_db(db)
    try:
        repo = Repository(conn)
        store = SqliteVectorStore.for_model(conn, cfg.embedding.model, cfg.embedding.dimensions)
        size_mb = db.stat().st_size / (1024 * 1024)
        lines = [
            f"Database:  {db} ({size_mb:.1f} MB, schema v{current_version(conn)}/{CURRENT_VERSION})",
            f"Pages: [bold]{repo.count_pages()}[/]  |  "
            f"Vector entries: [bold]{store.count():,}[/]  |  "
            f"Ledger: [bold]{repo.count_entries():,}[/]",
        ]
        console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))
    finally:
        conn.close()
