"""quarry init: create the knowledge base and a default project config.

Creates (in the project directory):
  .quarry.db     SQLite database with the page schema and entry ledger
  quarry.yaml    project config with the default models and limits
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.runtime import DEFAULT_DB, open_db
from quarry.config import ensure_project_config

console = Console()


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Initialize a Quarry knowledge base in PROJECT_DIR."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / DEFAULT_DB
    existed = db_path.exists()
    conn = open_db(db_path)
    conn.close()

    if existed:
        console.print(f"[yellow]⚠[/]  {db_path} already exists. Schema is up to date.")
    else:
        console.print(f"[green]✓[/] Created {db_path}")

    config_path = ensure_project_config(project_dir)
    console.print(f"[green]✓[/] Config: {config_path}")
    console.print("\nNext:  quarry add --file <path> --title <title>")
