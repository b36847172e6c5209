"""Quarry CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from quarry.cli.add import add_cmd
from quarry.cli.ask import ask_cmd, chat_cmd
from quarry.cli.index import index_cmd
from quarry.cli.init import init_cmd
from quarry.cli.remove import remove_cmd
from quarry.cli.search import search_cmd
from quarry.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("quarry")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quarry {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="quarry",
    help=(
        "Quarry: semantic search and RAG over a documentation knowledge base.\n\n"
        "  quarry add     Import a page and index it.\n"
        "  quarry search  Semantic, lexical or hybrid search.\n"
        "  quarry ask     Answer a question with cited sources."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log indexing and search details to stderr."),
    ] = False,
) -> None:
    """Quarry: semantic search and RAG over a documentation knowledge base."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        # Library loggers only; provider HTTP chatter stays quiet.
        for noisy in ("httpx", "httpcore", "LiteLLM", "openai"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


app.command("init")(init_cmd)
app.command("add")(add_cmd)
app.command("index")(index_cmd)
app.command("remove")(remove_cmd)
app.command("search")(search_cmd)
app.command("ask")(ask_cmd)
app.command("chat")(chat_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Quarry version."""
    typer.echo(f"quarry {_installed_version()}")


if __name__ == "__main__":
    app()
