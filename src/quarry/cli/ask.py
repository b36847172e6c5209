"""quarry ask / quarry chat: retrieval-augmented answers with cited sources."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from quarry.cli.errors import err_generation_failed, err_invalid_history
from quarry.cli.runtime import DEFAULT_DB, Runtime, open_runtime, require_api_key
from quarry.errors import GenerationError
from quarry.rag.orchestrator import RagAnswer, RagOrchestrator, RagStream, Source

console = Console()


def ask_cmd(
    query: Annotated[str, typer.Argument(help="Question to answer from the knowledge base.")],
    space: Annotated[str | None, typer.Option("--space", help="Restrict to a space.")] = None,
    collection: Annotated[
        str | None, typer.Option("--collection", help="Restrict to a collection.")
    ] = None,
    stream: Annotated[
        bool, typer.Option("--stream", help="Print the answer as it is generated.")
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Answer a question using the indexed documentation."""
    rt = open_runtime(console, db)
    try:
        _require_keys(rt)
        rag = RagOrchestrator(rt.store, rt.embedder, rt.config)
        try:
            if stream:
                _print_stream(rag.stream_answer(query, space, collection))
            else:
                _print_answer(rag.answer(query, space, collection))
        except ValueError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc
        except GenerationError as exc:
            console.print(err_generation_failed())
            raise typer.Exit(1) from exc
    finally:
        rt.close()


def chat_cmd(
    history: Annotated[
        Path,
        typer.Option("--history", help="JSON file with a list of {role, content} messages."),
    ],
    space: Annotated[str | None, typer.Option("--space", help="Restrict to a space.")] = None,
    collection: Annotated[
        str | None, typer.Option("--collection", help="Restrict to a collection.")
    ] = None,
    stream: Annotated[
        bool, typer.Option("--stream", help="Print the answer as it is generated.")
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Answer the latest user message of a conversation."""
    messages = _load_history(history)

    rt = open_runtime(console, db)
    try:
        _require_keys(rt)
        rag = RagOrchestrator(rt.store, rt.embedder, rt.config)
        try:
            if stream:
                _print_stream(rag.stream_conversation(messages, space, collection))
            else:
                _print_answer(rag.answer_conversation(messages, space, collection))
        except ValueError as exc:
            console.print(err_invalid_history(str(history), str(exc)))
            raise typer.Exit(1) from exc
        except GenerationError as exc:
            console.print(err_generation_failed())
            raise typer.Exit(1) from exc
    finally:
        rt.close()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _require_keys(rt: Runtime) -> None:
    require_api_key(console, rt.config.embedding.model)
    require_api_key(console, rt.config.generation.model)


def _load_history(path: Path) -> list[dict]:
    if not path.is_file():
        console.print(f"[red]Error:[/] File not found: '{path}'")
        raise typer.Exit(1)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        console.print(err_invalid_history(str(path), exc.msg))
        raise typer.Exit(1) from exc
    if isinstance(data, dict):
        data = data.get("messages")
    if not isinstance(data, list):
        console.print(err_invalid_history(str(path), "expected a list of messages"))
        raise typer.Exit(1)
    return data


def _print_answer(result: RagAnswer) -> None:
    console.print(Markdown(result.answer))
    _print_sources(result.sources)


def _print_stream(result: RagStream) -> None:
    for text in result.chunks:
        console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
    console.print()
    _print_sources(result.sources)


def _print_sources(sources: list[Source]) -> None:
    if not sources:
        return
    table = Table(title="Sources", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Page")
    table.add_column("Score", justify="right")
    for i, s in enumerate(sources, start=1):
        table.add_row(str(i), s.title, s.page_id, f"{s.score:.3f}")
    console.print(table)
