"""Quarry rich error messages: what went wrong, and what to run next.

Usage:
    from quarry.cli.errors import err_no_db
    console.print(err_no_db(".quarry.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from quarry.rag.llm_client import _PROVIDER_ENV


def err_no_db(db_path: str = ".quarry.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  quarry init"
    )


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _PROVIDER_ENV.get(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {detail}\n"
        "  Fix quarry.yaml (or ~/.quarry/config.yaml) and retry."
    )


def err_page_not_found(page_id: str) -> str:
    return (
        f"[yellow]Page not found:[/] '{page_id}' is not in the knowledge base.\n"
        "  Run:  quarry status  to see how many pages are stored."
    )


def err_unsupported_file(path: str) -> str:
    return (
        f"[red]Error:[/] Unsupported file type: '{path}'\n"
        "  Supported:  .md .markdown .txt .json (editor blocks)"
    )


def err_search_failed() -> str:
    return (
        "[red]Error:[/] Search failed.\n"
        "  Check the embedding provider and retry, or use:  --mode lexical"
    )


def err_generation_failed() -> str:
    return (
        "[red]Error:[/] Failed to generate answer.\n"
        "  Check the generation model in quarry.yaml and your API key, then retry."
    )


def err_indexing_failed(page_id: str) -> str:
    """Embedding failed after the old entries were already deleted."""
    return (
        f"[red]Error:[/] Indexing failed for page '{page_id}'.\n"
        "  The page may be missing from search until it is reindexed.\n"
        f"  Run:  quarry index --page {page_id}"
    )


def err_invalid_history(path: str, detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid conversation history in '{path}': {detail}\n"
        '  Expected a JSON list like:  [{"role": "user", "content": "..."}]'
    )
