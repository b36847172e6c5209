"""Shared wiring for CLI commands: database, config, vector store, clients."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from quarry.cli.errors import err_config, err_no_api_key, err_no_db
from quarry.config import ConfigError, QuarryConfig, load_config
from quarry.db.connection import Database
from quarry.db.models import Page
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.db.vectors import SqliteVectorStore
from quarry.ingest.embedder import EmbeddingClient
from quarry.ingest.indexer import PageToIndex, VectorIndexManager
from quarry.rag.llm_client import provider_of, validate_api_key

DEFAULT_DB = Path(".quarry.db")


@dataclass
class Runtime:
    conn: sqlite3.Connection
    config: QuarryConfig
    repo: Repository
    store: SqliteVectorStore
    embedder: EmbeddingClient

    def index_manager(self) -> VectorIndexManager:
        return VectorIndexManager(
            self.store, self.embedder, self.config.index, ledger=self.repo
        )

    def close(self) -> None:
        self.conn.close()


def open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def open_runtime(console: Console, db_path: Path) -> Runtime:
    """Open an existing database with the project config, or exit 1 with a hint."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    config = load_config_or_exit(console)
    conn = open_db(db_path)
    return Runtime(
        conn=conn,
        config=config,
        repo=Repository(conn),
        store=SqliteVectorStore.for_model(
            conn, config.embedding.model, config.embedding.dimensions
        ),
        embedder=EmbeddingClient(config.embedding),
    )


def load_config_or_exit(console: Console) -> QuarryConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def require_api_key(console: Console, model: str) -> None:
    """Exit 1 with an actionable message if *model*'s provider key is unset."""
    try:
        validate_api_key(model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(provider_of(model)))
        raise typer.Exit(1) from exc


def page_to_index(repo: Repository, page: Page) -> PageToIndex:
    """Build reindex input for *page*, resolving its collection via the space."""
    collection_id = None
    if page.space_id:
        space = repo.get_space(page.space_id)
        collection_id = space.collection_id if space else None
    return PageToIndex(
        page_id=page.id,
        content=page.content,
        metadata={
            "title": page.title,
            "space_id": page.space_id or "",
            "collection_id": collection_id or "",
            "path": page.path,
        },
    )
