"""Quarry storage layer."""

from quarry.db.connection import Database
from quarry.db.migrations import MIGRATIONS, run_migrations
from quarry.db.repository import EntryLedger, PageStore, Repository
from quarry.db.schema import initialize
from quarry.db.vectors import (
    SqliteVectorStore,
    VectorStore,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "PageStore",
    "EntryLedger",
    "SqliteVectorStore",
    "VectorStore",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
