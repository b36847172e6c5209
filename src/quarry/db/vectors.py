"""Vector store contract and the per-model SQLite implementation.

Entries live in a plain table ``vec_entries_{model_slug}`` with the embedding
stored as a float32 blob; similarity is computed with sqlite-vec's
``vec_distance_cosine`` (score = 1 - distance, higher is more relevant).
"""

from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Sequence
from typing import Protocol

from sqlite_vec import serialize_float32

from quarry.db.models import VectorEntry, VectorMatch

_FILTER_KEY_RE = re.compile(r"[A-Za-z0-9_]+")
_DELETE_CHUNK = 500


class VectorStore(Protocol):
    """Native primitives of a vector index. Filter support is best-effort."""

    def upsert(self, entries: Sequence[VectorEntry]) -> None: ...

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: dict[str, str] | None = None,
        return_metadata: bool = True,
    ) -> list[VectorMatch]: ...

    def delete_by_ids(self, ids: Sequence[str]) -> int: ...


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vector table name for a model slug."""
    return f"vec_entries_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_entries_{model_slug} if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions; enforced on every row.

    Returns:
        The table name (vec_entries_{model_slug}).
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}'; use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            entry_id        TEXT PRIMARY KEY,
            page_id         TEXT NOT NULL,
            chunk_index     INTEGER NOT NULL,
            total_chunks    INTEGER NOT NULL,
            title           TEXT NOT NULL DEFAULT '',
            content         TEXT NOT NULL DEFAULT '',
            metadata        TEXT NOT NULL DEFAULT '{{}}',
            embedding       BLOB NOT NULL CHECK (length(embedding) = {dimensions * 4})
        )
        """
    )
    conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_page ON {table}(page_id)")
    conn.commit()
    return table


class SqliteVectorStore:
    """VectorStore backed by a per-model table in the project database.

    Supports metadata filters (exact match on any metadata key); queries are
    brute-force cosine scans, adequate for a single knowledge base.
    """

    def __init__(self, conn: sqlite3.Connection, table: str, dimensions: int) -> None:
        self._conn = conn
        self._table = table
        self.dimensions = dimensions

    @classmethod
    def for_model(
        cls, conn: sqlite3.Connection, model: str, dimensions: int
    ) -> SqliteVectorStore:
        """Open (creating if needed) the vector table for *model*."""
        table = ensure_vec_table(conn, model_to_slug(model), dimensions)
        return cls(conn, table, dimensions)

    @property
    def table(self) -> str:
        return self._table

    def upsert(self, entries: Sequence[VectorEntry]) -> None:
        """Insert or replace *entries* by entry id."""
        rows = []
        for entry in entries:
            self._check_dimensions(entry.vector)
            rows.append(
                (
                    entry.entry_id,
                    entry.page_id,
                    entry.chunk_index,
                    entry.total_chunks,
                    entry.title,
                    entry.content,
                    json.dumps(entry.full_metadata()),
                    serialize_float32(list(entry.vector)),
                )
            )
        self._conn.executemany(
            f"""
            INSERT INTO {self._table}
                (entry_id, page_id, chunk_index, total_chunks, title, content, metadata, embedding)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(entry_id) DO UPDATE SET
                page_id = excluded.page_id,
                chunk_index = excluded.chunk_index,
                total_chunks = excluded.total_chunks,
                title = excluded.title,
                content = excluded.content,
                metadata = excluded.metadata,
                embedding = excluded.embedding
            """,  # noqa: S608
            rows,
        )
        self._conn.commit()

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: dict[str, str] | None = None,
        return_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return up to *top_k* matches sorted by cosine similarity, best first.

        An all-zero vector has no direction: matching rows are returned in
        entry id order with score 0.0.
        """
        self._check_dimensions(vector)
        where, params = _build_where(filter)

        if any(vector):
            sql = (
                f"SELECT entry_id, metadata, vec_distance_cosine(embedding, ?) AS distance "
                f"FROM {self._table}{where} ORDER BY distance LIMIT ?"
            )
            args: list[object] = [serialize_float32(list(vector)), *params, top_k]
        else:
            sql = (
                f"SELECT entry_id, metadata, NULL AS distance "
                f"FROM {self._table}{where} ORDER BY entry_id LIMIT ?"
            )
            args = [*params, top_k]

        matches: list[VectorMatch] = []
        for row in self._conn.execute(sql, args).fetchall():  # noqa: S608
            distance = row["distance"]
            matches.append(
                VectorMatch(
                    entry_id=row["entry_id"],
                    score=1.0 - distance if distance is not None else 0.0,
                    metadata=json.loads(row["metadata"]) if return_metadata else {},
                )
            )
        return matches

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        """Delete entries by id. Unknown ids are ignored. Returns rows deleted."""
        unique = list(dict.fromkeys(ids))
        deleted = 0
        for start in range(0, len(unique), _DELETE_CHUNK):
            batch = unique[start : start + _DELETE_CHUNK]
            placeholders = ",".join("?" * len(batch))
            cur = self._conn.execute(
                f"DELETE FROM {self._table} WHERE entry_id IN ({placeholders})",  # noqa: S608
                batch,
            )
            deleted += cur.rowcount
        self._conn.commit()
        return deleted

    def count(self, page_id: str | None = None) -> int:
        """Number of stored entries, optionally for a single page."""
        if page_id is None:
            return self._conn.execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()[0]
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {self._table} WHERE page_id = ?", (page_id,)
        ).fetchone()[0]

    def _check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, index expects {self.dimensions}"
            )


def _build_where(filter: dict[str, str] | None) -> tuple[str, list[str]]:
    """Translate an exact-match metadata filter into a WHERE clause."""
    if not filter:
        return "", []
    clauses: list[str] = []
    params: list[str] = []
    for key, value in filter.items():
        if not _FILTER_KEY_RE.fullmatch(key):
            raise ValueError(f"Invalid metadata filter key '{key}'")
        clauses.append("json_extract(metadata, ?) = ?")
        params.extend([f'$."{key}"', str(value)])
    return " WHERE " + " AND ".join(clauses), params
