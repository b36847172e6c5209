"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Use litellm's bundled model cost map: its background network fetch can
# deadlock concurrent imports during collection when offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from collections.abc import Sequence

import pytest

from quarry.db.connection import Database
from quarry.db.models import VectorEntry, VectorMatch
from quarry.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".quarry.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


class FakeEmbedder:
    """Deterministic stand-in for EmbeddingClient.

    Texts containing a key of *vectors* get that vector; everything else gets
    *default*. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        dimensions: int = 4,
    ) -> None:
        self.dimensions = dimensions
        self.model = "fake/embedder"
        self._vectors = vectors or {}
        self._default = default or [1.0] + [0.0] * (dimensions - 1)
        self.calls: list[list[str]] = []

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector_for(t) for t in texts]

    def embed_one(self, text: str) -> list[float]:
        return self.embed([text])[0]

    def _vector_for(self, text: str) -> list[float]:
        for key, vector in self._vectors.items():
            if key in text:
                return list(vector)
        return list(self._default)


class FakeVectorStore:
    """In-memory VectorStore returning canned matches for similarity queries.

    Zero-vector scans honour the ``page_id`` filter over stored entries unless
    ``reject_filters`` is set, in which case any filtered query raises.
    """

    def __init__(
        self,
        matches: list[VectorMatch] | None = None,
        reject_filters: bool = False,
        ignore_filters: bool = False,
    ) -> None:
        self.entries: dict[str, VectorEntry] = {}
        self.matches = matches or []
        self.reject_filters = reject_filters
        self.ignore_filters = ignore_filters
        self.queries: list[dict] = []
        self.deleted: list[list[str]] = []
        self.upserts: list[list[str]] = []

    def upsert(self, entries: Sequence[VectorEntry]) -> None:
        self.upserts.append([e.entry_id for e in entries])
        for entry in entries:
            self.entries[entry.entry_id] = entry

    def query(self, vector, top_k, filter=None, return_metadata=True):
        self.queries.append({"vector": list(vector), "top_k": top_k, "filter": filter})
        if filter and self.reject_filters:
            raise RuntimeError("metadata filtering not supported")
        if any(vector):
            return list(self.matches[:top_k])

        found = []
        for entry_id in sorted(self.entries):
            meta = self.entries[entry_id].full_metadata()
            if filter and not self.ignore_filters:
                if any(meta.get(k) != v for k, v in filter.items()):
                    continue
            found.append(VectorMatch(entry_id=entry_id, score=0.0, metadata=meta))
        return found[:top_k]

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        self.deleted.append(list(ids))
        removed = 0
        for entry_id in ids:
            if self.entries.pop(entry_id, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def make_embedder() -> type[FakeEmbedder]:
    """The FakeEmbedder class, for tests that need custom vectors."""
    return FakeEmbedder


@pytest.fixture
def make_store() -> type[FakeVectorStore]:
    """The FakeVectorStore class, for tests that need canned matches."""
    return FakeVectorStore
