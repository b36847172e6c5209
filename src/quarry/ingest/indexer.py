"""Vector index manager: delete-then-insert reindexing of pages.

reindex(page):
  1. delete_index(page)            (idempotent)
  2. chunk_content(content)        (zero chunks → 0, no embedding call)
  3. embed(chunks)                 (one batched call)
  4. one VectorEntry per chunk, id = "{page_id}-chunk-{i}", full metadata each
  5. upsert in sequential batches of ``upsert_batch_size``

The vector store has no transactions: between step 1 and step 5 a page's
index is empty or partial, and an interrupted reindex leaves only a prefix of
the new entries. Callers must tolerate stale or missing hits in that window.

delete_index(page) cannot rely on a filtered delete. It scans the store with a
zero vector filtered by ``page_id`` and deletes the ids found, then any id the
entry ledger recorded that the scans missed. If the store
rejects the filtered scan, it deletes a synthesized id range
``0..max_chunks_per_page-1`` plus the legacy bare page id, together with every
id the entry ledger recorded for the page.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from quarry.config import IndexCfg
from quarry.db.models import VectorEntry
from quarry.db.repository import EntryLedger
from quarry.db.vectors import VectorStore
from quarry.ingest.chunker import chunk_content
from quarry.ingest.embedder import EmbeddingClient

logger = logging.getLogger(__name__)

# Upper bound on filtered delete scans per page; each scan removes up to top_k ids.
_MAX_DELETE_SCANS = 50

_RESERVED_KEYS = frozenset(["page_id", "chunk_index", "total_chunks", "title", "content"])


def entry_id(page_id: str, index: int) -> str:
    """Deterministic vector entry id for chunk *index* of *page_id*."""
    return f"{page_id}-chunk-{index}"


@dataclass
class PageToIndex:
    """Input to batch reindexing: a page id, its text and its metadata."""

    page_id: str
    content: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchSummary:
    pages_indexed: int = 0
    total_chunks: int = 0


class VectorIndexManager:
    """Own the lifecycle of every vector entry belonging to a page.

    Args:
        store: Vector store primitives (upsert / query / delete_by_ids).
        embedder: Embedding client used for chunk vectors.
        config: Chunk budget, batch sizes and deletion bounds.
        ledger: Optional side index of entry ids per page; makes the
            deletion fallback exact.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingClient,
        config: IndexCfg | None = None,
        ledger: EntryLedger | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or IndexCfg()
        self._ledger = ledger

    # ------------------------------------------------------------------
    # Reindex
    # ------------------------------------------------------------------

    def reindex(self, page_id: str, content: str, metadata: Mapping[str, str | None]) -> int:
        """Replace all vector entries of *page_id*. Returns the number of chunks indexed.

        *metadata* must carry ``title``; ``space_id``, ``collection_id``,
        ``path`` and any other string values are attached to every entry.

        Raises:
            ProviderError: If embedding fails (old entries are already deleted).
        """
        self.delete_index(page_id)

        chunks = chunk_content(content, self._config.chunk_max_tokens)
        if not chunks:
            logger.info("Page %s has no indexable content", page_id)
            return 0

        vectors = self._embedder.embed(chunks)
        entries = self._build_entries(page_id, chunks, vectors, metadata)

        batch_size = self._config.upsert_batch_size
        for start in range(0, len(entries), batch_size):
            batch = entries[start : start + batch_size]
            self._store.upsert(batch)
            if self._ledger is not None:
                self._ledger.record_entries(page_id, [e.entry_id for e in batch])
            logger.debug(
                "Upserted %d entries for page %s (batch %d)",
                len(batch),
                page_id,
                start // batch_size + 1,
            )

        logger.info("Indexed page %s: %d chunks", page_id, len(entries))
        return len(entries)

    def batch_reindex(
        self,
        pages: Iterable[PageToIndex],
        on_page: Callable[[PageToIndex, int], None] | None = None,
    ) -> BatchSummary:
        """Reindex *pages* strictly one after another (provider rate limits).

        Args:
            pages: Pages to reindex, consumed lazily.
            on_page: Called with each page and its chunk count once it is indexed.
        """
        summary = BatchSummary()
        for page in pages:
            n = self.reindex(page.page_id, page.content, page.metadata)
            summary.total_chunks += n
            summary.pages_indexed += 1
            if on_page is not None:
                on_page(page, n)
        logger.info(
            "Batch reindex complete: %d pages, %d chunks",
            summary.pages_indexed,
            summary.total_chunks,
        )
        return summary

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_index(self, page_id: str) -> int:
        """Remove every vector entry of *page_id*. Deleting nothing is not an error.

        Returns:
            Number of entry ids submitted for deletion.
        """
        try:
            submitted = self._delete_by_scan(page_id)
        except Exception as exc:
            logger.warning(
                "Filtered scan failed for page %s (%s); deleting by synthesized ids",
                page_id,
                exc,
            )
            submitted = self._delete_by_guess(page_id)

        if self._ledger is not None:
            self._ledger.clear_entries(page_id)
        return submitted

    def _delete_by_scan(self, page_id: str) -> int:
        top_k = self._config.delete_scan_top_k
        zero = [0.0] * self._embedder.dimensions
        seen: set[str] = set()

        for _ in range(_MAX_DELETE_SCANS):
            matches = self._store.query(
                zero, top_k=top_k, filter={"page_id": page_id}, return_metadata=True
            )
            # Stores that silently ignore filters must not delete other pages.
            ids = [m.entry_id for m in matches if m.metadata.get("page_id", page_id) == page_id]
            if ids:
                self._store.delete_by_ids(ids)
                seen.update(ids)
            if len(matches) < top_k or not ids:
                break
        else:
            logger.warning(
                "Page %s still had entries after %d delete scans", page_id, _MAX_DELETE_SCANS
            )

        # A store that ignores the filter can fill every scan with other pages.
        if self._ledger is not None:
            leftover = [i for i in self._ledger.entry_ids(page_id) if i not in seen]
            if leftover:
                self._store.delete_by_ids(leftover)
                seen.update(leftover)
        return len(seen)

    def _delete_by_guess(self, page_id: str) -> int:
        ids = [entry_id(page_id, i) for i in range(self._config.max_chunks_per_page)]
        ids.append(page_id)
        if self._ledger is not None:
            known = set(ids)
            ids.extend(i for i in self._ledger.entry_ids(page_id) if i not in known)
        try:
            self._store.delete_by_ids(ids)
        except Exception as exc:
            # Some stores reject unknown ids; nothing else is left to delete.
            logger.warning("Delete by ids for page %s reported: %s", page_id, exc)
        return len(ids)

    # ------------------------------------------------------------------
    # Entry construction
    # ------------------------------------------------------------------

    def _build_entries(
        self,
        page_id: str,
        chunks: list[str],
        vectors: list[list[float]],
        metadata: Mapping[str, str | None],
    ) -> list[VectorEntry]:
        extra = {
            key: str(value)
            for key, value in metadata.items()
            if value is not None and key not in _RESERVED_KEYS
        }
        container = {
            "space_id": str(metadata.get("space_id") or ""),
            "collection_id": str(metadata.get("collection_id") or ""),
            "path": str(metadata.get("path") or ""),
        }
        title = str(metadata.get("title") or "")
        snippet_chars = self._config.snippet_chars
        total = len(chunks)

        return [
            VectorEntry(
                entry_id=entry_id(page_id, i),
                vector=vector,
                page_id=page_id,
                chunk_index=i,
                total_chunks=total,
                title=title,
                content=text[:snippet_chars],
                metadata={**extra, **container},
            )
            for i, (text, vector) in enumerate(zip(chunks, vectors))
        ]
