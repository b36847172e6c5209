"""Repository for the canonical page store and the vector entry ledger.

Single interface for: spaces, pages, page metadata lookups, lexical title /
description search, and the page → entry id side index. The retrieval core
only reads pages; writes exist for the CLI and for tests.
"""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Iterable, Sequence
from typing import Protocol

from quarry.db.models import Page, PageRecord, Space


class PageStore(Protocol):
    """Read-only view of the canonical store used by search and enrichment."""

    def get_page_metadata(self, ids: Sequence[str]) -> list[PageRecord]: ...

    def search_by_title_or_description(
        self,
        pattern: str,
        space_id: str | None = None,
        collection_id: str | None = None,
        limit: int = 10,
    ) -> list[PageRecord]: ...


class EntryLedger(Protocol):
    """Side index mapping a page to every vector entry id written for it."""

    def record_entries(self, page_id: str, entry_ids: Iterable[str]) -> None: ...

    def entry_ids(self, page_id: str) -> list[str]: ...

    def clear_entries(self, page_id: str) -> None: ...


_PAGE_META_COLUMNS = """
    p.id, p.title, p.description, p.path, p.slug, p.icon,
    p.is_published, p.updated_at, p.space_id,
    s.name AS space_name, s.slug AS space_slug, s.icon AS space_icon,
    s.collection_id AS space_collection_id
"""


class Repository:
    """Data access layer for spaces, pages and the entry ledger.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see quarry.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Spaces
    # ------------------------------------------------------------------

    def upsert_space(self, space: Space) -> None:
        """Insert or replace a space record."""
        self._conn.execute(
            """
            INSERT INTO spaces (id, name, slug, icon, collection_id)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                slug = excluded.slug,
                icon = excluded.icon,
                collection_id = excluded.collection_id
            """,
            (space.id, space.name, space.slug, space.icon, space.collection_id),
        )
        self._conn.commit()

    def get_space(self, space_id: str) -> Space | None:
        row = self._conn.execute(
            "SELECT id, name, slug, icon, collection_id FROM spaces WHERE id = ?",
            (space_id,),
        ).fetchone()
        if row is None:
            return None
        return Space(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            icon=row["icon"],
            collection_id=row["collection_id"],
        )

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def upsert_page(self, page: Page) -> None:
        """Insert or update a page. ``updated_at`` defaults to now."""
        updated_at = page.updated_at if page.updated_at is not None else int(time.time())
        self._conn.execute(
            """
            INSERT INTO pages (id, space_id, title, description, path, slug, icon,
                               content, is_published, updated_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                space_id = excluded.space_id,
                title = excluded.title,
                description = excluded.description,
                path = excluded.path,
                slug = excluded.slug,
                icon = excluded.icon,
                content = excluded.content,
                is_published = excluded.is_published,
                updated_at = excluded.updated_at,
                deleted_at = excluded.deleted_at
            """,
            (
                page.id,
                page.space_id,
                page.title,
                page.description,
                page.path,
                page.slug,
                page.icon,
                page.content,
                int(page.is_published),
                updated_at,
                page.deleted_at,
            ),
        )
        self._conn.commit()

    def get_page(self, page_id: str) -> Page | None:
        """Return a page (with content) by ID, or None if not found."""
        row = self._conn.execute(
            """
            SELECT id, space_id, title, description, path, slug, icon, content,
                   is_published, updated_at, deleted_at
            FROM pages WHERE id = ?
            """,
            (page_id,),
        ).fetchone()
        return _row_to_page(row) if row else None

    def list_pages(self, space_id: str | None = None) -> list[Page]:
        """Return live (not soft-deleted) pages, oldest update first."""
        sql = """
            SELECT id, space_id, title, description, path, slug, icon, content,
                   is_published, updated_at, deleted_at
            FROM pages WHERE deleted_at IS NULL
        """
        params: list[str] = []
        if space_id:
            sql += " AND space_id = ?"
            params.append(space_id)
        sql += " ORDER BY updated_at, id"
        return [_row_to_page(r) for r in self._conn.execute(sql, params).fetchall()]

    def count_pages(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM pages WHERE deleted_at IS NULL"
        ).fetchone()[0]

    def soft_delete_page(self, page_id: str) -> None:
        """Mark a page deleted. Its vector entries are not touched here."""
        self._conn.execute(
            "UPDATE pages SET deleted_at = ? WHERE id = ?", (int(time.time()), page_id)
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Metadata lookup + lexical search
    # ------------------------------------------------------------------

    def get_page_metadata(self, ids: Sequence[str]) -> list[PageRecord]:
        """Batch-fetch page + space metadata for *ids* in a single query.

        Unknown ids are simply absent from the result. Content is not loaded.
        """
        unique = list(dict.fromkeys(i for i in ids if i))
        if not unique:
            return []
        placeholders = ",".join("?" * len(unique))
        rows = self._conn.execute(
            f"""
            SELECT {_PAGE_META_COLUMNS}
            FROM pages p
            LEFT JOIN spaces s ON p.space_id = s.id
            WHERE p.id IN ({placeholders})
            """,  # noqa: S608
            unique,
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def search_by_title_or_description(
        self,
        pattern: str,
        space_id: str | None = None,
        collection_id: str | None = None,
        limit: int = 10,
    ) -> list[PageRecord]:
        """Case-insensitive substring match on title / description, newest first."""
        like = f"%{_escape_like(pattern.casefold())}%"
        sql = f"""
            SELECT {_PAGE_META_COLUMNS}
            FROM pages p
            LEFT JOIN spaces s ON p.space_id = s.id
            WHERE (casefold(p.title) LIKE ? ESCAPE '\\' OR casefold(p.description) LIKE ? ESCAPE '\\')
              AND p.deleted_at IS NULL
        """  # noqa: S608
        params: list[str | int] = [like, like]
        if space_id:
            sql += " AND p.space_id = ?"
            params.append(space_id)
        if collection_id:
            sql += " AND s.collection_id = ?"
            params.append(collection_id)
        sql += " ORDER BY p.updated_at DESC LIMIT ?"
        params.append(limit)
        return [_row_to_record(r) for r in self._conn.execute(sql, params).fetchall()]

    # ------------------------------------------------------------------
    # Entry ledger
    # ------------------------------------------------------------------

    def record_entries(self, page_id: str, entry_ids: Iterable[str]) -> None:
        self._conn.executemany(
            "INSERT OR IGNORE INTO page_vector_entries (page_id, entry_id) VALUES (?, ?)",
            [(page_id, entry_id) for entry_id in entry_ids],
        )
        self._conn.commit()

    def entry_ids(self, page_id: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT entry_id FROM page_vector_entries WHERE page_id = ? ORDER BY entry_id",
            (page_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def clear_entries(self, page_id: str) -> None:
        self._conn.execute("DELETE FROM page_vector_entries WHERE page_id = ?", (page_id,))
        self._conn.commit()

    def count_entries(self) -> int:
        """Total ledger rows (one per vector entry currently recorded)."""
        return self._conn.execute("SELECT COUNT(*) FROM page_vector_entries").fetchone()[0]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_page(row: sqlite3.Row) -> Page:
    return Page(
        id=row["id"],
        space_id=row["space_id"],
        title=row["title"],
        description=row["description"],
        path=row["path"],
        slug=row["slug"],
        icon=row["icon"],
        content=row["content"],
        is_published=bool(row["is_published"]),
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


def _row_to_record(row: sqlite3.Row) -> PageRecord:
    page = Page(
        id=row["id"],
        title=row["title"],
        space_id=row["space_id"],
        description=row["description"],
        path=row["path"],
        slug=row["slug"],
        icon=row["icon"],
        is_published=bool(row["is_published"]),
        updated_at=row["updated_at"],
    )
    space = None
    if row["space_id"] and row["space_name"] is not None:
        space = Space(
            id=row["space_id"],
            name=row["space_name"],
            slug=row["space_slug"] or "",
            icon=row["space_icon"],
            collection_id=row["space_collection_id"],
        )
    return PageRecord(page=page, space=space)
