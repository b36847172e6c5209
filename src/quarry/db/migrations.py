"""Forward-only migration runner for Quarry's database schema.

Per-model vector tables (vec_entries_*) are NOT migration-managed; use
ensure_vec_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# Canonical store: a local stand-in for the product's relational database.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS spaces (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    slug            TEXT NOT NULL DEFAULT '',
    icon            TEXT,
    collection_id   TEXT
);

CREATE TABLE IF NOT EXISTS pages (
    id              TEXT PRIMARY KEY,
    space_id        TEXT REFERENCES spaces(id) ON DELETE SET NULL,
    title           TEXT NOT NULL,
    description     TEXT,
    path            TEXT NOT NULL DEFAULT '',
    slug            TEXT NOT NULL DEFAULT '',
    icon            TEXT,
    content         TEXT NOT NULL DEFAULT '',
    is_published    INTEGER NOT NULL DEFAULT 0,
    updated_at      INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
    deleted_at      INTEGER
);

CREATE INDEX IF NOT EXISTS idx_pages_space ON pages(space_id);
CREATE INDEX IF NOT EXISTS idx_pages_updated ON pages(updated_at);
"""

# Side index of vector entry ids per page, so index deletion can be exact
# even when the vector store cannot filter by page.
_V2_SQL = """
CREATE TABLE IF NOT EXISTS page_vector_entries (
    page_id         TEXT NOT NULL,
    entry_id        TEXT NOT NULL,
    recorded_at     DATETIME NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (page_id, entry_id)
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    exists = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    ).fetchone()
    if exists is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0
