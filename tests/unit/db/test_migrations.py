"""Tests for the forward-only migration runner and schema bootstrap."""

from __future__ import annotations

import sqlite3

from quarry.db.connection import Database
from quarry.db.migrations import MIGRATIONS, current_version, run_migrations
from quarry.db.schema import CURRENT_VERSION, initialize


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def test_fresh_database_is_version_zero(tmp_path):
    with Database(tmp_path / "fresh.db") as conn:
        assert current_version(conn) == 0


def test_run_migrations_creates_all_tables(tmp_db):
    tables = _tables(tmp_db)
    assert {"schema_version", "spaces", "pages", "page_vector_entries"} <= tables


def test_current_version_matches_last_migration(tmp_db):
    assert current_version(tmp_db) == CURRENT_VERSION == MIGRATIONS[-1][0]


def test_run_migrations_idempotent(tmp_db):
    run_migrations(tmp_db)
    initialize(tmp_db)

    rows = tmp_db.execute("SELECT version FROM schema_version ORDER BY version").fetchall()
    assert [r[0] for r in rows] == [v for v, _ in MIGRATIONS]


def test_migrations_are_ascending_and_unique():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(set(versions))


def test_upgrade_from_v1_adds_ledger(tmp_path):
    with Database(tmp_path / "old.db") as conn:
        conn.execute(
            "CREATE TABLE schema_version (version INTEGER NOT NULL, "
            "applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
        )
        conn.executescript(MIGRATIONS[0][1])
        conn.execute("INSERT INTO schema_version (version) VALUES (1)")
        conn.commit()
        assert "page_vector_entries" not in _tables(conn)

        run_migrations(conn)

        assert "page_vector_entries" in _tables(conn)
        assert current_version(conn) == 2


def test_connection_loads_sqlite_vec(tmp_db):
    (version,) = tmp_db.execute("SELECT vec_version()").fetchone()
    assert version
