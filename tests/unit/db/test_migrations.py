"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from searchhub.db.connection import Database
from searchhub.db.migrations import MIGRATIONS, run_migrations
from searchhub.db.schema import TABLES, initialize


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    db = Database(tmp_path / "test.db")
    return db.connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0]
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables created ---

@pytest.mark.parametrize("table", TABLES)
def test_initialize_creates_table(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    initialize(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_job_status_check_constraint(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO index_jobs (id, tenant_id, document_id, status, created_at, updated_at) "
            "VALUES ('j', 't', 'd', 'bogus', 'x', 'x')"
        )


def test_connection_enables_wal_and_foreign_keys(tmp_db):
    assert tmp_db.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"
    assert tmp_db.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_sqlite_vec_loaded(tmp_db):
    distance = tmp_db.execute(
        "SELECT vec_distance_cosine('[1.0, 0.0]', '[0.0, 1.0]')"
    ).fetchone()[0]
    assert distance == pytest.approx(1.0)
