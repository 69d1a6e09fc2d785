"""Database schema initialization."""

from __future__ import annotations

import sqlite3

CURRENT_VERSION = 1

TABLES: tuple[str, ...] = (
    "documents",
    "index_jobs",
    "document_index_state",
    "queue_items",
)


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from searchhub.db.migrations import run_migrations

    run_migrations(conn)
