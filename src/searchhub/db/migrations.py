"""Forward-only migration runner for the searchhub database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    tenant_id       TEXT NOT NULL,
    id              TEXT NOT NULL,
    content         TEXT NOT NULL DEFAULT '',
    updated_at      TEXT NOT NULL,
    PRIMARY KEY (tenant_id, id)
);

CREATE TABLE IF NOT EXISTS index_jobs (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'queued'
                    CHECK (status IN ('queued', 'processing', 'indexed', 'failed')),
    attempts        INTEGER NOT NULL DEFAULT 0,
    last_error      TEXT,
    reindex         INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    started_at      TEXT,
    completed_at    TEXT,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS index_jobs_tenant_status
    ON index_jobs (tenant_id, status);
CREATE INDEX IF NOT EXISTS index_jobs_status_completed
    ON index_jobs (status, completed_at);

CREATE TABLE IF NOT EXISTS document_index_state (
    tenant_id       TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    vector          TEXT NOT NULL,
    dimensions      INTEGER NOT NULL,
    checksum        TEXT NOT NULL DEFAULT '',
    snippet         TEXT NOT NULL DEFAULT '',
    indexed_at      TEXT NOT NULL,
    source_job_id   TEXT NOT NULL,
    PRIMARY KEY (tenant_id, document_id),
    FOREIGN KEY (tenant_id, document_id)
        REFERENCES documents (tenant_id, id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS queue_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    channel         TEXT NOT NULL,
    job_id          TEXT NOT NULL,
    tenant_id       TEXT NOT NULL,
    document_id     TEXT NOT NULL,
    payload         TEXT NOT NULL DEFAULT '{}',
    available_at    REAL NOT NULL,
    lease_token     TEXT,
    lease_expires_at REAL,
    deliveries      INTEGER NOT NULL DEFAULT 0,
    last_error      TEXT,
    enqueued_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS queue_items_channel_available
    ON queue_items (channel, available_at);
CREATE UNIQUE INDEX IF NOT EXISTS queue_items_lease_token
    ON queue_items (lease_token);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
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
