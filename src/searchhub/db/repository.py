"""Repository pattern for all searchhub database operations.

Single interface for: documents, the index job ledger, the document index
state projection, similarity retrieval and status aggregation. Queue items
are owned by searchhub.queue.JobQueue.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from searchhub.db import vectors
from searchhub.db.models import (
    Document,
    DocumentIndexState,
    IndexJob,
    JobStatus,
    SearchCandidate,
)

_JOB_COLUMNS = (
    "id, tenant_id, document_id, status, attempts, last_error, reindex, "
    "created_at, started_at, completed_at, updated_at"
)
_STATE_COLUMNS = (
    "tenant_id, document_id, vector, checksum, snippet, indexed_at, source_job_id"
)
_ACTIVE = (JobStatus.QUEUED.value, JobStatus.PROCESSING.value)


class Repository:
    """Data access layer for all searchhub database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Every write commits before returning.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see searchhub.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(self, document: Document) -> None:
        """Insert or replace a document's content and ``updated_at``."""
        self._conn.execute(
            """
            INSERT INTO documents (tenant_id, id, content, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(tenant_id, id) DO UPDATE SET
                content = excluded.content,
                updated_at = excluded.updated_at
            """,
            (document.tenant_id, document.id, document.content, document.updated_at),
        )
        self._conn.commit()

    def get_document(self, tenant_id: str, document_id: str) -> Document | None:
        """Return a document scoped to *tenant_id*, or None if not found."""
        row = self._conn.execute(
            "SELECT tenant_id, id, content, updated_at FROM documents "
            "WHERE tenant_id = ? AND id = ?",
            (tenant_id, document_id),
        ).fetchone()
        return _row_to_document(row) if row else None

    def delete_document(self, tenant_id: str, document_id: str) -> bool:
        """Delete a document, its index state, pending jobs and their queue items.

        Failed and indexed job rows are kept for diagnosis and retention.

        Returns:
            True if the document existed.
        """
        try:
            self._conn.execute(
                "DELETE FROM queue_items WHERE tenant_id = ? AND document_id = ?",
                (tenant_id, document_id),
            )
            self._conn.execute(
                "DELETE FROM index_jobs WHERE tenant_id = ? AND document_id = ? "
                "AND status IN (?, ?)",
                (tenant_id, document_id, *_ACTIVE),
            )
            cur = self._conn.execute(
                "DELETE FROM documents WHERE tenant_id = ? AND id = ?",
                (tenant_id, document_id),
            )
            self._conn.commit()
        except sqlite3.Error:
            self._conn.rollback()
            raise
        return cur.rowcount > 0

    def count_documents(self, tenant_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM documents WHERE tenant_id = ?", (tenant_id,)
        ).fetchone()[0]

    def find_stale_documents(self, limit: int = 100) -> list[Document]:
        """Return documents that need (re)indexing, across all tenants.

        A document is stale when it has content and either has no index
        state or was updated after it was last indexed, and no job for it is
        currently queued or processing.
        """
        rows = self._conn.execute(
            """
            SELECT d.tenant_id, d.id, d.content, d.updated_at
            FROM documents d
            LEFT JOIN document_index_state s
                ON s.tenant_id = d.tenant_id AND s.document_id = d.id
            WHERE (s.document_id IS NULL OR d.updated_at > s.indexed_at)
              AND TRIM(d.content) != ''
              AND NOT EXISTS (
                  SELECT 1 FROM index_jobs j
                  WHERE j.tenant_id = d.tenant_id AND j.document_id = d.id
                    AND j.status IN (?, ?)
              )
            ORDER BY d.updated_at
            LIMIT ?
            """,
            (*_ACTIVE, limit),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    # ------------------------------------------------------------------
    # Index job ledger
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> IndexJob | None:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM index_jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def start_job(self, job_id: str, now: str) -> IndexJob | None:
        """queued -> processing, incrementing ``attempts``.

        A job still marked ``processing`` is restarted too: that happens when a
        previous holder's lease expired before it finished.

        Returns:
            The updated job, or None if it is missing or already terminal.
        """
        cur = self._conn.execute(
            """
            UPDATE index_jobs
            SET status = ?, attempts = attempts + 1, started_at = ?, updated_at = ?
            WHERE id = ? AND status IN (?, ?)
            """,
            (JobStatus.PROCESSING.value, now, now, job_id, *_ACTIVE),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_job(job_id)

    def mark_job_indexed(self, job_id: str, now: str, *, attempt: int | None = None) -> bool:
        """processing -> indexed. Returns False if the job was not processing.

        With *attempt*, the write only lands if the job is still on that
        attempt, so a holder whose lease was taken over cannot settle it.
        """
        return self._settle_job(
            "status = ?, last_error = NULL, completed_at = ?, updated_at = ?",
            (JobStatus.INDEXED.value, now, now),
            job_id,
            attempt,
        )

    def mark_job_failed(
        self, job_id: str, error: str, now: str, *, attempt: int | None = None
    ) -> bool:
        """processing -> failed (terminal). Records the error text."""
        return self._settle_job(
            "status = ?, last_error = ?, updated_at = ?",
            (JobStatus.FAILED.value, error, now),
            job_id,
            attempt,
        )

    def requeue_job(
        self, job_id: str, error: str, now: str, *, attempt: int | None = None
    ) -> bool:
        """Record a failed attempt and move the job back to queued (failed -> queued)."""
        return self._settle_job(
            "status = ?, last_error = ?, updated_at = ?",
            (JobStatus.QUEUED.value, error, now),
            job_id,
            attempt,
        )

    def _settle_job(
        self, assignments: str, values: tuple, job_id: str, attempt: int | None
    ) -> bool:
        sql = f"UPDATE index_jobs SET {assignments} WHERE id = ? AND status = ?"
        params: tuple = (*values, job_id, JobStatus.PROCESSING.value)
        if attempt is not None:
            sql += " AND attempts = ?"
            params += (attempt,)
        cur = self._conn.execute(sql, params)
        self._conn.commit()
        return cur.rowcount > 0

    def list_jobs(
        self,
        tenant_id: str,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[IndexJob]:
        """Return jobs for a tenant, most recently updated first."""
        if status is None:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM index_jobs WHERE tenant_id = ? "
                "ORDER BY updated_at DESC, id LIMIT ?",
                (tenant_id, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM index_jobs WHERE tenant_id = ? AND status = ? "
                "ORDER BY updated_at DESC, id LIMIT ?",
                (tenant_id, status.value, limit),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def list_stuck_jobs(
        self, tenant_id: str, updated_before: str, limit: int = 50
    ) -> list[IndexJob]:
        """Return queued/processing jobs untouched since *updated_before*."""
        rows = self._conn.execute(
            f"""
            SELECT {_JOB_COLUMNS} FROM index_jobs
            WHERE tenant_id = ? AND status IN (?, ?) AND updated_at < ?
            ORDER BY updated_at LIMIT ?
            """,
            (tenant_id, *_ACTIVE, updated_before, limit),
        ).fetchall()
        return [_row_to_job(r) for r in rows]

    def count_jobs_by_status(self, tenant_id: str) -> dict[JobStatus, int]:
        """Return a count for every JobStatus (zero when absent)."""
        counts = {status: 0 for status in JobStatus}
        rows = self._conn.execute(
            "SELECT status, COUNT(*) AS n FROM index_jobs WHERE tenant_id = ? GROUP BY status",
            (tenant_id,),
        ).fetchall()
        for row in rows:
            counts[JobStatus(row["status"])] = row["n"]
        return counts

    def delete_indexed_jobs_before(self, cutoff: str) -> int:
        """Delete ``indexed`` jobs completed before *cutoff*. Returns rows deleted."""
        cur = self._conn.execute(
            "DELETE FROM index_jobs WHERE status = ? AND completed_at < ?",
            (JobStatus.INDEXED.value, cutoff),
        )
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Document index state
    # ------------------------------------------------------------------

    def upsert_index_state(self, state: DocumentIndexState) -> bool:
        """Insert or replace the single index state row for a document.

        The write only lands if its ``indexed_at`` is not older than the
        stored one, so the latest completion wins regardless of enqueue order.

        Returns:
            True if the row was written.
        """
        cur = self._conn.execute(
            f"""
            INSERT INTO document_index_state ({_STATE_COLUMNS}, dimensions)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(tenant_id, document_id) DO UPDATE SET
                vector = excluded.vector,
                dimensions = excluded.dimensions,
                checksum = excluded.checksum,
                snippet = excluded.snippet,
                indexed_at = excluded.indexed_at,
                source_job_id = excluded.source_job_id
            WHERE excluded.indexed_at >= document_index_state.indexed_at
            """,
            (
                state.tenant_id,
                state.document_id,
                state.vector_json,
                state.checksum,
                state.snippet,
                state.indexed_at,
                state.source_job_id,
                state.dimensions,
            ),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def touch_index_state(
        self, tenant_id: str, document_id: str, indexed_at: str, job_id: str
    ) -> bool:
        """Refresh ``indexed_at``/``source_job_id`` without replacing the vector."""
        cur = self._conn.execute(
            """
            UPDATE document_index_state
            SET indexed_at = ?, source_job_id = ?
            WHERE tenant_id = ? AND document_id = ? AND indexed_at <= ?
            """,
            (indexed_at, job_id, tenant_id, document_id, indexed_at),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def get_index_state(
        self, tenant_id: str, document_id: str
    ) -> DocumentIndexState | None:
        row = self._conn.execute(
            f"SELECT {_STATE_COLUMNS} FROM document_index_state "
            "WHERE tenant_id = ? AND document_id = ?",
            (tenant_id, document_id),
        ).fetchone()
        return _row_to_state(row) if row else None

    def count_index_states(self, tenant_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM document_index_state WHERE tenant_id = ?",
            (tenant_id,),
        ).fetchone()[0]

    def list_recently_indexed(
        self, tenant_id: str, limit: int = 10
    ) -> list[DocumentIndexState]:
        rows = self._conn.execute(
            f"SELECT {_STATE_COLUMNS} FROM document_index_state WHERE tenant_id = ? "
            "ORDER BY indexed_at DESC, document_id LIMIT ?",
            (tenant_id, limit),
        ).fetchall()
        return [_row_to_state(r) for r in rows]

    # ------------------------------------------------------------------
    # Similarity retrieval
    # ------------------------------------------------------------------

    def nearest_documents(
        self, tenant_id: str, embedding: Sequence[float], limit: int
    ) -> list[SearchCandidate]:
        """Exact cosine nearest-neighbour scan within one tenant.

        Returns candidates sorted by ascending cosine distance; ties are
        broken by document id so results are deterministic.
        """
        rows = self._conn.execute(
            """
            SELECT document_id, snippet,
                   vec_distance_cosine(vector, ?) AS distance
            FROM document_index_state
            WHERE tenant_id = ? AND dimensions = ?
            ORDER BY distance ASC, document_id ASC
            LIMIT ?
            """,
            (vectors.encode(embedding), tenant_id, len(embedding), limit),
        ).fetchall()
        return [
            SearchCandidate(
                document_id=r["document_id"],
                snippet=r["snippet"],
                distance=float(r["distance"]),
            )
            for r in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        tenant_id=row["tenant_id"],
        id=row["id"],
        content=row["content"],
        updated_at=row["updated_at"],
    )


def _row_to_job(row: sqlite3.Row) -> IndexJob:
    return IndexJob(
        id=row["id"],
        tenant_id=row["tenant_id"],
        document_id=row["document_id"],
        status=JobStatus(row["status"]),
        attempts=row["attempts"],
        last_error=row["last_error"],
        reindex=bool(row["reindex"]),
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        updated_at=row["updated_at"],
    )


def _row_to_state(row: sqlite3.Row) -> DocumentIndexState:
    return DocumentIndexState(
        tenant_id=row["tenant_id"],
        document_id=row["document_id"],
        vector=vectors.decode(row["vector"]),
        checksum=row["checksum"],
        snippet=row["snippet"],
        indexed_at=row["indexed_at"],
        source_job_id=row["source_job_id"],
    )
