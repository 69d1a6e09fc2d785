"""Durable SQLite job queue with lease / visibility-timeout semantics.

Delivery is at-least-once: a dequeued item is leased to one consumer for
``lease_seconds``. ack() removes it; nack() makes it visible again after a
delay; an item whose lease expires without either becomes deliverable to
the next dequeue(). Enqueues are not deduplicated.

A JobQueue is constructed explicitly at process start and passed to the
worker and to every producer; close() it on shutdown. Each thread needs its
own instance (its own connection).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from searchhub.db.connection import Database
from searchhub.db.models import JobStatus, to_iso
from searchhub.errors import QueueUnavailable
from searchhub.log import kv

logger = logging.getLogger(__name__)

# Channel names, one per job type, shared by producers and consumers.
INDEX_DOCUMENT = "index-document"
SEND_REMINDER = "send-reminder"


@dataclass(frozen=True)
class QueueMessage:
    """A leased queue item. ``lease_token`` is required to ack or nack it."""

    lease_token: str
    job_id: str
    tenant_id: str
    document_id: str
    channel: str
    deliveries: int
    payload: dict = field(default_factory=dict)

    @property
    def reindex(self) -> bool:
        return bool(self.payload.get("reindex", False))


class JobQueue:
    """Channel-scoped durable queue backed by the ``queue_items`` table.

    Args:
        conn: Open connection (schema initialised). Closed by close().
        channel: Queue channel name.
        lease_seconds: How long a dequeued item stays invisible without an ack.
        poll_interval: Seconds between polls while dequeue() waits for work.
        clock: Epoch-seconds clock (injectable for tests).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        channel: str = INDEX_DOCUMENT,
        lease_seconds: float = 300.0,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if lease_seconds <= 0:
            raise ValueError("lease_seconds must be > 0")
        self._conn = conn
        self.channel = channel
        self.lease_seconds = lease_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._closed = False

    @classmethod
    def open(cls, database: Database, **kwargs: object) -> JobQueue:
        """Open a dedicated connection to *database* and wrap it in a queue."""
        try:
            conn = database.connect()
        except sqlite3.Error as exc:
            raise QueueUnavailable(f"Cannot open queue database '{database.db_path}': {exc}") from exc
        return cls(conn, **kwargs)  # type: ignore[arg-type]

    def close(self) -> None:
        if not self._closed:
            self._conn.close()
            self._closed = True

    def __enter__(self) -> JobQueue:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, tenant_id: str, document_id: str, *, reindex: bool = False) -> str:
        """Create a ``queued`` IndexJob and a queue item for it. Returns the job id.

        Raises:
            QueueUnavailable: The transport could not accept the item.
        """
        job_id = uuid.uuid4().hex
        now = self._clock()
        stamp = to_iso(now)
        payload = {
            "jobId": job_id,
            "tenantId": tenant_id,
            "documentId": document_id,
            "reindex": reindex,
        }
        with self._transaction():
            self._conn.execute(
                """
                INSERT INTO index_jobs
                    (id, tenant_id, document_id, status, reindex, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (job_id, tenant_id, document_id, JobStatus.QUEUED.value, int(reindex), stamp, stamp),
            )
            self._conn.execute(
                """
                INSERT INTO queue_items
                    (channel, job_id, tenant_id, document_id, payload, available_at, enqueued_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (self.channel, job_id, tenant_id, document_id, json.dumps(payload), now, stamp),
            )
        logger.info(
            "job.enqueued %s",
            kv(channel=self.channel, job=job_id, tenant=tenant_id, document=document_id, reindex=reindex),
        )
        return job_id

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def try_dequeue(self) -> QueueMessage | None:
        """Lease the oldest visible item, or return None if there is none."""
        now = self._clock()
        with self._transaction():
            row = self._conn.execute(
                """
                SELECT id, job_id, tenant_id, document_id, payload, deliveries
                FROM queue_items
                WHERE channel = ? AND available_at <= ?
                  AND (lease_expires_at IS NULL OR lease_expires_at <= ?)
                ORDER BY available_at, id
                LIMIT 1
                """,
                (self.channel, now, now),
            ).fetchone()
            if row is None:
                return None
            token = uuid.uuid4().hex
            self._conn.execute(
                """
                UPDATE queue_items
                SET lease_token = ?, lease_expires_at = ?, deliveries = deliveries + 1
                WHERE id = ?
                """,
                (token, now + self.lease_seconds, row["id"]),
            )
        return QueueMessage(
            lease_token=token,
            job_id=row["job_id"],
            tenant_id=row["tenant_id"],
            document_id=row["document_id"],
            channel=self.channel,
            deliveries=row["deliveries"] + 1,
            payload=json.loads(row["payload"]),
        )

    def dequeue(
        self,
        timeout: float | None = None,
        stop: threading.Event | None = None,
    ) -> QueueMessage | None:
        """Wait for work and lease it.

        Blocks until an item is visible, *timeout* seconds pass, or *stop*
        is set. ``timeout=None`` waits indefinitely.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            message = self.try_dequeue()
            if message is not None:
                return message
            if stop is not None and stop.is_set():
                return None
            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)
            if stop is not None:
                stop.wait(wait)
            else:
                time.sleep(wait)

    def ack(self, lease_token: str) -> bool:
        """Remove a leased item. Returns False if the lease was lost."""
        with self._transaction():
            cur = self._conn.execute(
                "DELETE FROM queue_items WHERE lease_token = ?", (lease_token,)
            )
        if cur.rowcount == 0:
            logger.warning("queue.ack_lease_lost %s", kv(channel=self.channel, lease=lease_token))
            return False
        return True

    def nack(self, lease_token: str, error: str, delay: float = 0.0) -> bool:
        """Release a leased item so it becomes visible again after *delay* seconds."""
        with self._transaction():
            cur = self._conn.execute(
                """
                UPDATE queue_items
                SET lease_token = NULL, lease_expires_at = NULL,
                    available_at = ?, last_error = ?
                WHERE lease_token = ?
                """,
                (self._clock() + max(0.0, delay), error, lease_token),
            )
        if cur.rowcount == 0:
            logger.warning("queue.nack_lease_lost %s", kv(channel=self.channel, lease=lease_token))
            return False
        return True

    def depth(self) -> int:
        """Number of items in the channel (visible, delayed or leased)."""
        with self._transport():
            return self._conn.execute(
                "SELECT COUNT(*) FROM queue_items WHERE channel = ?", (self.channel,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transport(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as exc:
            raise QueueUnavailable(f"Queue '{self.channel}' unavailable: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """BEGIN IMMEDIATE ... COMMIT, so concurrent consumers never lease the same row."""
        with self._transport():
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                self._conn.rollback()
                raise
            self._conn.commit()
