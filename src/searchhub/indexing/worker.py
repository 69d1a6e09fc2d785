"""Indexing worker: turns queued index jobs into DocumentIndexState rows.

Per job:
  1. queued -> processing, attempts + 1
  2. load content from the document store
  3. embed it (input_type='document')
  4. upsert DocumentIndexState, processing -> indexed, ack
  5. on failure: requeue with exponential backoff while attempts < ceiling,
     otherwise fail terminally; DimensionMismatch, contract violations and
     rejected requests fail immediately

Correctness under concurrency comes from the queue lease, not from locking
here: ledger writes are fenced on the attempt a delivery started. Every per-job error is resolved by a job state transition; one job's
failure never stops the loop.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from searchhub import metrics
from searchhub.config import SearchHubConfig, WorkerCfg
from searchhub.db.connection import Database
from searchhub.db.models import DocumentIndexState, IndexJob, to_iso
from searchhub.db.repository import Repository
from searchhub.documents import DocumentStore, SqliteDocumentStore
from searchhub.errors import (
    DimensionMismatch,
    JobAttemptsExhausted,
    ProviderContractError,
    ProviderRequestRejected,
    QueueUnavailable,
    SearchHubError,
)
from searchhub.log import kv
from searchhub.providers.embedding import EmbeddingClient
from searchhub.queue import JobQueue, QueueMessage

logger = logging.getLogger(__name__)

_FATAL = (DimensionMismatch, ProviderContractError, ProviderRequestRejected)


@dataclass
class JobOutcome:
    """What happened to one delivered job.

    Attributes:
        job_id: IndexJob id.
        result: 'indexed', 'retry', 'failed' or 'skipped'.
        reason: Short machine-readable reason or the error text.
        attempts: Attempt count after this delivery.
        delay: Backoff before the next delivery (result == 'retry' only).
    """

    job_id: str
    result: str
    reason: str = ""
    attempts: int = 0
    delay: float | None = None


def checksum(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class IndexingWorker:
    """Consume ``index-document`` queue items and maintain the index projection.

    Args:
        repo: Repository on this worker's own connection.
        queue: JobQueue on this worker's own connection.
        store: Document store collaborator.
        embedder: Embedding client (may be shared between workers).
        config: Retry, backoff and polling policy.
        snippet_chars: Characters of content cached for reranking.
        clock: Epoch-seconds clock (injectable for tests).
    """

    def __init__(
        self,
        repo: Repository,
        queue: JobQueue,
        store: DocumentStore,
        embedder: EmbeddingClient,
        config: WorkerCfg | None = None,
        *,
        snippet_chars: int = 2_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._queue = queue
        self._store = store
        self._embedder = embedder
        self._config = config or WorkerCfg()
        self._snippet_chars = snippet_chars
        self._clock = clock

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def backoff_delay(self, attempts: int, retry_after: float | None = None) -> float:
        """Exponential backoff (base 2) capped at ``backoff_max_seconds``.

        A provider Retry-After hint longer than the computed delay wins.
        """
        exponent = max(0, attempts - 1)
        delay = min(
            self._config.backoff_base_seconds * (2 ** exponent),
            self._config.backoff_max_seconds,
        )
        if retry_after is not None:
            delay = max(delay, retry_after)
        return delay

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, message: QueueMessage) -> JobOutcome:
        """Run one leased job to a state transition and settle its lease.

        Every ledger write is fenced on the attempt this delivery started. If
        the lease expired and another worker restarted the job, this holder's
        writes miss and the delivery ends as ``skipped``/``lease-lost``.

        Raises:
            QueueUnavailable: ack/nack could not reach the queue.
        """
        job = self._repo.start_job(message.job_id, self._now())
        if job is None:
            existing = self._repo.get_job(message.job_id)
            reason = "missing" if existing is None else f"already-{existing.status.value}"
            self._queue.ack(message.lease_token)
            logger.info("job.skipped %s", kv(job=message.job_id, reason=reason))
            return JobOutcome(message.job_id, "skipped", reason=reason)

        metrics.active_jobs.labels(job_type=metrics.INDEX_DOCUMENT).inc()
        started = time.perf_counter()
        result = "error"
        try:
            outcome = self._run(job, message)
            result = outcome.result
            return outcome
        finally:
            metrics.active_jobs.labels(job_type=metrics.INDEX_DOCUMENT).dec()
            metrics.jobs_processed_total.labels(job_type=metrics.INDEX_DOCUMENT, result=result).inc()
            metrics.job_duration_seconds.labels(
                job_type=metrics.INDEX_DOCUMENT, result=result
            ).observe(time.perf_counter() - started)

    def _run(self, job: IndexJob, message: QueueMessage) -> JobOutcome:
        try:
            outcome = self._index(job)
        except _FATAL as exc:
            return self._fail(job, message, f"{type(exc).__name__}: {exc}")
        except (SearchHubError, sqlite3.Error) as exc:
            return self._retry_or_fail(job, message, exc)
        except Exception as exc:
            logger.exception("job.unexpected_error %s", kv(job=job.id))
            return self._retry_or_fail(job, message, exc)

        if outcome.result == "indexed":
            self._queue.ack(message.lease_token)
        return outcome

    def _index(self, job: IndexJob) -> JobOutcome:
        document = self._store.get(job.tenant_id, job.document_id)
        text = (document.content or "").strip()

        if not text:
            logger.info("job.skipped.empty_content %s", kv(job=job.id, document=job.document_id))
            return self._complete(job, self._now(), "empty-content")

        digest = checksum(text)
        if not job.reindex:
            previous = self._repo.get_index_state(job.tenant_id, job.document_id)
            if (
                previous is not None
                and previous.checksum == digest
                and previous.dimensions == self._embedder.dimensions
            ):
                stamp = self._now()
                self._repo.touch_index_state(job.tenant_id, job.document_id, stamp, job.id)
                logger.info("job.skipped.already_indexed %s", kv(job=job.id, document=job.document_id))
                return self._complete(job, stamp, "unchanged")

        [vector] = self._embedder.embed([text], input_type="document")

        stamp = self._now()
        written = self._repo.upsert_index_state(
            DocumentIndexState(
                tenant_id=job.tenant_id,
                document_id=job.document_id,
                vector=vector,
                indexed_at=stamp,
                source_job_id=job.id,
                checksum=digest,
                snippet=text[: self._snippet_chars],
            )
        )
        if not written:
            logger.info("index_state.superseded %s", kv(job=job.id, document=job.document_id))
        outcome = self._complete(job, stamp, "embedded")
        if outcome.result == "indexed":
            logger.info(
                "job.completed %s",
                kv(job=job.id, tenant=job.tenant_id, document=job.document_id, attempt=job.attempts),
            )
        return outcome

    def _complete(self, job: IndexJob, stamp: str, reason: str) -> JobOutcome:
        if not self._repo.mark_job_indexed(job.id, stamp, attempt=job.attempts):
            return self._lease_lost(job)
        return JobOutcome(job.id, "indexed", reason=reason, attempts=job.attempts)

    def _fail(self, job: IndexJob, message: QueueMessage, error: str) -> JobOutcome:
        if not self._repo.mark_job_failed(job.id, error, self._now(), attempt=job.attempts):
            return self._lease_lost(job)
        self._queue.ack(message.lease_token)
        logger.error(
            "job.failed %s",
            kv(job=job.id, tenant=job.tenant_id, document=job.document_id, attempt=job.attempts, error=error),
        )
        return JobOutcome(job.id, "failed", reason=error, attempts=job.attempts)

    def _retry_or_fail(self, job: IndexJob, message: QueueMessage, exc: Exception) -> JobOutcome:
        error = f"{type(exc).__name__}: {exc}"
        if job.attempts >= self._config.max_attempts:
            return self._fail(job, message, str(JobAttemptsExhausted(job.id, job.attempts, error)))

        delay = self.backoff_delay(job.attempts, getattr(exc, "retry_after", None))
        if not self._repo.requeue_job(job.id, error, self._now(), attempt=job.attempts):
            return self._lease_lost(job)
        self._queue.nack(message.lease_token, error, delay=delay)
        logger.warning(
            "job.retry_scheduled %s",
            kv(job=job.id, document=job.document_id, attempt=job.attempts, delay=f"{delay:.1f}s", error=error),
        )
        return JobOutcome(job.id, "retry", reason=error, attempts=job.attempts, delay=delay)

    def _lease_lost(self, job: IndexJob) -> JobOutcome:
        # Another delivery restarted the job; it owns the ledger row and the queue item.
        logger.warning(
            "job.lease_lost %s", kv(job=job.id, document=job.document_id, attempt=job.attempts)
        )
        return JobOutcome(job.id, "skipped", reason="lease-lost", attempts=job.attempts)

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    def drain(self, max_jobs: int | None = None) -> list[JobOutcome]:
        """Process every currently visible item (or *max_jobs*), then return."""
        outcomes: list[JobOutcome] = []
        while max_jobs is None or len(outcomes) < max_jobs:
            message = self._queue.try_dequeue()
            if message is None:
                break
            outcomes.append(self.process(message))
        return outcomes

    def run(self, stop: threading.Event) -> int:
        """Process jobs until *stop* is set. Returns the number of deliveries handled."""
        handled = 0
        logger.info("worker.started %s", kv(thread=threading.current_thread().name))
        while not stop.is_set():
            try:
                message = self._queue.dequeue(
                    timeout=self._config.poll_interval_seconds, stop=stop
                )
                if message is None:
                    continue
                self.process(message)
                handled += 1
            except QueueUnavailable as exc:
                logger.error("worker.queue_unavailable %s", kv(error=exc))
                stop.wait(self._config.poll_interval_seconds)
            except Exception:
                # Lease expiry redelivers whatever this delivery left behind.
                logger.exception("worker.delivery_crashed")
        logger.info("worker.stopped %s", kv(thread=threading.current_thread().name, handled=handled))
        return handled

    def _now(self) -> str:
        return to_iso(self._clock())


# ------------------------------------------------------------------
# Worker pool
# ------------------------------------------------------------------


def run_worker_pool(
    database: Database,
    config: SearchHubConfig,
    stop: threading.Event,
    *,
    embedder: EmbeddingClient | None = None,
    concurrency: int | None = None,
) -> None:
    """Run *concurrency* worker threads until *stop* is set.

    Each thread owns its connection and JobQueue instance and closes them on
    exit. One EmbeddingClient is shared so ``max_in_flight`` bounds the
    whole pool.
    """
    shared = embedder or EmbeddingClient(config.embedding)
    count = concurrency or config.worker.concurrency
    threads = [
        threading.Thread(
            target=_worker_thread,
            args=(database, config, shared, stop),
            name=f"searchhub-worker-{i}",
            daemon=True,
        )
        for i in range(count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def _worker_thread(
    database: Database,
    config: SearchHubConfig,
    embedder: EmbeddingClient,
    stop: threading.Event,
) -> None:
    conn: sqlite3.Connection | None = None
    queue: JobQueue | None = None
    try:
        conn = database.connect()
        queue = JobQueue.open(
            database,
            lease_seconds=config.worker.lease_seconds,
            poll_interval=config.worker.poll_interval_seconds,
        )
        repo = Repository(conn)
        worker = IndexingWorker(
            repo,
            queue,
            SqliteDocumentStore(repo),
            embedder,
            config.worker,
            snippet_chars=config.rerank.snippet_chars,
        )
        worker.run(stop)
    except (QueueUnavailable, sqlite3.Error) as exc:
        logger.error(
            "worker.start_failed %s", kv(thread=threading.current_thread().name, error=exc)
        )
    finally:
        if queue is not None:
            queue.close()
        if conn is not None:
            conn.close()
