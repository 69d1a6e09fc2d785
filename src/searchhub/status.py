"""Indexing status reporter: read-only health view over the job ledger.

Computed on demand from ``index_jobs`` and ``document_index_state``; never
persisted and never writes. Under WAL the reads do not block workers.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from searchhub.config import RetentionCfg
from searchhub.db.models import DocumentIndexState, IndexJob, JobStatus, to_iso
from searchhub.db.repository import Repository

_RECENT_LIMIT = 10


@dataclass
class IndexingStatusSnapshot:
    """Point-in-time indexing health for one tenant.

    Attributes:
        tenant_id: Tenant the snapshot covers.
        queue_depth: Jobs in ``queued``.
        in_flight: Jobs in ``processing``.
        failed_count: Jobs in ``failed``.
        counts: Job count for every status.
        failed_jobs: Failed jobs with their last error, newest first.
        stuck_jobs: Queued/processing jobs not updated within the stuck window.
        total_documents: Documents stored for the tenant.
        indexed_documents: Documents with a current index state.
        recently_indexed: Most recently indexed documents (only when requested).
    """

    tenant_id: str
    queue_depth: int
    in_flight: int
    failed_count: int
    counts: dict[JobStatus, int]
    failed_jobs: list[IndexJob] = field(default_factory=list)
    stuck_jobs: list[IndexJob] = field(default_factory=list)
    total_documents: int = 0
    indexed_documents: int = 0
    recently_indexed: list[DocumentIndexState] | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "tenantId": self.tenant_id,
            "queueDepth": self.queue_depth,
            "inFlight": self.in_flight,
            "failedCount": self.failed_count,
            "counts": {status.value: n for status, n in self.counts.items()},
            "totalDocuments": self.total_documents,
            "indexedDocuments": self.indexed_documents,
            "failedJobs": [job.to_dict() for job in self.failed_jobs],
            "stuckJobs": [job.to_dict() for job in self.stuck_jobs],
        }
        if self.recently_indexed is not None:
            data["recentlyIndexed"] = [
                {
                    "documentId": s.document_id,
                    "indexedAt": s.indexed_at,
                    "sourceJobId": s.source_job_id,
                }
                for s in self.recently_indexed
            ]
        return data


class IndexingStatusReporter:
    def __init__(
        self,
        repo: Repository,
        config: RetentionCfg | None = None,
        *,
        failed_limit: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._config = config or RetentionCfg()
        self._failed_limit = failed_limit
        self._clock = clock

    def snapshot(self, tenant_id: str, include_recent: bool = False) -> IndexingStatusSnapshot:
        counts = self._repo.count_jobs_by_status(tenant_id)
        stuck_before = to_iso(self._clock() - self._config.stuck_minutes * 60.0)
        return IndexingStatusSnapshot(
            tenant_id=tenant_id,
            queue_depth=counts[JobStatus.QUEUED],
            in_flight=counts[JobStatus.PROCESSING],
            failed_count=counts[JobStatus.FAILED],
            counts=counts,
            failed_jobs=self._repo.list_jobs(
                tenant_id, status=JobStatus.FAILED, limit=self._failed_limit
            ),
            stuck_jobs=self._repo.list_stuck_jobs(tenant_id, stuck_before),
            total_documents=self._repo.count_documents(tenant_id),
            indexed_documents=self._repo.count_index_states(tenant_id),
            recently_indexed=(
                self._repo.list_recently_indexed(tenant_id, limit=_RECENT_LIMIT)
                if include_recent
                else None
            ),
        )
