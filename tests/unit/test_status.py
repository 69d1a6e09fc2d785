"""Tests for the indexing status reporter."""

from __future__ import annotations

import pytest

from searchhub.config import RetentionCfg
from searchhub.db.models import Document, DocumentIndexState, JobStatus, to_iso
from searchhub.db.repository import Repository
from searchhub.queue import JobQueue
from searchhub.status import IndexingStatusReporter


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def populated(repo, tmp_db, clock):
    queue = JobQueue(tmp_db, clock=clock)
    stamp = to_iso(clock())

    queue.enqueue("tenant_1", "waiting")

    running = queue.enqueue("tenant_1", "running")
    repo.start_job(running, stamp)

    failed = queue.enqueue("tenant_1", "broken")
    repo.start_job(failed, stamp)
    repo.mark_job_failed(failed, "DimensionMismatch: expected 3, got 7", stamp)

    done = queue.enqueue("tenant_1", "done")
    repo.start_job(done, stamp)
    repo.mark_job_indexed(done, stamp)
    repo.upsert_document(Document("tenant_1", "done", "text", updated_at=stamp))
    repo.upsert_index_state(DocumentIndexState("tenant_1", "done", [1.0], stamp, done))

    queue.enqueue("tenant_2", "elsewhere")
    return {"running": running, "failed": failed, "done": done}


def test_snapshot_counts(repo, populated, clock):
    snapshot = IndexingStatusReporter(repo, clock=clock).snapshot("tenant_1")
    assert snapshot.queue_depth == 1
    assert snapshot.in_flight == 1
    assert snapshot.failed_count == 1
    assert snapshot.counts[JobStatus.INDEXED] == 1
    assert snapshot.total_documents == 1
    assert snapshot.indexed_documents == 1
    assert snapshot.recently_indexed is None


def test_snapshot_lists_failed_jobs_with_error(repo, populated, clock):
    snapshot = IndexingStatusReporter(repo, clock=clock).snapshot("tenant_1")
    [job] = snapshot.failed_jobs
    assert job.id == populated["failed"]
    assert "DimensionMismatch" in job.last_error


def test_snapshot_include_recent(repo, populated, clock):
    snapshot = IndexingStatusReporter(repo, clock=clock).snapshot("tenant_1", include_recent=True)
    assert [s.document_id for s in snapshot.recently_indexed] == ["done"]


def test_snapshot_stuck_jobs(repo, populated, clock):
    reporter = IndexingStatusReporter(repo, RetentionCfg(stuck_minutes=5), clock=clock)
    assert reporter.snapshot("tenant_1").stuck_jobs == []
    clock.advance(600)
    stuck = {j.document_id for j in reporter.snapshot("tenant_1").stuck_jobs}
    assert stuck == {"waiting", "running"}


def test_snapshot_is_tenant_scoped(repo, populated, clock):
    snapshot = IndexingStatusReporter(repo, clock=clock).snapshot("tenant_2")
    assert snapshot.queue_depth == 1
    assert snapshot.failed_jobs == []


def test_snapshot_does_not_write(repo, populated, clock, tmp_db):
    before = tmp_db.total_changes
    IndexingStatusReporter(repo, clock=clock).snapshot("tenant_1", include_recent=True)
    assert tmp_db.total_changes == before


def test_to_dict_shape(repo, populated, clock):
    data = IndexingStatusReporter(repo, clock=clock).snapshot("tenant_1", include_recent=True).to_dict()
    assert data["queueDepth"] == 1
    assert data["inFlight"] == 1
    assert data["failedCount"] == 1
    assert data["counts"]["failed"] == 1
    assert data["failedJobs"][0]["lastError"].startswith("DimensionMismatch")
    assert data["recentlyIndexed"][0]["documentId"] == "done"
