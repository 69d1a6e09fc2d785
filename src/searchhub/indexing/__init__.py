"""Indexing pipeline: producers, worker, retention sweeper."""

from searchhub.indexing.producer import (
    delete_document,
    request_reindex,
    submit_document,
    sync_stale_documents,
)
from searchhub.indexing.sweeper import RetentionSweeper
from searchhub.indexing.worker import IndexingWorker, JobOutcome, run_worker_pool

__all__ = [
    "IndexingWorker",
    "JobOutcome",
    "RetentionSweeper",
    "delete_document",
    "request_reindex",
    "run_worker_pool",
    "submit_document",
    "sync_stale_documents",
]
