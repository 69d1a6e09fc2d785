"""Enqueuing side of the pipeline: document writes, reindex, stale sync."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from searchhub.db.models import Document, to_iso
from searchhub.db.repository import Repository
from searchhub.errors import DocumentNotFound, QueueUnavailable
from searchhub.log import kv
from searchhub.queue import JobQueue

logger = logging.getLogger(__name__)


def submit_document(
    repo: Repository,
    queue: JobQueue,
    tenant_id: str,
    document_id: str,
    content: str,
    *,
    clock: Callable[[], float] = time.time,
) -> str:
    """Store *content* for the document and enqueue an index job. Returns the job id."""
    repo.upsert_document(
        Document(tenant_id=tenant_id, id=document_id, content=content, updated_at=to_iso(clock()))
    )
    return queue.enqueue(tenant_id, document_id)


def request_reindex(
    repo: Repository, queue: JobQueue, tenant_id: str, document_id: str
) -> str:
    """Enqueue a job that re-embeds the document even if its content is unchanged.

    Raises:
        DocumentNotFound: No such document for this tenant.
    """
    if repo.get_document(tenant_id, document_id) is None:
        raise DocumentNotFound(tenant_id, document_id)
    return queue.enqueue(tenant_id, document_id, reindex=True)


def delete_document(repo: Repository, tenant_id: str, document_id: str) -> bool:
    """Delete a document with its index state and pending jobs."""
    deleted = repo.delete_document(tenant_id, document_id)
    if deleted:
        logger.info("document.deleted %s", kv(tenant=tenant_id, document=document_id))
    return deleted


def sync_stale_documents(
    repo: Repository, queue: JobQueue, limit: int = 100
) -> tuple[int, int]:
    """Enqueue reindex jobs for documents never indexed or changed since indexing.

    Returns:
        (queued, errors). A queue failure stops the sync and is re-raised
        when nothing could be queued at all.
    """
    queued = errors = 0
    for document in repo.find_stale_documents(limit=limit):
        try:
            queue.enqueue(document.tenant_id, document.id, reindex=True)
            queued += 1
        except QueueUnavailable as exc:
            errors += 1
            logger.error(
                "sync.enqueue_failed %s",
                kv(tenant=document.tenant_id, document=document.id, error=exc),
            )
            if queued == 0:
                raise
    logger.info("sync.completed %s", kv(queued=queued, errors=errors))
    return queued, errors
