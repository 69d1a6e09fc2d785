"""Domain models for the searchhub database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    INDEXED = "indexed"
    FAILED = "failed"


def to_iso(ts: float) -> str:
    """Format an epoch timestamp as a fixed-width UTC string (sortable as text)."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(_ISO_FORMAT)


@dataclass
class Document:
    tenant_id: str
    id: str
    content: str
    updated_at: str | None = None


@dataclass
class IndexJob:
    id: str
    tenant_id: str
    document_id: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    last_error: str | None = None
    reindex: bool = False
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "jobId": self.id,
            "tenantId": self.tenant_id,
            "documentId": self.document_id,
            "status": self.status.value,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        }


@dataclass
class DocumentIndexState:
    tenant_id: str
    document_id: str
    vector: list[float]
    indexed_at: str
    source_job_id: str
    checksum: str = ""
    snippet: str = ""

    @property
    def dimensions(self) -> int:
        return len(self.vector)

    @property
    def vector_json(self) -> str:
        return json.dumps(self.vector)


@dataclass
class SearchCandidate:
    """A document retrieved by vector similarity, before reranking."""

    document_id: str
    snippet: str
    distance: float
    similarity: float = field(init=False)

    def __post_init__(self) -> None:
        self.similarity = 1.0 - self.distance
