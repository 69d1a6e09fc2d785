"""Document store collaborator.

The pipeline only needs ``get(tenant_id, document_id)``. SqliteDocumentStore
serves it from the ``documents`` table; any other store can be passed to the
worker as long as it raises ContentUnavailable (or DocumentNotFound).
"""

from __future__ import annotations

import sqlite3
from typing import Protocol

from searchhub.db.models import Document
from searchhub.db.repository import Repository
from searchhub.errors import ContentUnavailable, DocumentNotFound


class DocumentStore(Protocol):
    def get(self, tenant_id: str, document_id: str) -> Document:
        """Return the document or raise ContentUnavailable."""
        ...


class SqliteDocumentStore:
    """DocumentStore backed by the searchhub database."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get(self, tenant_id: str, document_id: str) -> Document:
        try:
            document = self._repo.get_document(tenant_id, document_id)
        except sqlite3.Error as exc:
            raise ContentUnavailable(tenant_id, document_id, str(exc)) from exc
        if document is None:
            raise DocumentNotFound(tenant_id, document_id)
        return document
