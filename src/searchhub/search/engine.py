"""Two-stage semantic search: exact cosine recall within a tenant, then rerank.

  1. embed the query (input_type='query')
  2. recall the ``recall_k`` nearest DocumentIndexState vectors for the tenant
  3. rerank the recalled snippets against the query
  4. return the top ``min(k, recall_k)`` hits

Provider failures are never retried mid-request; they surface as
SearchFailed so callers do not get a silently degraded ranking.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass

from searchhub import metrics
from searchhub.db.repository import Repository
from searchhub.errors import SearchFailed, SearchHubError, SearchUnavailable
from searchhub.log import kv
from searchhub.providers.embedding import EmbeddingClient
from searchhub.providers.rerank import RerankClient
from searchhub.search.breaker import CircuitBreaker

logger = logging.getLogger(__name__)


@dataclass
class SemanticQuery:
    """A search request scoped to one tenant.

    Attributes:
        tenant_id: Already-authorised tenant.
        q: Query text.
        k: Maximum results returned.
        recall_k: Candidate pool size fetched before reranking.
    """

    tenant_id: str
    q: str
    k: int = 10
    recall_k: int = 50

    @property
    def limit(self) -> int:
        """Effective result bound: ``k`` capped at ``recall_k``."""
        return max(0, min(self.k, self.recall_k))


@dataclass
class SearchHit:
    document_id: str
    score: float
    similarity: float
    snippet: str = ""

    def to_dict(self) -> dict:
        return {
            "documentId": self.document_id,
            "score": self.score,
            "similarity": self.similarity,
        }


class SearchEngine:
    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingClient,
        reranker: RerankClient,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._reranker = reranker
        self._breaker = breaker or CircuitBreaker()

    def search(self, query: SemanticQuery) -> list[SearchHit]:
        """Run *query* and return reranked hits, best first.

        Raises:
            ValueError: Blank query text.
            SearchUnavailable: The breaker is open.
            SearchFailed: The embedding, recall or rerank step failed.
        """
        if not query.q.strip():
            raise ValueError("Query text must not be empty")
        if query.limit == 0 or query.recall_k <= 0:
            return []
        # An empty tenant index needs no provider call.
        if self._repo.count_index_states(query.tenant_id) == 0:
            return []

        if not self._breaker.allow():
            metrics.set_breaker_state(self._breaker.state)
            logger.warning("search.unavailable %s", kv(tenant=query.tenant_id, breaker=self._breaker.state))
            raise SearchUnavailable("Semantic search is temporarily unavailable")

        started = time.perf_counter()
        try:
            vector = self._embedder.embed_query(query.q)
            candidates = self._repo.nearest_documents(query.tenant_id, vector, query.recall_k)
            ranked = self._reranker.rerank(query.q, [c.snippet for c in candidates]) if candidates else []
        except Exception as exc:
            self._breaker.record_failure()
            metrics.set_breaker_state(self._breaker.state)
            metrics.search_duration_seconds.labels(result="failed").observe(time.perf_counter() - started)
            if isinstance(exc, (SearchHubError, sqlite3.Error)):
                logger.error("search.failed %s", kv(tenant=query.tenant_id, error=exc))
            else:
                logger.exception("search.unexpected_error %s", kv(tenant=query.tenant_id))
            raise SearchFailed(f"Search failed: {type(exc).__name__}: {exc}") from exc
        self._breaker.record_success()
        metrics.set_breaker_state(self._breaker.state)

        hits = [
            SearchHit(
                document_id=candidates[h.index].document_id,
                score=h.score,
                similarity=candidates[h.index].similarity,
                snippet=candidates[h.index].snippet,
            )
            for h in ranked[: query.limit]
        ]
        elapsed = time.perf_counter() - started
        metrics.search_duration_seconds.labels(result="success").observe(elapsed)
        logger.info(
            "search.completed %s",
            kv(
                tenant=query.tenant_id,
                candidates=len(candidates),
                results=len(hits),
                ms=round(elapsed * 1000),
            ),
        )
        return hits
