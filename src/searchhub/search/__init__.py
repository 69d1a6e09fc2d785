"""Semantic search: recall, rerank, circuit breaker."""

from searchhub.search.breaker import CircuitBreaker
from searchhub.search.engine import SearchEngine, SearchHit, SemanticQuery

__all__ = ["CircuitBreaker", "SearchEngine", "SearchHit", "SemanticQuery"]
