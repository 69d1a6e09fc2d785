"""Prometheus metrics for the indexing and search pipeline.

Everything registers on the default ``prometheus_client`` registry; the
worker exposes it with ``searchhub worker --metrics-port``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

active_jobs = Gauge(
    "searchhub_active_jobs",
    "Index jobs currently being processed",
    ["job_type"],
)

jobs_processed_total = Counter(
    "searchhub_jobs_processed_total",
    "Index job deliveries by result",
    ["job_type", "result"],
)

job_duration_seconds = Histogram(
    "searchhub_job_duration_seconds",
    "Index job processing duration in seconds",
    ["job_type", "result"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

ai_request_duration_seconds = Histogram(
    "searchhub_ai_request_duration_seconds",
    "Embedding and rerank provider request duration in seconds",
    ["provider", "operation", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

search_duration_seconds = Histogram(
    "searchhub_search_duration_seconds",
    "Semantic search duration in seconds",
    ["result"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

circuit_breaker_state = Gauge(
    "searchhub_circuit_breaker_state",
    "Search circuit breaker state (0=closed, 1=half-open, 2=open)",
)

INDEX_DOCUMENT = "index_document"

_BREAKER_CODES = {"closed": 0, "half-open": 1, "open": 2}


def set_breaker_state(state: str) -> None:
    circuit_breaker_state.set(_BREAKER_CODES.get(state, 0))


def serve(port: int, addr: str = "127.0.0.1") -> None:
    """Expose /metrics over HTTP from a daemon thread."""
    start_http_server(port, addr=addr)
