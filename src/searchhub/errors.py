"""Error taxonomy for the indexing and search pipeline.

Callers match on these classes to decide recoverability:

  TransientProviderError  retry with backoff (timeouts, 5xx, 429)
  ContentUnavailable      retry a bounded number of times, then fail
  DimensionMismatch       fatal, provider contract changed
  ProviderContractError   fatal, provider returned an impossible answer
  ProviderRequestRejected fatal, provider refused the request (4xx other than 408/429)
  QueueUnavailable        infrastructure, always propagated
  JobAttemptsExhausted    terminal failed job
  SearchFailed            query-time failure shown to the user
"""

from __future__ import annotations


class SearchHubError(Exception):
    """Base class for all pipeline errors."""


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class TransientProviderError(SearchHubError):
    """A provider call failed in a way that may succeed later."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
        self.retry_after = retry_after


class EmbeddingProviderUnavailable(TransientProviderError):
    """Embedding call timed out, was rate limited, or hit a 5xx."""


class RerankProviderUnavailable(TransientProviderError):
    """Rerank call timed out, was rate limited, or hit a 5xx."""


class DimensionMismatch(SearchHubError):
    """The provider returned a vector of the wrong length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


EmbeddingDimensionMismatch = DimensionMismatch


class ProviderContractError(SearchHubError):
    """The provider response violates the contract (e.g. unknown rerank index)."""


class ProviderRequestRejected(SearchHubError):
    """The provider refused the request itself (bad key, bad request, unknown model).

    Not transient: the same request will be refused again.
    """

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
        self.retry_after = None


# ---------------------------------------------------------------------------
# Content / queue / job errors
# ---------------------------------------------------------------------------


class ContentUnavailable(SearchHubError):
    """Document content could not be loaded from the document store."""

    def __init__(self, tenant_id: str, document_id: str, reason: str) -> None:
        super().__init__(
            f"Content unavailable for document '{document_id}' "
            f"(tenant '{tenant_id}'): {reason}"
        )
        self.tenant_id = tenant_id
        self.document_id = document_id
        self.reason = reason


class DocumentNotFound(ContentUnavailable):
    """The document does not exist for the tenant."""

    def __init__(self, tenant_id: str, document_id: str) -> None:
        super().__init__(tenant_id, document_id, "not found")


class QueueUnavailable(SearchHubError):
    """The queue transport could not be reached or is locked."""


class JobAttemptsExhausted(SearchHubError):
    """A job failed on its final permitted attempt."""

    def __init__(self, job_id: str, attempts: int, last_error: str) -> None:
        super().__init__(
            f"Job {job_id} failed after {attempts} attempts: {last_error}"
        )
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error


# ---------------------------------------------------------------------------
# Search errors
# ---------------------------------------------------------------------------


class SearchFailed(SearchHubError):
    """A semantic query could not be answered."""


class SearchUnavailable(SearchFailed):
    """Semantic search is temporarily disabled by the circuit breaker."""
