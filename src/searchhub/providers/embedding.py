"""Embedding client: batched document embeddings and single query embeddings.

Postcondition of every call: one vector per input, in input order, each of
exactly ``EmbeddingCfg.dimensions`` floats. A wrong length raises
DimensionMismatch and is never retried here.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from typing import Literal

import litellm

from searchhub import metrics
from searchhub.config import EmbeddingCfg
from searchhub.db.vectors import validate_dimensions
from searchhub.errors import EmbeddingProviderUnavailable, ProviderContractError
from searchhub.log import kv
from searchhub.providers.llm_client import field_of, provider_of, to_provider_error

logger = logging.getLogger(__name__)

InputType = Literal["document", "query"]
_INPUT_TYPES: frozenset[str] = frozenset(["document", "query"])


class EmbeddingClient:
    """Turn text into fixed-dimension vectors via ``litellm.embedding()``.

    At most ``max_in_flight`` provider requests run concurrently per client;
    share one instance between worker threads to bound the total.

    Args:
        config: Embedding configuration (model, dimensions, batching, limits).
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()
        self._slots = threading.BoundedSemaphore(self._config.max_in_flight)

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    @property
    def model(self) -> str:
        return self._config.model

    def embed(
        self, texts: Sequence[str], input_type: InputType = "document"
    ) -> list[list[float]]:
        """Embed *texts* in batches. Returns one vector per input, in order.

        Raises:
            EmbeddingProviderUnavailable: Transient provider failure.
            ProviderRequestRejected: The provider refused the request.
            DimensionMismatch: A returned vector has the wrong length.
            ProviderContractError: Wrong number of vectors, or a non-finite component.
        """
        if input_type not in _INPUT_TYPES:
            raise ValueError(f"input_type must be 'document' or 'query', got {input_type!r}")
        if not texts:
            return []

        size = self._config.batch_size
        vectors: list[list[float]] = []
        for start in range(0, len(texts), size):
            vectors.extend(self._embed_batch(list(texts[start : start + size]), input_type))
        return vectors

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query (``input_type='query'``)."""
        return self.embed([text], input_type="query")[0]

    def _embed_batch(self, batch: list[str], input_type: InputType) -> list[list[float]]:
        provider = provider_of(self._config.model)
        with self._slots:
            started = time.perf_counter()
            try:
                response = litellm.embedding(
                    model=self._config.model,
                    input=batch,
                    input_type=input_type,
                    dimensions=self._config.dimensions,
                    timeout=self._config.timeout_seconds,
                    num_retries=self._config.num_retries,
                )
            except Exception as exc:
                metrics.ai_request_duration_seconds.labels(
                    provider=provider, operation="embed", status="error"
                ).observe(time.perf_counter() - started)
                error = to_provider_error(exc, EmbeddingProviderUnavailable, self._config.model)
                logger.warning(
                    "embedding.request_failed %s",
                    kv(model=self._config.model, batch=len(batch), error=error),
                )
                raise error from exc
            metrics.ai_request_duration_seconds.labels(
                provider=provider, operation="embed", status="success"
            ).observe(time.perf_counter() - started)

        data = list(response.data or [])
        if len(data) != len(batch):
            raise ProviderContractError(
                f"Embedding provider returned {len(data)} vectors for {len(batch)} inputs"
            )
        ordered = sorted(
            enumerate(data), key=lambda pair: field_of(pair[1], "index", pair[0])
        )
        return [
            validate_dimensions(field_of(item, "embedding") or [], self._config.dimensions)
            for _, item in ordered
        ]
