"""Rerank client: relevance-order a candidate list for a query."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass

import litellm

from searchhub import metrics
from searchhub.config import RerankCfg
from searchhub.errors import ProviderContractError, RerankProviderUnavailable
from searchhub.log import kv
from searchhub.providers.llm_client import field_of, provider_of, to_provider_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RerankHit:
    """Position of a candidate in the input list and its relevance score."""

    index: int
    score: float


class RerankClient:
    """Call ``litellm.rerank()`` and validate the answer against the input.

    The result is a subset or permutation of input indices, sorted by
    descending score. Used at query time only.
    """

    def __init__(self, config: RerankCfg | None = None) -> None:
        self._config = config or RerankCfg()
        self._slots = threading.BoundedSemaphore(self._config.max_in_flight)

    @property
    def model(self) -> str:
        return self._config.model

    def rerank(self, query: str, candidates: Sequence[str]) -> list[RerankHit]:
        """Return candidates as (index, score) hits, most relevant first.

        Raises:
            RerankProviderUnavailable: Transient provider failure.
            ProviderRequestRejected: The provider refused the request.
            ProviderContractError: An index is out of range or repeated, or a
                score is not a finite number.
        """
        if not candidates:
            return []

        provider = provider_of(self._config.model)
        with self._slots:
            started = time.perf_counter()
            try:
                response = litellm.rerank(
                    model=self._config.model,
                    query=query,
                    documents=list(candidates),
                    top_n=len(candidates),
                    timeout=self._config.timeout_seconds,
                )
            except Exception as exc:
                metrics.ai_request_duration_seconds.labels(
                    provider=provider, operation="rerank", status="error"
                ).observe(time.perf_counter() - started)
                error = to_provider_error(exc, RerankProviderUnavailable, self._config.model)
                logger.warning(
                    "rerank.request_failed %s",
                    kv(model=self._config.model, candidates=len(candidates), error=error),
                )
                raise error from exc
            metrics.ai_request_duration_seconds.labels(
                provider=provider, operation="rerank", status="success"
            ).observe(time.perf_counter() - started)

        hits = _parse_results(getattr(response, "results", None) or [], len(candidates))
        hits.sort(key=lambda h: (-h.score, h.index))
        return hits


def _parse_results(results: Sequence[object], n_candidates: int) -> list[RerankHit]:
    hits: list[RerankHit] = []
    seen: set[int] = set()
    for item in results:
        index = field_of(item, "index")
        if not isinstance(index, int) or not 0 <= index < n_candidates:
            raise ProviderContractError(
                f"Rerank response referenced missing candidate {index!r} "
                f"(have {n_candidates})"
            )
        if index in seen:
            raise ProviderContractError(f"Rerank response repeated candidate {index}")
        seen.add(index)
        raw = field_of(item, "relevance_score")
        try:
            score = float(raw or 0.0)
        except (TypeError, ValueError) as exc:
            raise ProviderContractError(
                f"Rerank score for candidate {index} is not a number: {raw!r}"
            ) from exc
        if not math.isfinite(score):
            raise ProviderContractError(f"Rerank score for candidate {index} is not finite")
        hits.append(RerankHit(index=index, score=score))
    return hits
