"""Tests for the two-stage search engine."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from prometheus_client import REGISTRY

from searchhub.config import EmbeddingCfg
from searchhub.db.models import Document, DocumentIndexState, to_iso
from searchhub.db.repository import Repository
from searchhub.errors import ProviderContractError, SearchFailed, SearchUnavailable
from searchhub.providers.embedding import EmbeddingClient
from searchhub.providers.rerank import RerankClient
from searchhub.search.breaker import CircuitBreaker
from searchhub.search.engine import SearchEngine, SemanticQuery

_EMBED = "searchhub.providers.embedding.litellm.embedding"
_RERANK = "searchhub.providers.rerank.litellm.rerank"

T0 = 1_700_000_000.0


def _embed_response(vector):
    response = MagicMock()
    response.data = [{"embedding": list(vector), "index": 0}]
    return response


def _rerank_by_length(**kwargs):
    """Rerank stand-in: longer snippets score higher."""
    docs = kwargs["documents"]
    return SimpleNamespace(
        results=[{"index": i, "relevance_score": len(d) / 100} for i, d in enumerate(docs)]
    )


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def engine(repo):
    return SearchEngine(
        repo,
        EmbeddingClient(EmbeddingCfg(dimensions=3)),
        RerankClient(),
        CircuitBreaker(failure_threshold=2),
    )


def _index(repo, tenant, doc, vector, snippet):
    repo.upsert_document(Document(tenant, doc, snippet, updated_at=to_iso(T0)))
    repo.upsert_index_state(
        DocumentIndexState(tenant, doc, list(vector), to_iso(T0), f"job-{doc}", snippet=snippet)
    )


@pytest.fixture
def corpus(repo):
    _index(repo, "tenant_1", "refunds", (1.0, 0.0, 0.0), "refund policy: thirty days")
    _index(repo, "tenant_1", "shipping", (0.7, 0.7, 0.0), "shipping times")
    _index(repo, "tenant_1", "careers", (0.0, 0.0, 1.0), "we are hiring")
    for i in range(5):
        _index(repo, "tenant_2", f"t2-{i}", (1.0, 0.0, 0.0), "refund policy exact match " * 3)


def test_tenant_isolation_and_result_bound(engine, corpus):
    query = SemanticQuery("tenant_1", "refund policy", k=5, recall_k=3)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        hits = engine.search(query)

    assert 0 < len(hits) <= 3
    assert {h.document_id for h in hits} <= {"refunds", "shipping", "careers"}
    assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)


def test_k_capped_at_recall_k(engine, corpus):
    query = SemanticQuery("tenant_1", "refund", k=10, recall_k=2)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ) as mock_rerank:
        hits = engine.search(query)

    assert len(hits) == 2
    assert len(mock_rerank.call_args.kwargs["documents"]) == 2


def test_top_k_after_rerank(engine, corpus):
    query = SemanticQuery("tenant_1", "refund", k=1, recall_k=3)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        [hit] = engine.search(query)
    assert hit.document_id == "refunds"
    assert hit.similarity == pytest.approx(1.0)


def test_recall_uses_query_input_type(engine, corpus):
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])) as mock_embed, patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        engine.search(SemanticQuery("tenant_1", "refund"))
    assert mock_embed.call_args.kwargs["input_type"] == "query"


def test_empty_index_returns_empty(engine):
    with patch(_EMBED) as mock_embed:
        assert engine.search(SemanticQuery("tenant_1", "anything")) == []
    mock_embed.assert_not_called()


def test_blank_query_rejected(engine):
    with pytest.raises(ValueError):
        engine.search(SemanticQuery("tenant_1", "   "))


def test_provider_failure_surfaces(engine, corpus):
    with patch(_EMBED, side_effect=ConnectionError("down")):
        with pytest.raises(SearchFailed) as exc_info:
            engine.search(SemanticQuery("tenant_1", "refund"))
    assert exc_info.value.__cause__ is not None


def test_rerank_failure_is_not_partial(engine, corpus):
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=TimeoutError("slow")
    ):
        with pytest.raises(SearchFailed):
            engine.search(SemanticQuery("tenant_1", "refund"))


def test_open_breaker_raises_unavailable(engine, corpus):
    with patch(_EMBED, side_effect=ConnectionError("down")) as mock_embed:
        for _ in range(2):
            with pytest.raises(SearchFailed):
                engine.search(SemanticQuery("tenant_1", "refund"))
        with pytest.raises(SearchUnavailable):
            engine.search(SemanticQuery("tenant_1", "refund"))
    assert mock_embed.call_count == 2


def test_hit_to_dict(engine, corpus):
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        hits = engine.search(SemanticQuery("tenant_1", "refund", k=1))
    assert set(hits[0].to_dict()) == {"documentId", "score", "similarity"}


# ------------------------------------------------------------------
# Breaker recovery
# ------------------------------------------------------------------


@pytest.fixture
def guarded(repo, clock):
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=30, half_open_timeout=10, clock=clock)
    engine = SearchEngine(repo, EmbeddingClient(EmbeddingCfg(dimensions=3)), RerankClient(), breaker)
    return engine, breaker


def test_half_open_call_with_bad_vector_reopens_then_recovers(guarded, corpus, clock):
    engine, breaker = guarded
    query = SemanticQuery("tenant_1", "refund")

    with patch(_EMBED, side_effect=ConnectionError("down")):
        with pytest.raises(SearchFailed):
            engine.search(query)
    assert breaker.state == "open"

    clock.advance(31)
    with patch(_EMBED, return_value=_embed_response([float("nan"), 0, 0])):
        with pytest.raises(SearchFailed) as exc_info:
            engine.search(query)
    assert isinstance(exc_info.value.__cause__, ProviderContractError)
    assert breaker.state == "open"

    clock.advance(31)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        assert engine.search(query)
    assert breaker.state == "closed"


def test_unexpected_error_still_settles_breaker(guarded, repo, corpus, clock):
    engine, breaker = guarded
    query = SemanticQuery("tenant_1", "refund")

    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch.object(
        repo, "nearest_documents", side_effect=RuntimeError("bug")
    ):
        with pytest.raises(SearchFailed) as exc_info:
            engine.search(query)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert breaker.state == "open"

    clock.advance(31)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch.object(
        repo, "nearest_documents", side_effect=KeyError("bad row")
    ):
        with pytest.raises(SearchFailed):
            engine.search(query)

    clock.advance(31)
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        assert engine.search(query)
    assert breaker.state == "closed"


def test_search_records_duration(engine, corpus):
    before = REGISTRY.get_sample_value("searchhub_search_duration_seconds_count", {"result": "success"}) or 0.0
    with patch(_EMBED, return_value=_embed_response([1, 0, 0])), patch(
        _RERANK, side_effect=_rerank_by_length
    ):
        engine.search(SemanticQuery("tenant_1", "refund"))
    after = REGISTRY.get_sample_value("searchhub_search_duration_seconds_count", {"result": "success"})
    assert after == before + 1
