"""Tests for RerankClient."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from searchhub.errors import ProviderContractError, RerankProviderUnavailable
from searchhub.providers.rerank import RerankClient, RerankHit

_PATCH = "searchhub.providers.rerank.litellm.rerank"


def _response(*pairs):
    return SimpleNamespace(results=[{"index": i, "relevance_score": s} for i, s in pairs])


def test_rerank_orders_by_score():
    with patch(_PATCH, return_value=_response((0, 0.2), (2, 0.9), (1, 0.5))) as mock_rerank:
        hits = RerankClient().rerank("refund", ["a", "b", "c"])
    assert hits == [RerankHit(2, 0.9), RerankHit(1, 0.5), RerankHit(0, 0.2)]
    kwargs = mock_rerank.call_args.kwargs
    assert kwargs["documents"] == ["a", "b", "c"]
    assert kwargs["top_n"] == 3


def test_rerank_subset_allowed():
    with patch(_PATCH, return_value=_response((1, 0.7))):
        hits = RerankClient().rerank("q", ["a", "b"])
    assert hits == [RerankHit(1, 0.7)]


def test_rerank_empty_candidates_makes_no_call():
    with patch(_PATCH) as mock_rerank:
        assert RerankClient().rerank("q", []) == []
    mock_rerank.assert_not_called()


def test_rerank_rejects_fabricated_index():
    with patch(_PATCH, return_value=_response((5, 0.9))):
        with pytest.raises(ProviderContractError, match="missing candidate"):
            RerankClient().rerank("q", ["a", "b"])


def test_rerank_rejects_repeated_index():
    with patch(_PATCH, return_value=_response((0, 0.9), (0, 0.8))):
        with pytest.raises(ProviderContractError, match="repeated"):
            RerankClient().rerank("q", ["a", "b"])


def test_rerank_provider_failure_is_transient():
    with patch(_PATCH, side_effect=TimeoutError("slow")):
        with pytest.raises(RerankProviderUnavailable):
            RerankClient().rerank("q", ["a"])


@pytest.mark.parametrize("score", ["high", float("nan"), [0.5]])
def test_rerank_rejects_unusable_score(score):
    response = SimpleNamespace(results=[{"index": 0, "relevance_score": score}])
    with patch(_PATCH, return_value=response):
        with pytest.raises(ProviderContractError, match="candidate 0"):
            RerankClient().rerank("q", ["a"])
