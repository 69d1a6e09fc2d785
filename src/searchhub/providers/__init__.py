"""Embedding and rerank provider clients."""

from searchhub.providers.embedding import EmbeddingClient
from searchhub.providers.rerank import RerankClient, RerankHit

__all__ = ["EmbeddingClient", "RerankClient", "RerankHit"]
