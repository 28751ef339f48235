"""
Search Service for vaultindex.

Runs similarity queries against the vector store for one embedding model.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from vaultindex.infrastructure.embedding import EmbeddingModelInfo, EmbeddingProviderInterface
from vaultindex.infrastructure.vector_store import (
    SearchScope,
    SimilarityMatch,
    VectorStoreInterface,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    """
    Options for a similarity query.

    Attributes:
        min_similarity: Inclusive cosine similarity threshold
        limit: Maximum number of matches
        scope: Optional allow-list of files and folders
    """

    min_similarity: float = 0.0
    limit: int = 10
    scope: Optional[SearchScope] = None


class SearchService:
    """
    Service for similarity search over indexed notes.

    Queries are always issued with a model id and its dimension, so vectors
    stored under a model of another dimension are never compared.
    """

    def __init__(
        self,
        vector_store: VectorStoreInterface,
        provider: Optional[EmbeddingProviderInterface] = None,
    ):
        """
        Initialize the search service.

        Args:
            vector_store: Store to query
            provider: Embedding provider; supplies the default model identity
                and embeds text queries
        """
        self._vector_store = vector_store
        self._provider = provider

    def _resolve_model(self, model: Optional[EmbeddingModelInfo]) -> EmbeddingModelInfo:
        if model is not None:
            return model
        if self._provider is None:
            raise ValueError("A model is required when the search service has no provider")
        return self._provider.model_info

    async def search(
        self,
        query_vector: list[float],
        options: Optional[SearchOptions] = None,
        model: Optional[EmbeddingModelInfo] = None,
    ) -> list[SimilarityMatch]:
        """
        Find the stored chunks most similar to ``query_vector``.

        Args:
            query_vector: Query embedding
            options: Threshold, limit and scope (defaults when None)
            model: Model identity to search; defaults to the provider's

        Returns:
            Matches sorted by similarity, highest first, without embeddings

        Raises:
            ValueError: If the query length differs from the model dimension
        """
        options = options or SearchOptions()
        model = self._resolve_model(model)

        if len(query_vector) != model.dimension:
            raise ValueError(
                f"Query vector has {len(query_vector)} dimensions but model "
                f"'{model.model_id}' uses {model.dimension}"
            )

        matches = await self._vector_store.similarity_search(
            query_vector,
            model=model.model_id,
            dimension=model.dimension,
            min_similarity=options.min_similarity,
            limit=options.limit,
            scope=options.scope,
        )
        logger.debug(
            f"Similarity search returned {len(matches)} match(es)",
            extra={"model": model.model_id, "limit": options.limit},
        )
        return matches

    async def search_text(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> list[SimilarityMatch]:
        """Embed ``query`` with the provider and search with the resulting vector."""
        if self._provider is None:
            raise ValueError("Text search requires an embedding provider")
        if not query.strip():
            return []
        query_vector = await self._provider.get_embedding(query)
        return await self.search(query_vector, options, model=self._provider.model_info)
