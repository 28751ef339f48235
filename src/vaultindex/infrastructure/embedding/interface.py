"""Abstract interface for embedding providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmbeddingModelInfo:
    """Identity of an embedding model: id plus declared vector dimension."""

    model_id: str
    dimension: int


class EmbeddingProviderInterface(ABC):
    """Abstract interface for embedding providers."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return the identifier of the embedding model."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding vector dimension."""
        pass

    @property
    def model_info(self) -> EmbeddingModelInfo:
        """Return the (model id, dimension) identity of this provider."""
        return EmbeddingModelInfo(model_id=self.model_id, dimension=self.dimension)

    @abstractmethod
    async def get_embedding(self, text: str) -> list[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length ``dimension``

        Raises:
            EmbeddingProviderError: With a ``kind`` describing the failure
        """
        pass

    async def close(self) -> None:
        """Release network resources (optional)."""
        pass
