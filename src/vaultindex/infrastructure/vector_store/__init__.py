"""
Vector Store module for vaultindex.

Provides Qdrant-based vector storage behind one async interface, either
embedded on a local directory or against a Qdrant server.
"""

from pathlib import Path

from .base import (
    EmbeddingStats,
    SearchScope,
    SimilarityMatch,
    VectorRecord,
    VectorStoreError,
    VectorStoreInterface,
)
from .qdrant import QdrantVectorStore

__all__ = [
    "VectorRecord",
    "SimilarityMatch",
    "SearchScope",
    "EmbeddingStats",
    "VectorStoreError",
    "VectorStoreInterface",
    "QdrantVectorStore",
    "create_vector_store",
]


def create_vector_store(config, base_dir=None) -> VectorStoreInterface:
    """
    Factory function to create a vector store from a VectorStoreConfig.

    Args:
        config: VectorStoreConfig selecting the backend and its connection settings
        base_dir: Directory that a relative local storage path is resolved against

    Returns:
        Configured VectorStoreInterface instance

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (config.backend or "local").lower()
    if backend == "local":
        path = Path(config.path) if config.path else None
        if path is not None and base_dir is not None and not path.is_absolute():
            path = Path(base_dir) / path
        if path is None:
            return QdrantVectorStore(
                collection_prefix=config.collection_prefix, location=":memory:"
            )
        return QdrantVectorStore(collection_prefix=config.collection_prefix, path=path)
    if backend == "qdrant":
        return QdrantVectorStore(
            host=config.host,
            port=config.port,
            collection_prefix=config.collection_prefix,
            api_key=config.api_key or None,
            url=config.url or None,
        )
    raise ValueError(f"Unknown vector store backend: {config.backend!r} (expected 'local' or 'qdrant')")
