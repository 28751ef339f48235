"""
Infrastructure Layer - Embedding providers, vector stores, document sources and the vault watcher.
"""

from vaultindex.infrastructure.document_source import (
    DocumentSourceError,
    DocumentSourceInterface,
    VaultDocumentSource,
)
from vaultindex.infrastructure.embedding import (
    EmbeddingAttempt,
    EmbeddingModelInfo,
    EmbeddingProviderError,
    EmbeddingProviderInterface,
    FailureKind,
    InvalidContentError,
    OpenAIEmbeddingProvider,
    ProviderConfigurationError,
    RateLimitExceededError,
    RetryPolicy,
    create_embedding_provider,
)
from vaultindex.infrastructure.fakes import (
    FakeFileWatcher,
    InMemoryDocumentSource,
    InMemoryVectorStore,
    LocalEmbeddingProvider,
    ScriptedEmbeddingProvider,
)
from vaultindex.infrastructure.file_watcher import FileWatcherInterface, VaultWatcher
from vaultindex.infrastructure.vector_store import (
    EmbeddingStats,
    QdrantVectorStore,
    SearchScope,
    SimilarityMatch,
    VectorRecord,
    VectorStoreError,
    VectorStoreInterface,
    create_vector_store,
)

__all__ = [
    # Embedding providers
    "EmbeddingProviderInterface",
    "EmbeddingModelInfo",
    "OpenAIEmbeddingProvider",
    "EmbeddingProviderError",
    "RateLimitExceededError",
    "ProviderConfigurationError",
    "InvalidContentError",
    "FailureKind",
    "EmbeddingAttempt",
    "RetryPolicy",
    "create_embedding_provider",
    # Vector store
    "VectorStoreInterface",
    "VectorRecord",
    "SimilarityMatch",
    "SearchScope",
    "EmbeddingStats",
    "QdrantVectorStore",
    "VectorStoreError",
    "create_vector_store",
    # Document sources
    "DocumentSourceInterface",
    "VaultDocumentSource",
    "DocumentSourceError",
    # Vault watcher
    "FileWatcherInterface",
    "VaultWatcher",
    # Fakes for testing
    "InMemoryVectorStore",
    "InMemoryDocumentSource",
    "LocalEmbeddingProvider",
    "ScriptedEmbeddingProvider",
    "FakeFileWatcher",
]
