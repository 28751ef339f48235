"""
Embedding provider module for vaultindex.

Provides the async HTTP provider for single-text embeddings, the failure
classification used by the retry loop, and exponential backoff on rate limits.
"""

from .client import OpenAIEmbeddingProvider, create_embedding_provider
from .errors import (
    EmbeddingProviderError,
    FailureKind,
    InvalidContentError,
    ProviderConfigurationError,
    RateLimitExceededError,
)
from .interface import EmbeddingModelInfo, EmbeddingProviderInterface
from .retry import (
    EmbeddingAttempt,
    RetryPolicy,
    attempt_embedding,
    classify_failure,
    embed_with_backoff,
)

__all__ = [
    "EmbeddingProviderInterface",
    "EmbeddingModelInfo",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
    "FailureKind",
    "EmbeddingProviderError",
    "RateLimitExceededError",
    "ProviderConfigurationError",
    "InvalidContentError",
    "RetryPolicy",
    "EmbeddingAttempt",
    "attempt_embedding",
    "classify_failure",
    "embed_with_backoff",
]
