"""Failure kinds and exception types for embedding providers."""

from enum import Enum
from typing import Optional


class FailureKind(Enum):
    """Classification of a failed embedding attempt."""

    RATE_LIMIT = "rate_limit"
    CONFIGURATION = "configuration"
    CONTENT = "content"
    TIMEOUT = "timeout"
    SERVER = "server"
    PROVIDER = "provider"


class EmbeddingProviderError(Exception):
    """Base exception for embedding provider errors.

    Attributes:
        kind: Failure classification used by the retry loop.
        status_code: HTTP status code reported by the provider, if any.
    """

    kind: FailureKind = FailureKind.PROVIDER

    def __init__(
        self,
        message: str,
        kind: Optional[FailureKind] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.status_code = status_code


class RateLimitExceededError(EmbeddingProviderError):
    """Provider is throttling requests (HTTP 429 or equivalent)."""

    kind = FailureKind.RATE_LIMIT


class ProviderConfigurationError(EmbeddingProviderError):
    """Missing or invalid credentials or endpoint.

    Fatal for an indexing run and never retried; the message should tell the
    user what to fix.
    """

    kind = FailureKind.CONFIGURATION


class InvalidContentError(EmbeddingProviderError):
    """Provider rejected the input text itself (too long, malformed)."""

    kind = FailureKind.CONTENT
