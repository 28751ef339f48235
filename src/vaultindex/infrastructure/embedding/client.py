"""OpenAI-compatible embedding provider implementation."""

import logging
from typing import Optional

import httpx

from .errors import (
    EmbeddingProviderError,
    FailureKind,
    InvalidContentError,
    ProviderConfigurationError,
    RateLimitExceededError,
)
from .interface import EmbeddingProviderInterface
from .response_parser import classify_status, parse_embedding_response

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProviderInterface):
    """
    Embedding provider for OpenAI-compatible APIs.

    Sends one input per request; batching and retries are the caller's job.
    Uses connection pooling so concurrent calls within a batch share sockets.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        timeout: float = 30.0,
        encoding_format: str = "float",
    ):
        """
        Initialize the embedding provider.

        Args:
            api_url: Full URL of the embeddings endpoint
            api_key: API key for authentication
            model: Model name to use for embeddings
            dimension: Declared embedding dimension of the model
            timeout: Request timeout in seconds
            encoding_format: Encoding format for embeddings

        Raises:
            ProviderConfigurationError: If the URL, key, model or dimension is unusable
        """
        if not api_url:
            raise ProviderConfigurationError(
                "Embedding API URL is not set. Configure embedding.api_url "
                "or VAULTINDEX_EMBEDDING_API_URL."
            )
        if not api_key:
            raise ProviderConfigurationError(
                "Embedding API key is not set. Configure embedding.api_key "
                "or VAULTINDEX_EMBEDDING_API_KEY."
            )
        if not model:
            raise ProviderConfigurationError("Embedding model name is not set.")
        if dimension < 1:
            raise ProviderConfigurationError(
                f"Embedding dimension must be positive, got {dimension}"
            )

        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._dimension = dimension
        self._timeout = timeout
        self._encoding_format = encoding_format

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _get_client(self) -> httpx.AsyncClient:
        """
        Get or create the HTTP client with connection pooling.

        Waiting for a free pooled connection is not bounded: a batch may start
        more calls than the pool holds, and queueing is not a provider timeout.
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, pool=None),
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get_embedding(self, text: str) -> list[float]:
        """
        Generate the embedding for a single text.

        Raises:
            RateLimitExceededError: HTTP 429
            ProviderConfigurationError: Authentication or endpoint errors
            InvalidContentError: The provider rejected the input
            EmbeddingProviderError: Server, timeout, transport or format errors
        """
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "input": text,
            "model": self._model,
            "encoding_format": self._encoding_format,
        }

        client = await self._get_client()
        try:
            response = await client.post(self._api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise EmbeddingProviderError(
                f"Request timeout: {e}", kind=FailureKind.TIMEOUT
            ) from e
        except httpx.ConnectError as e:
            raise EmbeddingProviderError(
                f"Connection error: {e} (url={self._api_url})", kind=FailureKind.SERVER
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingProviderError(f"Request error: {e}") from e

        if response.status_code == 200:
            return parse_embedding_response(response.json(), self._dimension)

        kind = classify_status(response.status_code, response.text)
        detail = f"{response.status_code} - {response.text}"
        if kind is FailureKind.RATE_LIMIT:
            raise RateLimitExceededError(f"Rate limited: {detail}", status_code=429)
        if kind is FailureKind.CONFIGURATION:
            raise ProviderConfigurationError(
                f"Authentication or endpoint error: {detail} "
                f"(url={self._api_url}, model={self._model}). Check the API key and URL.",
                status_code=response.status_code,
            )
        if kind is FailureKind.CONTENT:
            raise InvalidContentError(
                f"Input rejected: {detail} (model={self._model}, chars={len(text)})",
                status_code=response.status_code,
            )
        if kind is FailureKind.SERVER:
            raise EmbeddingProviderError(
                f"Server error: {detail}", kind=kind, status_code=response.status_code
            )
        raise EmbeddingProviderError(
            f"API error: {detail} (url={self._api_url}, model={self._model})",
            status_code=response.status_code,
        )


def create_embedding_provider(config) -> EmbeddingProviderInterface:
    """
    Factory function to create an embedding provider from an EmbeddingConfig.

    Args:
        config: EmbeddingConfig with api_url, api_key, model, dimension, timeout

    Returns:
        Configured EmbeddingProviderInterface instance

    Raises:
        ProviderConfigurationError: If the configuration is incomplete
    """
    return OpenAIEmbeddingProvider(
        api_url=config.api_url,
        api_key=config.api_key,
        model=config.model,
        dimension=config.dimension,
        timeout=config.timeout,
    )
