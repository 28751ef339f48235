"""Response parsing logic for embedding API."""

import logging

from .errors import EmbeddingProviderError, FailureKind

logger = logging.getLogger(__name__)


def parse_embedding_response(response_data: dict, expected_dimension: int) -> list[float]:
    """
    Extract the single embedding from an OpenAI-style response body.

    Args:
        response_data: JSON response from the API
        expected_dimension: Declared embedding dimension of the model

    Returns:
        Embedding vector

    Raises:
        EmbeddingProviderError: If the response format is invalid or the
            vector length differs from the declared dimension
    """
    try:
        data = response_data.get("data", [])
        if len(data) != 1:
            raise EmbeddingProviderError(f"Expected 1 embedding, got {len(data)}")

        embedding = data[0]["embedding"]
        vector = [float(value) for value in embedding]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise EmbeddingProviderError(f"Invalid response format: {e}") from e

    if len(vector) != expected_dimension:
        logger.warning(
            f"Embedding dimension mismatch: expected {expected_dimension}, got {len(vector)}"
        )
        raise EmbeddingProviderError(
            f"Embedding dimension mismatch: expected {expected_dimension}, got {len(vector)}"
        )

    return vector


def classify_status(status_code: int, response_text: str) -> FailureKind:
    """
    Map an HTTP error status to a FailureKind.

    Rejected input (HTTP 400 and 413, or 422 mentioning the input or a
    token limit) is a content failure: the same text will never succeed.

    Args:
        status_code: HTTP status code from the response
        response_text: Response body text

    Returns:
        Failure classification
    """
    if status_code == 429:
        return FailureKind.RATE_LIMIT
    if status_code in (401, 403, 404):
        return FailureKind.CONFIGURATION
    if status_code in (400, 413):
        return FailureKind.CONTENT
    if status_code == 422:
        response_lower = response_text.lower()
        if "token" in response_lower and any(
            pattern in response_lower for pattern in ["limit", "exceed", "maximum", "many"]
        ):
            return FailureKind.CONTENT
        if "input" in response_lower:
            return FailureKind.CONTENT
        return FailureKind.PROVIDER
    if 500 <= status_code < 600:
        return FailureKind.SERVER
    return FailureKind.PROVIDER
