"""Retry policy and typed-result retry loop for embedding calls."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from vaultindex.core.cancellation import CancellationSignal, OperationCancelledError

from .errors import EmbeddingProviderError, FailureKind
from .interface import EmbeddingProviderInterface

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Configuration for embedding retry behavior.

    Attributes:
        max_attempts: Total attempts per text, including the first call.
        initial_delay: Delay in seconds before the second attempt.
        multiplier: Growth factor applied to the delay after each attempt.
        max_delay: Upper bound for a single wait in seconds.
        retry_on: Failure kinds that trigger a retry; everything else fails fast.
    """

    max_attempts: int = 8
    initial_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    retry_on: frozenset[FailureKind] = field(
        default_factory=lambda: frozenset({FailureKind.RATE_LIMIT})
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Return the wait after the given (1-based) failed attempt."""
        return min(self.initial_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    def should_retry(self, kind: Optional[FailureKind], attempt: int) -> bool:
        return kind in self.retry_on and attempt < self.max_attempts


@dataclass(frozen=True)
class EmbeddingAttempt:
    """Result of one embedding attempt: a vector or a classified failure."""

    vector: Optional[list[float]] = None
    kind: Optional[FailureKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, vector: list[float]) -> "EmbeddingAttempt":
        return cls(vector=vector)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "EmbeddingAttempt":
        return cls(kind=kind, message=message)


def classify_failure(error: BaseException) -> FailureKind:
    """
    Map an exception raised by a provider to a FailureKind.

    An HTTP-429-equivalent status on any exception counts as a rate limit,
    whatever its type.
    """
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    if status == 429:
        return FailureKind.RATE_LIMIT
    if isinstance(error, EmbeddingProviderError):
        return error.kind
    if isinstance(error, asyncio.TimeoutError):
        return FailureKind.TIMEOUT
    return FailureKind.PROVIDER


async def attempt_embedding(
    provider: EmbeddingProviderInterface,
    text: str,
    timeout: Optional[float] = None,
    cancel: Optional[CancellationSignal] = None,
) -> EmbeddingAttempt:
    """
    Make a single embedding call and return a typed result.

    Cancellation is not a failure: OperationCancelledError propagates.
    """
    if cancel is not None:
        cancel.raise_if_cancelled()
    call = provider.get_embedding(text)
    if timeout is not None:
        call = asyncio.wait_for(call, timeout=timeout)
    try:
        if cancel is not None:
            vector = await cancel.run(call)
        else:
            vector = await call
    except OperationCancelledError:
        raise
    except Exception as e:
        kind = classify_failure(e)
        message = str(e) or type(e).__name__
        if kind is FailureKind.TIMEOUT and not str(e):
            message = f"Embedding request timed out after {timeout}s"
        return EmbeddingAttempt.failure(kind, message)

    if len(vector) != provider.dimension:
        return EmbeddingAttempt.failure(
            FailureKind.PROVIDER,
            f"Embedding dimension mismatch: expected {provider.dimension}, got {len(vector)}",
        )
    return EmbeddingAttempt.success(vector)


async def embed_with_backoff(
    provider: EmbeddingProviderInterface,
    text: str,
    policy: RetryPolicy,
    timeout: Optional[float] = None,
    cancel: Optional[CancellationSignal] = None,
    on_backoff: Optional[Callable[[EmbeddingAttempt, int, float], None]] = None,
    on_resume: Optional[Callable[[], None]] = None,
) -> EmbeddingAttempt:
    """
    Embed ``text`` with exponential backoff on retryable failure kinds.

    Args:
        provider: Embedding provider to call
        text: Text to embed
        policy: Retry policy
        timeout: Optional per-call timeout in seconds
        cancel: Optional cancellation signal; backoff waits abort when it fires
        on_backoff: Called as ``on_backoff(attempt, attempt_number, delay)``
            before each wait
        on_resume: Called once each wait is over, including when it is cut
            short by cancellation

    Returns:
        The last EmbeddingAttempt (successful, non-retryable, or exhausted)
    """
    attempt_number = 1
    while True:
        attempt = await attempt_embedding(provider, text, timeout=timeout, cancel=cancel)
        if attempt.ok or not policy.should_retry(attempt.kind, attempt_number):
            if not attempt.ok and attempt.kind in policy.retry_on:
                logger.error(
                    f"All {attempt_number} attempts failed. Last error: {attempt.message}"
                )
            return attempt

        delay = policy.delay_for(attempt_number)
        logger.warning(
            f"Attempt {attempt_number} failed ({attempt.kind.value}): {attempt.message}. "
            f"Retrying in {delay:.1f}s..."
        )
        if on_backoff is not None:
            on_backoff(attempt, attempt_number, delay)

        try:
            if cancel is not None:
                await cancel.sleep(delay)
            else:
                await asyncio.sleep(delay)
        finally:
            if on_resume is not None:
                on_resume()
        attempt_number += 1
