"""
Unit tests for failure classification and the backoff loop.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from tests.support.indexing_test_utils import run_async, zero_delay_policy
from vaultindex.core.cancellation import CancellationSignal, OperationCancelledError
from vaultindex.infrastructure.embedding import (
    EmbeddingProviderError,
    FailureKind,
    InvalidContentError,
    ProviderConfigurationError,
    RateLimitExceededError,
    RetryPolicy,
    attempt_embedding,
    classify_failure,
    embed_with_backoff,
)
from vaultindex.infrastructure.fakes import LocalEmbeddingProvider, ScriptedEmbeddingProvider


class HTTPStatusError(Exception):
    """Third-party style error carrying a status attribute."""

    def __init__(self, status):
        super().__init__(f"status {status}")
        self.status = status


class ResponseError(Exception):
    """Third-party style error exposing the status through a response object."""

    class _Response:
        status_code = 429

    response = _Response()


class TestRetryPolicy:
    def test_default_schedule(self):
        policy = RetryPolicy()

        delays = [policy.delay_for(attempt) for attempt in range(1, 8)]

        assert delays == [2.0, 4.0, 8.0, 16.0, 32.0, 60.0, 60.0]
        assert policy.max_attempts == 8

    def test_only_rate_limits_are_retried_by_default(self):
        policy = RetryPolicy()

        assert policy.should_retry(FailureKind.RATE_LIMIT, 1)
        assert not policy.should_retry(FailureKind.RATE_LIMIT, 8)
        for kind in FailureKind:
            if kind is not FailureKind.RATE_LIMIT:
                assert not policy.should_retry(kind, 1)

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestClassifyFailure:
    def test_typed_errors(self):
        assert classify_failure(RateLimitExceededError("slow down")) is FailureKind.RATE_LIMIT
        assert classify_failure(ProviderConfigurationError("bad key")) is FailureKind.CONFIGURATION
        assert classify_failure(InvalidContentError("too long")) is FailureKind.CONTENT
        assert classify_failure(asyncio.TimeoutError()) is FailureKind.TIMEOUT
        assert classify_failure(RuntimeError("boom")) is FailureKind.PROVIDER

    def test_429_status_on_any_exception_is_rate_limit(self):
        assert classify_failure(HTTPStatusError(429)) is FailureKind.RATE_LIMIT
        assert classify_failure(ResponseError()) is FailureKind.RATE_LIMIT
        assert (
            classify_failure(EmbeddingProviderError("x", status_code=429))
            is FailureKind.RATE_LIMIT
        )
        assert classify_failure(HTTPStatusError(500)) is FailureKind.PROVIDER


class TestAttemptEmbedding:
    def test_success(self):
        provider = LocalEmbeddingProvider(dimension=8)

        attempt = run_async(attempt_embedding(provider, "hello"))

        assert attempt.ok
        assert len(attempt.vector) == 8

    def test_exception_becomes_typed_failure(self):
        provider = ScriptedEmbeddingProvider(failures={"bad": InvalidContentError("nope")})

        attempt = run_async(attempt_embedding(provider, "bad"))

        assert not attempt.ok
        assert attempt.kind is FailureKind.CONTENT
        assert "nope" in attempt.message

    def test_timeout(self):
        provider = ScriptedEmbeddingProvider(delay=1.0)

        attempt = run_async(attempt_embedding(provider, "slow", timeout=0.01))

        assert attempt.kind is FailureKind.TIMEOUT

    def test_dimension_mismatch_is_a_failure(self):
        class WrongDimension(LocalEmbeddingProvider):
            async def get_embedding(self, text):
                return [0.0] * (self.dimension + 1)

        attempt = run_async(attempt_embedding(WrongDimension(dimension=4), "x"))

        assert attempt.kind is FailureKind.PROVIDER
        assert "dimension" in attempt.message

    def test_cancellation_propagates(self):
        provider = ScriptedEmbeddingProvider(delay=5.0)

        async def run():
            cancel = CancellationSignal()
            asyncio.get_running_loop().call_later(0.01, cancel.cancel)
            await attempt_embedding(provider, "x", cancel=cancel)

        with pytest.raises(OperationCancelledError):
            run_async(run())

    def test_cancelled_run_never_builds_the_call(self):
        provider = MagicMock()
        cancel = CancellationSignal()
        cancel.cancel()

        with pytest.raises(OperationCancelledError):
            run_async(attempt_embedding(provider, "x", cancel=cancel))
        provider.get_embedding.assert_not_called()


class TestEmbedWithBackoff:
    def test_rate_limit_is_retried_until_success(self):
        provider = ScriptedEmbeddingProvider(
            transient={"x": [RateLimitExceededError("429"), RateLimitExceededError("429")]}
        )
        backoffs = []
        resumed = []

        attempt = run_async(
            embed_with_backoff(
                provider,
                "x",
                zero_delay_policy(),
                on_backoff=lambda a, n, d: backoffs.append((a.kind, n)),
                on_resume=lambda: resumed.append(len(backoffs)),
            )
        )

        assert attempt.ok
        assert provider.calls == ["x", "x", "x"]
        assert backoffs == [(FailureKind.RATE_LIMIT, 1), (FailureKind.RATE_LIMIT, 2)]
        assert resumed == [1, 2]

    def test_rate_limit_exhausts_after_max_attempts(self):
        provider = ScriptedEmbeddingProvider(failures={"x": RateLimitExceededError("429")})

        attempt = run_async(embed_with_backoff(provider, "x", zero_delay_policy()))

        assert attempt.kind is FailureKind.RATE_LIMIT
        assert len(provider.calls) == 8

    def test_non_rate_limit_failures_are_not_retried(self):
        provider = ScriptedEmbeddingProvider(
            failures={
                "content": InvalidContentError("bad"),
                "server": EmbeddingProviderError("500", kind=FailureKind.SERVER),
                "config": ProviderConfigurationError("key"),
            }
        )

        for text in ("content", "server", "config"):
            attempt = run_async(embed_with_backoff(provider, text, zero_delay_policy()))
            assert not attempt.ok

        assert provider.calls == ["content", "server", "config"]

    def test_backoff_wait_is_cancellable(self):
        provider = ScriptedEmbeddingProvider(failures={"x": RateLimitExceededError("429")})
        policy = RetryPolicy(initial_delay=30.0, max_delay=30.0)

        resumed = []

        async def run():
            cancel = CancellationSignal()
            await embed_with_backoff(
                provider,
                "x",
                policy,
                cancel=cancel,
                on_backoff=lambda *_: cancel.cancel(),
                on_resume=lambda: resumed.append(True),
            )

        with pytest.raises(OperationCancelledError):
            run_async(asyncio.wait_for(run(), timeout=5.0))
        assert provider.calls == ["x"]
        assert resumed == [True]
