"""
Batched embedding executor.

Embeds chunks in fixed-size batches: batches run one after another, chunks
inside a batch run concurrently (one provider call each). Each batch's
successful records are persisted as soon as the batch settles, so an abort or
cancellation loses at most the batch in flight.
"""

import asyncio
import logging
import time
from collections import Counter
from typing import Optional

from vaultindex.core.cancellation import CancellationSignal, OperationCancelledError
from vaultindex.core.chunker import Chunk
from vaultindex.infrastructure.embedding import (
    EmbeddingAttempt,
    EmbeddingProviderInterface,
    FailureKind,
    ProviderConfigurationError,
    RetryPolicy,
    embed_with_backoff,
)
from vaultindex.infrastructure.vector_store import VectorRecord, VectorStoreInterface
from vaultindex.services.indexing_models import (
    BatchEmbeddingError,
    ChunkFailure,
    EmbeddingReport,
    IndexingCancelledError,
)
from vaultindex.services.progress import ProgressReporter

logger = logging.getLogger(__name__)


def check_content(content: str) -> Optional[str]:
    """Return why ``content`` cannot be embedded, or None if it can."""
    if not content or not content.strip():
        return "Chunk content is empty"
    if "\x00" in content:
        return "Chunk content contains a NUL byte"
    return None


class BatchedEmbeddingExecutor:
    """
    Turns chunks into persisted vector records.

    Args:
        provider: Embedding provider; its model id and dimension stamp every record
        vector_store: Store the records are inserted into
        retry_policy: Backoff policy per chunk (default: rate limits only, 8 attempts)
        batch_size: Chunks per batch; bounds in-flight provider calls
        call_timeout: Optional timeout in seconds for each provider call
    """

    def __init__(
        self,
        provider: EmbeddingProviderInterface,
        vector_store: VectorStoreInterface,
        retry_policy: Optional[RetryPolicy] = None,
        batch_size: int = 100,
        call_timeout: Optional[float] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._provider = provider
        self._vector_store = vector_store
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = batch_size
        self._call_timeout = call_timeout

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def run(
        self,
        chunks: list[Chunk],
        reporter: Optional[ProgressReporter] = None,
        cancel: Optional[CancellationSignal] = None,
    ) -> EmbeddingReport:
        """
        Embed and persist ``chunks`` batch by batch.

        A document is marked complete on the reporter once every one of its
        chunks has been processed, whether embedded or failed.

        Returns:
            EmbeddingReport with the persisted count and per-chunk failures

        Raises:
            ProviderConfigurationError: The provider rejected its configuration
            BatchEmbeddingError: Every chunk of a batch failed
            IndexingCancelledError: The cancellation signal fired
        """
        reporter = reporter or ProgressReporter()
        report = EmbeddingReport()
        remaining = Counter(chunk.path for chunk in chunks)
        total_batches = (len(chunks) + self._batch_size - 1) // self._batch_size

        for batch_index, start in enumerate(range(0, len(chunks), self._batch_size)):
            if cancel is not None and cancel.is_cancelled:
                raise IndexingCancelledError(
                    f"Indexing cancelled before batch {batch_index + 1}/{total_batches}"
                )
            batch = chunks[start : start + self._batch_size]

            embed_start = time.time()
            results = await asyncio.gather(
                *(self._embed_chunk(chunk, reporter, cancel) for chunk in batch),
                return_exceptions=True,
            )
            attempts = self._settle(results)

            records: list[VectorRecord] = []
            failures: list[ChunkFailure] = []
            for chunk, attempt in zip(batch, attempts):
                if attempt.ok:
                    records.append(self._to_record(chunk, attempt.vector))
                    continue
                if attempt.kind is FailureKind.CONFIGURATION:
                    logger.error(f"Embedding provider misconfigured: {attempt.message}")
                    raise ProviderConfigurationError(attempt.message)
                failures.append(
                    ChunkFailure(
                        path=chunk.path,
                        error=attempt.message,
                        start_line=chunk.start_line,
                        end_line=chunk.end_line,
                        kind=attempt.kind.value,
                    )
                )

            if not records:
                logger.error(
                    f"All {len(batch)} chunk(s) of batch {batch_index + 1}/{total_batches} failed",
                    extra={"batch_index": batch_index, "chunk_count": len(batch)},
                )
                raise BatchEmbeddingError(
                    f"Every chunk in batch {batch_index + 1} failed to embed; "
                    f"first error: {failures[0].error}",
                    batch_index=batch_index,
                    failures=failures,
                )

            await self._vector_store.insert_vectors(records)
            report.persisted += len(records)
            report.failures.extend(failures)

            logger.info(
                "Embedding batch persisted",
                extra={
                    "batch_index": batch_index,
                    "chunk_count": len(batch),
                    "persisted": len(records),
                    "failed": len(failures),
                    "latency_ms": (time.time() - embed_start) * 1000,
                },
            )

            for chunk in batch:
                remaining[chunk.path] -= 1
                if remaining[chunk.path] == 0:
                    reporter.complete_document(chunk.path)
            reporter.batch_persisted(dict(Counter(record.path for record in records)))

        return report

    def _settle(self, results: list) -> list[EmbeddingAttempt]:
        attempts: list[EmbeddingAttempt] = []
        for result in results:
            if isinstance(result, OperationCancelledError):
                raise IndexingCancelledError("Indexing cancelled during embedding") from result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Unexpected error while embedding chunk: {result}")
                attempts.append(
                    EmbeddingAttempt.failure(FailureKind.PROVIDER, str(result) or type(result).__name__)
                )
                continue
            attempts.append(result)
        return attempts

    async def _embed_chunk(
        self,
        chunk: Chunk,
        reporter: ProgressReporter,
        cancel: Optional[CancellationSignal],
    ) -> EmbeddingAttempt:
        problem = check_content(chunk.content)
        if problem is not None:
            return EmbeddingAttempt.failure(FailureKind.CONTENT, problem)

        attempt = await embed_with_backoff(
            self._provider,
            chunk.content,
            self._retry_policy,
            timeout=self._call_timeout,
            cancel=cancel,
            on_backoff=lambda *_: reporter.waiting_for_rate_limit(),
            on_resume=reporter.rate_limit_wait_over,
        )
        if attempt.ok:
            reporter.chunk_embedded(chunk.path)
        return attempt

    def _to_record(self, chunk: Chunk, vector: list[float]) -> VectorRecord:
        return VectorRecord(
            path=chunk.path,
            mtime=chunk.mtime,
            content=chunk.content,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            model=self._provider.model_id,
            dimension=self._provider.dimension,
            embedding=vector,
        )
