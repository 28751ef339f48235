"""
Unit tests for the batched embedding executor.
"""

import asyncio

import pytest

from tests.support.indexing_test_utils import run_async, zero_delay_policy
from vaultindex.core.cancellation import CancellationSignal
from vaultindex.core.chunker import Chunk
from vaultindex.infrastructure.embedding import (
    InvalidContentError,
    ProviderConfigurationError,
    RateLimitExceededError,
    RetryPolicy,
)
from vaultindex.infrastructure.fakes import (
    InMemoryVectorStore,
    LocalEmbeddingProvider,
    ScriptedEmbeddingProvider,
    text_to_vector,
)
from vaultindex.services.embedding_executor import BatchedEmbeddingExecutor, check_content
from vaultindex.services.indexing_models import BatchEmbeddingError, IndexingCancelledError
from vaultindex.services.progress import ProgressReporter


def make_chunks(count: int, path: str = "notes/a.md", mtime: float = 100.0) -> list[Chunk]:
    return [
        Chunk(path=path, mtime=mtime, content=f"chunk {i}", start_line=i + 1, end_line=i + 1)
        for i in range(count)
    ]


def make_executor(provider=None, batch_size: int = 100):
    store = InMemoryVectorStore()
    executor = BatchedEmbeddingExecutor(
        provider or LocalEmbeddingProvider(dimension=8),
        store,
        retry_policy=zero_delay_policy(),
        batch_size=batch_size,
    )
    return executor, store


def started_reporter(chunks: list[Chunk]) -> ProgressReporter:
    reporter = ProgressReporter()
    paths = sorted({chunk.path for chunk in chunks})
    reporter.start_run(paths)
    for path in paths:
        reporter.add_chunks(path, sum(1 for chunk in chunks if chunk.path == path))
    return reporter


class TestCheckContent:
    def test_rejects_empty_and_nul(self):
        assert check_content("") is not None
        assert check_content("   \n") is not None
        assert "NUL" in check_content("a\x00b")
        assert check_content("fine") is None


class TestBatchedEmbeddingExecutor:
    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            make_executor(batch_size=0)

    def test_records_carry_chunk_and_model_identity(self):
        executor, store = make_executor()
        chunks = make_chunks(3)

        report = run_async(executor.run(chunks))

        assert report.persisted == 3
        records = run_async(store.get_vectors_by_path("notes/a.md", "local-test-model"))
        assert sorted(r.start_line for r in records) == [1, 2, 3]
        assert all(r.mtime == 100.0 and r.dimension == 8 for r in records)

    def test_each_batch_is_persisted_separately(self):
        executor, store = make_executor(batch_size=2)

        run_async(executor.run(make_chunks(5)))

        assert [len(batch) for batch in store.insert_batches] == [2, 2, 1]

    def test_partial_batch_failure_persists_the_rest(self):
        chunks = make_chunks(100)
        provider = ScriptedEmbeddingProvider(
            dimension=8, failures={"chunk 42": InvalidContentError("too long")}
        )
        executor, store = make_executor(provider)

        report = run_async(executor.run(chunks))

        assert report.persisted == 99
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert (failure.path, failure.start_line, failure.kind) == ("notes/a.md", 43, "content")
        assert len(store.insert_batches) == 1

    def test_fully_failed_batch_aborts_after_earlier_batches_persist(self):
        provider = ScriptedEmbeddingProvider(dimension=8)
        chunks = make_chunks(2, path="a.md") + [
            Chunk(path="b.md", mtime=1.0, content=f"other {i}", start_line=1, end_line=1)
            for i in range(2)
        ]
        for chunk in chunks[2:]:
            provider.fail_always(chunk.content, InvalidContentError("rejected"))
        executor, store = make_executor(provider, batch_size=2)

        with pytest.raises(BatchEmbeddingError) as exc_info:
            run_async(executor.run(chunks))

        assert exc_info.value.batch_index == 1
        assert len(exc_info.value.failures) == 2
        assert run_async(store.get_indexed_paths("local-test-model")) == ["a.md"]

    def test_configuration_error_is_fatal(self):
        provider = ScriptedEmbeddingProvider(
            dimension=8, failures={"chunk 1": ProviderConfigurationError("bad API key")}
        )
        executor, store = make_executor(provider)

        with pytest.raises(ProviderConfigurationError, match="bad API key"):
            run_async(executor.run(make_chunks(3)))

        assert store.insert_batches == []

    def test_invalid_content_never_reaches_the_provider(self):
        provider = ScriptedEmbeddingProvider(dimension=8)
        executor, _ = make_executor(provider)
        chunks = make_chunks(1) + [
            Chunk(path="notes/a.md", mtime=1.0, content="bad\x00", start_line=9, end_line=9)
        ]

        report = run_async(executor.run(chunks))

        assert report.persisted == 1
        assert report.failures[0].kind == "content"
        assert provider.calls == ["chunk 0"]

    def test_rate_limit_sets_and_clears_waiting_flag(self):
        provider = ScriptedEmbeddingProvider(
            dimension=8, transient={"chunk 0": [RateLimitExceededError("429")]}
        )
        executor, _ = make_executor(provider)
        chunks = make_chunks(2)
        reporter = started_reporter(chunks)
        snapshots = []
        reporter.subscribe(snapshots.append)

        report = run_async(executor.run(chunks, reporter=reporter))

        assert report.persisted == 2
        assert any(s.waiting_for_rate_limit for s in snapshots)
        assert snapshots[-1].waiting_for_rate_limit is False

    def test_waiting_flag_drops_once_the_backoff_is_over(self):
        class ThrottledOnceProvider(LocalEmbeddingProvider):
            """Throttles "chunk 0" once; every other chunk answers slowly."""

            def __init__(self):
                super().__init__(dimension=8)
                self.throttled = False

            async def get_embedding(self, text):
                self.calls.append(text)
                if text == "chunk 0":
                    if not self.throttled:
                        self.throttled = True
                        raise RateLimitExceededError("429")
                else:
                    await asyncio.sleep(0.2)
                return text_to_vector(text, self.dimension)

        store = InMemoryVectorStore()
        executor = BatchedEmbeddingExecutor(
            ThrottledOnceProvider(),
            store,
            retry_policy=RetryPolicy(initial_delay=0.01, max_delay=0.01),
        )
        chunks = make_chunks(5)
        reporter = started_reporter(chunks)
        snapshots = []
        reporter.subscribe(snapshots.append)

        report = run_async(executor.run(chunks, reporter=reporter))

        assert report.persisted == 5
        assert snapshots[0].waiting_for_rate_limit is True
        embedded = [s for s in snapshots[1:] if s.completed_chunks > 0]
        assert [s.completed_chunks for s in embedded][:5] == [1, 2, 3, 4, 5]
        assert not any(s.waiting_for_rate_limit for s in embedded)

    def test_progress_completes_documents_and_folders(self):
        chunks = make_chunks(3, path="notes/a.md") + [
            Chunk(path="b.md", mtime=1.0, content="root note", start_line=1, end_line=1)
        ]
        executor, _ = make_executor(batch_size=2)
        reporter = started_reporter(chunks)
        snapshots = []
        reporter.subscribe(snapshots.append)

        run_async(executor.run(chunks, reporter=reporter))

        final = snapshots[-1]
        assert final.completed_chunks == 4
        assert final.completed_files == 2
        assert final.folder_progress["notes"].completed_chunks == 3
        assert final.folder_progress[""].completed_chunks == 4
        assert final.folder_progress[""].completed_files == 2
        for earlier, later in zip(snapshots, snapshots[1:]):
            assert later.completed_chunks >= earlier.completed_chunks

    def test_cancellation_before_batch(self):
        executor, store = make_executor(batch_size=1)
        cancel = CancellationSignal()
        cancel.cancel()

        with pytest.raises(IndexingCancelledError):
            run_async(executor.run(make_chunks(2), cancel=cancel))

        assert store.insert_batches == []

    def test_cancellation_between_batches_keeps_persisted_work(self):
        cancel = CancellationSignal()
        provider = ScriptedEmbeddingProvider(
            dimension=8,
            on_call=lambda text: cancel.cancel() if text == "chunk 1" else None,
        )
        executor, store = make_executor(provider, batch_size=1)

        with pytest.raises(IndexingCancelledError):
            run_async(executor.run(make_chunks(3), cancel=cancel))

        assert [len(batch) for batch in store.insert_batches] == [1, 1]
