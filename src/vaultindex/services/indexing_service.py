"""
Indexing Service for vaultindex.

Coordinates an index update: deletion detection and diff scanning, chunking,
progress seeding, batched embedding with incremental persistence, and the
durable save that closes every run.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Optional

from vaultindex.core.cancellation import CancellationSignal, OperationCancelledError
from vaultindex.core.chunker import Chunk, ChunkerConfig, ChunkerInterface, create_chunker
from vaultindex.core.path_filter import PathFilter
from vaultindex.infrastructure.document_source import DocumentSourceInterface
from vaultindex.infrastructure.embedding import EmbeddingProviderInterface, RetryPolicy
from vaultindex.infrastructure.vector_store import (
    EmbeddingStats,
    SimilarityMatch,
    VectorStoreInterface,
)
from vaultindex.services.diff_scanner import DiffScanner, ScanResult
from vaultindex.services.embedding_executor import BatchedEmbeddingExecutor
from vaultindex.services.indexing_models import (
    ChunkFailure,
    IndexingCancelledError,
    IndexingResult,
    IndexUpdateOptions,
    NoEmbeddingsProducedError,
)
from vaultindex.services.progress import ProgressCallback, ProgressObserver, ProgressReporter
from vaultindex.services.search_service import SearchOptions, SearchService

logger = logging.getLogger(__name__)


ChunkerFactory = Callable[[ChunkerConfig], ChunkerInterface]


class IndexingService:
    """
    Service for keeping a vault's vector index in sync with its notes.

    Runs are serialized by a lock owned by the service: an update or clear
    waits for the active one to finish before it starts.
    """

    def __init__(
        self,
        provider: EmbeddingProviderInterface,
        vector_store: VectorStoreInterface,
        document_source: DocumentSourceInterface,
        chunker_factory: Optional[ChunkerFactory] = None,
        batch_size: int = 100,
        retry_policy: Optional[RetryPolicy] = None,
        call_timeout: Optional[float] = None,
        search_service: Optional[SearchService] = None,
    ):
        """
        Initialize the indexing service.

        Args:
            provider: Embedding provider; its model id keys every record
            vector_store: Store for vector records
            document_source: Lists and reads the vault's documents
            chunker_factory: Builds a chunker per run from the run's options
                (default: create_chunker)
            batch_size: Chunks embedded concurrently per batch
            retry_policy: Backoff policy for rate-limited calls
            call_timeout: Optional timeout in seconds per embedding call
            search_service: Search service to delegate queries to
        """
        self._provider = provider
        self._vector_store = vector_store
        self._document_source = document_source
        self._chunker_factory = chunker_factory or create_chunker
        self._scanner = DiffScanner(document_source, vector_store)
        self._executor = BatchedEmbeddingExecutor(
            provider,
            vector_store,
            retry_policy=retry_policy,
            batch_size=batch_size,
            call_timeout=call_timeout,
        )
        self._search_service = search_service or SearchService(vector_store, provider)
        self._lock = asyncio.Lock()

    @property
    def model_id(self) -> str:
        return self._provider.model_id

    @property
    def is_running(self) -> bool:
        """True while an update or clear holds the run lock."""
        return self._lock.locked()

    async def update_index(
        self,
        options: Optional[IndexUpdateOptions] = None,
        on_progress: Optional[ProgressObserver | ProgressCallback] = None,
        cancel: Optional[CancellationSignal] = None,
    ) -> IndexingResult:
        """
        Bring the index up to date with the vault.

        With ``options.reindex_all`` every filtered document is re-embedded
        after the model's records are cleared. Otherwise records of deleted
        documents are removed and only new or modified documents are
        re-embedded.

        Args:
            options: Chunk size, include/exclude patterns and rebuild flag
            on_progress: Observer or callable receiving IndexProgress snapshots
            cancel: Optional cancellation signal for the run

        Returns:
            IndexingResult with counts and per-chunk failures

        Raises:
            ProviderConfigurationError: The embedding provider is misconfigured
            BatchEmbeddingError: Every chunk of a batch failed
            NoEmbeddingsProducedError: Nothing could be chunked and the model
                has no existing index
            IndexingCancelledError: The run was cancelled
        """
        options = options or IndexUpdateOptions()
        reporter = ProgressReporter()
        if on_progress is not None:
            reporter.subscribe(on_progress)

        async with self._lock:
            try:
                return await self._run_update(options, reporter, cancel)
            finally:
                await self._save()

    async def _run_update(
        self,
        options: IndexUpdateOptions,
        reporter: ProgressReporter,
        cancel: Optional[CancellationSignal],
    ) -> IndexingResult:
        start_time = time.time()
        model = self._provider.model_id
        result = IndexingResult()

        # Invalid chunking options must fail before anything is deleted.
        chunker = self._chunker_factory(
            ChunkerConfig(chunk_size=options.chunk_size, chunk_overlap=options.chunk_overlap)
        )
        path_filter = PathFilter(options.include_patterns, options.exclude_patterns)

        logger.info(
            "Index update started",
            extra={"model": model, "reindex_all": options.reindex_all},
        )

        live = await self._scanner.snapshot()
        if options.reindex_all:
            scan = await self._scanner.select(model, path_filter, reindex_all=True, live=live)
            await self._vector_store.clear_all_vectors(model)
        else:
            removed = await self._scanner.remove_deleted(model, live=live)
            scan = await self._scanner.select(model, path_filter, live=live)
            scan.removed_paths = removed
            if scan.documents:
                await self._vector_store.delete_vectors_for_paths(
                    [doc.path for doc in scan.documents], model
                )
        result.removed_files = len(scan.removed_paths)

        if not scan.documents:
            logger.info(
                "Index is up to date; nothing to embed",
                extra={"model": model, "removed_files": result.removed_files},
            )
            result.skipped = True
            result.duration_seconds = time.time() - start_time
            return result

        reporter.start_run(
            [doc.path for doc in scan.documents],
            new_files=len(scan.new_paths),
            updated_files=len(scan.updated_paths),
            removed_files=result.removed_files,
        )
        chunks = await self._chunk_documents(scan, chunker, reporter, result, cancel)

        chunked_paths = {chunk.path for chunk in chunks}
        result.total_files = len(scan.documents)
        result.total_chunks = len(chunks)
        result.new_files = sum(1 for path in scan.new_paths if path in chunked_paths)
        result.updated_files = sum(1 for path in scan.updated_paths if path in chunked_paths)
        reporter.set_counts(result.new_files, result.updated_files, result.removed_files)

        if not chunks:
            if await self._vector_store.has_vectors_for_model(model):
                logger.warning(
                    "No chunks produced for the pending documents; keeping the existing index",
                    extra={"model": model, "failed": len(result.failures)},
                )
                result.skipped = True
                result.duration_seconds = time.time() - start_time
                return result
            raise NoEmbeddingsProducedError(
                f"No embeddings were produced for {len(scan.documents)} document(s) "
                f"and model '{model}' has no existing index",
                failures=result.failures,
            )

        reporter.emit()
        report = await self._executor.run(chunks, reporter=reporter, cancel=cancel)
        result.persisted_chunks = report.persisted
        result.failures.extend(report.failures)
        result.duration_seconds = time.time() - start_time

        logger.info(
            "Index update completed",
            extra={
                "model": model,
                "total_files": result.total_files,
                "total_chunks": result.total_chunks,
                "persisted_chunks": result.persisted_chunks,
                "failed": result.failed_count,
                "duration_seconds": result.duration_seconds,
            },
        )
        return result

    async def _chunk_documents(
        self,
        scan: ScanResult,
        chunker: ChunkerInterface,
        reporter: ProgressReporter,
        result: IndexingResult,
        cancel: Optional[CancellationSignal],
    ) -> list[Chunk]:
        """Read and chunk every selected document, collecting per-file failures."""
        chunks: list[Chunk] = []
        for doc in scan.documents:
            if cancel is not None and cancel.is_cancelled:
                raise IndexingCancelledError("Indexing cancelled while chunking documents")
            reporter.begin_document(doc.path)
            reporter.emit()

            try:
                text = await self._document_source.read_document(doc.path)
                doc_chunks = chunker.chunk(doc, text)
            except OperationCancelledError as e:
                raise IndexingCancelledError("Indexing cancelled while reading documents") from e
            except Exception as e:
                logger.error(f"Failed to process {doc.path}: {e}")
                result.failures.append(ChunkFailure(path=doc.path, error=str(e) or type(e).__name__))
                reporter.complete_document(doc.path)
                continue

            if not doc_chunks:
                logger.debug(f"No content to index in {doc.path}")
                reporter.complete_document(doc.path)
                continue

            reporter.add_chunks(doc.path, len(doc_chunks))
            chunks.extend(doc_chunks)
        return chunks

    async def clear(self, model_id: Optional[str] = None) -> None:
        """
        Delete every record of an embedding model and reclaim space.

        Args:
            model_id: Model to clear; defaults to the provider's model
        """
        model = model_id or self._provider.model_id
        async with self._lock:
            try:
                await self._vector_store.clear_all_vectors(model)
                await self._vector_store.vacuum()
                logger.info(f"Cleared index for model '{model}'", extra={"model": model})
            finally:
                await self._save()

    async def _save(self) -> None:
        try:
            await self._vector_store.save()
        except Exception as e:
            logger.error(f"Failed to save vector store: {e}", exc_info=True)

    async def search(
        self,
        query_vector: list[float],
        options: Optional[SearchOptions] = None,
    ) -> list[SimilarityMatch]:
        """Similarity search with the provider's model identity."""
        return await self._search_service.search(
            query_vector, options, model=self._provider.model_info
        )

    async def search_text(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> list[SimilarityMatch]:
        return await self._search_service.search_text(query, options)

    async def get_stats(self) -> list[EmbeddingStats]:
        """Return per-model row counts of the store."""
        return await self._vector_store.get_stats()
