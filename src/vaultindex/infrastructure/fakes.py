"""
Fake implementations for testing.

Provides in-memory implementations of infrastructure interfaces
for use in unit and integration tests without external dependencies.
"""

from __future__ import annotations

import asyncio
import hashlib
import math
from collections.abc import Callable
from pathlib import Path

from vaultindex.core.chunker import Document
from vaultindex.core.file_events import FileEvent
from vaultindex.infrastructure.document_source import (
    DocumentSourceError,
    DocumentSourceInterface,
)
from vaultindex.infrastructure.embedding import EmbeddingProviderInterface
from vaultindex.infrastructure.vector_store import (
    EmbeddingStats,
    SearchScope,
    SimilarityMatch,
    VectorRecord,
    VectorStoreError,
    VectorStoreInterface,
)


class InMemoryVectorStore(VectorStoreInterface):
    """
    In-memory vector store for testing.

    Records are bucketed by (model, dimension) and scored with a brute-force
    cosine similarity. Lifecycle calls are recorded so tests can assert on
    them.
    """

    def __init__(self, fail_on_save: Exception | None = None):
        self._buckets: dict[tuple[str, int], dict[str, list[VectorRecord]]] = {}
        self.save_calls = 0
        self.vacuum_calls = 0
        self.insert_batches: list[list[VectorRecord]] = []
        self.deleted_paths: list[str] = []
        self._fail_on_save = fail_on_save

    def _model_buckets(self, model: str) -> list[dict[str, list[VectorRecord]]]:
        return [bucket for (m, _), bucket in self._buckets.items() if m == model]

    async def get_vectors_by_path(self, path: str, model: str) -> list[VectorRecord]:
        records: list[VectorRecord] = []
        for bucket in self._model_buckets(model):
            records.extend(bucket.get(path, []))
        return records

    async def get_indexed_paths(self, model: str) -> list[str]:
        paths = set()
        for bucket in self._model_buckets(model):
            paths.update(p for p, records in bucket.items() if records)
        return sorted(paths)

    async def insert_vectors(self, records: list[VectorRecord]) -> None:
        for record in records:
            bucket = self._buckets.setdefault((record.model, record.dimension), {})
            bucket.setdefault(record.path, []).append(record)
        self.insert_batches.append(list(records))

    async def delete_vectors_for_paths(self, paths: list[str], model: str) -> None:
        for bucket in self._model_buckets(model):
            for path in paths:
                bucket.pop(path, None)
        self.deleted_paths.extend(paths)

    async def clear_all_vectors(self, model: str) -> None:
        for key in [k for k in self._buckets if k[0] == model]:
            del self._buckets[key]

    async def has_vectors_for_model(self, model: str) -> bool:
        return any(records for bucket in self._model_buckets(model) for records in bucket.values())

    async def similarity_search(
        self,
        query_vector: list[float],
        model: str,
        dimension: int,
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: SearchScope | None = None,
    ) -> list[SimilarityMatch]:
        if len(query_vector) != dimension:
            raise VectorStoreError(
                f"Query vector length {len(query_vector)} does not match dimension {dimension}"
            )
        if limit <= 0:
            return []

        matches = []
        for path, records in self._buckets.get((model, dimension), {}).items():
            if scope is not None and not scope.matches(path):
                continue
            for record in records:
                similarity = self._cosine_similarity(query_vector, record.embedding)
                if similarity >= min_similarity:
                    matches.append(SimilarityMatch.from_record(record, similarity))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def get_stats(self) -> list[EmbeddingStats]:
        stats = []
        for (model, dimension), bucket in sorted(self._buckets.items()):
            row_count = sum(len(records) for records in bucket.values())
            if row_count:
                stats.append(EmbeddingStats(model=model, row_count=row_count, dimension=dimension))
        return stats

    async def save(self) -> None:
        self.save_calls += 1
        if self._fail_on_save is not None:
            raise self._fail_on_save

    async def vacuum(self) -> None:
        self.vacuum_calls += 1
        for key in list(self._buckets):
            bucket = self._buckets[key]
            for path in [p for p, records in bucket.items() if not records]:
                del bucket[path]
            if not bucket:
                del self._buckets[key]

    async def record_count(self, model: str) -> int:
        total = 0
        for path in await self.get_indexed_paths(model):
            total += len(await self.get_vectors_by_path(path, model))
        return total

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Calculate cosine similarity between two vectors."""
        if len(a) != len(b):
            return 0.0

        dot_product = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(x * x for x in b))

        if norm_a == 0 or norm_b == 0:
            return 0.0

        return dot_product / (norm_a * norm_b)


def text_to_vector(text: str, dimension: int) -> list[float]:
    """
    Convert text to a deterministic unit vector.

    Uses SHA-256 of the text, re-hashed until ``dimension`` values are filled.
    Same text always produces the same embedding.
    """
    vector: list[float] = []
    hash_bytes = hashlib.sha256(text.encode("utf-8")).digest()

    while len(vector) < dimension:
        for byte in hash_bytes:
            if len(vector) >= dimension:
                break
            vector.append((byte / 127.5) - 1.0)
        if len(vector) < dimension:
            hash_bytes = hashlib.sha256(hash_bytes).digest()

    norm = math.sqrt(sum(v * v for v in vector))
    if norm > 0:
        vector = [v / norm for v in vector]
    return vector


class LocalEmbeddingProvider(EmbeddingProviderInterface):
    """
    Local embedding provider for testing.

    Returns deterministic vectors derived from the text hash.
    No API calls required.
    """

    def __init__(self, dimension: int = 16, model_id: str = "local-test-model"):
        self._dimension = dimension
        self._model_id = model_id
        self.calls: list[str] = []

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def dimension(self) -> int:
        return self._dimension

    async def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        return text_to_vector(text, self._dimension)

    def embed_sync(self, text: str) -> list[float]:
        """Synchronous embedding, convenient for building query vectors in tests."""
        return text_to_vector(text, self._dimension)


class ScriptedEmbeddingProvider(LocalEmbeddingProvider):
    """
    Embedding provider whose failures are scripted per text.

    Args:
        failures: Maps a text to the exception raised on every call for it
        transient: Maps a text to exceptions raised on its first calls, in
            order; later calls succeed
        delay: Seconds each call sleeps before answering
        on_call: Hook invoked with each text before it is answered
    """

    def __init__(
        self,
        dimension: int = 16,
        model_id: str = "local-test-model",
        failures: dict[str, Exception] | None = None,
        transient: dict[str, list[Exception]] | None = None,
        delay: float = 0.0,
        on_call: Callable[[str], None] | None = None,
    ):
        super().__init__(dimension=dimension, model_id=model_id)
        self._failures = dict(failures or {})
        self._transient = {text: list(errors) for text, errors in (transient or {}).items()}
        self._delay = delay
        self._on_call = on_call

    def fail_always(self, text: str, error: Exception) -> None:
        self._failures[text] = error

    async def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if self._on_call is not None:
            self._on_call(text)
        if self._delay:
            await asyncio.sleep(self._delay)
        if text in self._failures:
            raise self._failures[text]
        pending = self._transient.get(text)
        if pending:
            raise pending.pop(0)
        return text_to_vector(text, self._dimension)


class InMemoryDocumentSource(DocumentSourceInterface):
    """Document source backed by a dict of ``path -> (mtime, text)``."""

    def __init__(self, documents: dict[str, tuple[float, str]] | None = None):
        self._documents: dict[str, tuple[float, str]] = dict(documents or {})
        self._read_errors: dict[str, Exception] = {}
        self.list_calls = 0

    def set_document(self, path: str, mtime: float, text: str) -> None:
        self._documents[path] = (mtime, text)

    def remove_document(self, path: str) -> None:
        self._documents.pop(path, None)

    def fail_read(self, path: str, error: Exception) -> None:
        self._read_errors[path] = error

    async def list_documents(self) -> list[Document]:
        self.list_calls += 1
        return [
            Document(path=path, mtime=mtime)
            for path, (mtime, _) in sorted(self._documents.items())
        ]

    async def read_document(self, path: str) -> str:
        if path in self._read_errors:
            raise self._read_errors[path]
        if path not in self._documents:
            raise DocumentSourceError(f"No such document: {path}")
        return self._documents[path][1]

    async def exists(self, path: str) -> bool:
        return path in self._documents


class FakeFileWatcher:
    """
    Fake vault watcher for testing.

    Allows manual triggering of file events without actual file system monitoring.
    """

    def __init__(self, extensions: set[str] | None = None):
        self._extensions = extensions or {".md"}
        self._callback: Callable[[FileEvent], None] | None = None
        self._watch_path: Path | None = None
        self._running = False
        self._events: list[FileEvent] = []

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        if self._running:
            raise RuntimeError("Vault watcher is already running")
        self._watch_path = Path(path)
        self._callback = callback
        self._running = True

    def stop(self) -> None:
        self._running = False
        self._callback = None
        self._watch_path = None

    def is_running(self) -> bool:
        return self._running

    def trigger_event(self, event: FileEvent) -> None:
        """Simulate a vault change."""
        if not self._running:
            raise RuntimeError("Vault watcher is not running")
        self._events.append(event)
        if self._callback is not None:
            self._callback(event)

    def get_triggered_events(self) -> list[FileEvent]:
        return list(self._events)
