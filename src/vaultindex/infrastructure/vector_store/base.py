"""
Vector Store base types and interfaces.

Contains the abstract interface, record/result data classes, and exceptions
for vector stores. Records are always addressed by (path, model); similarity
queries additionally carry the model's dimension so vectors of different
sizes are never compared.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from vaultindex.core.path_filter import is_under_folder


class VectorStoreError(Exception):
    """Base exception for vector store errors."""

    pass


@dataclass
class VectorRecord:
    """A persisted chunk: position metadata, model identity and embedding."""

    path: str
    mtime: float
    content: str
    start_line: int
    end_line: int
    model: str
    dimension: int
    embedding: List[float]

    def __post_init__(self) -> None:
        if len(self.embedding) != self.dimension:
            raise VectorStoreError(
                f"Embedding length {len(self.embedding)} does not match dimension "
                f"{self.dimension} for {self.path}"
            )


@dataclass(frozen=True)
class SimilarityMatch:
    """A similarity query hit: the stored chunk without its embedding, plus the score."""

    path: str
    mtime: float
    content: str
    start_line: int
    end_line: int
    model: str
    dimension: int
    similarity: float

    @classmethod
    def from_record(cls, record: VectorRecord, similarity: float) -> "SimilarityMatch":
        return cls(
            path=record.path,
            mtime=record.mtime,
            content=record.content,
            start_line=record.start_line,
            end_line=record.end_line,
            model=record.model,
            dimension=record.dimension,
            similarity=similarity,
        )


@dataclass(frozen=True)
class SearchScope:
    """
    Allow-list restricting a similarity query.

    A record matches when its path is one of ``files`` or lies under one of
    ``folders`` (``""`` is the whole vault). A scope with no files and no
    folders places no restriction.
    """

    files: frozenset[str] = field(default_factory=frozenset)
    folders: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, files=(), folders=()) -> "SearchScope":
        return cls(files=frozenset(files), folders=frozenset(folders))

    @property
    def is_unrestricted(self) -> bool:
        return not self.files and not self.folders

    def matches(self, path: str) -> bool:
        if self.is_unrestricted:
            return True
        if path in self.files:
            return True
        return any(is_under_folder(path, folder) for folder in self.folders)


@dataclass(frozen=True)
class EmbeddingStats:
    """Row count for one embedding model."""

    model: str
    row_count: int
    dimension: Optional[int] = None


class VectorStoreInterface(ABC):
    """Abstract interface for vector stores."""

    @abstractmethod
    async def get_vectors_by_path(self, path: str, model: str) -> List[VectorRecord]:
        """Return all records stored for ``path`` under ``model``."""
        pass

    @abstractmethod
    async def get_indexed_paths(self, model: str) -> List[str]:
        """Return every distinct path that has records under ``model``."""
        pass

    @abstractmethod
    async def insert_vectors(self, records: List[VectorRecord]) -> None:
        """Insert a batch of records."""
        pass

    @abstractmethod
    async def delete_vectors_for_paths(self, paths: List[str], model: str) -> None:
        """Delete every record of ``paths`` under ``model``."""
        pass

    @abstractmethod
    async def clear_all_vectors(self, model: str) -> None:
        """Delete every record stored under ``model``."""
        pass

    @abstractmethod
    async def has_vectors_for_model(self, model: str) -> bool:
        pass

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: List[float],
        model: str,
        dimension: int,
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[SearchScope] = None,
    ) -> List[SimilarityMatch]:
        """
        Find the records most similar to ``query_vector``.

        Args:
            query_vector: Query embedding (length must equal ``dimension``)
            model: Embedding model id the query was produced with
            dimension: Declared dimension of that model
            min_similarity: Cosine similarity threshold (inclusive)
            limit: Maximum results to return
            scope: Optional allow-list of files and folders

        Returns:
            Matches sorted by similarity descending, without embeddings
        """
        pass

    @abstractmethod
    async def get_stats(self) -> List[EmbeddingStats]:
        """Return per-model row counts."""
        pass

    async def save(self) -> None:
        """Durably persist pending state (optional)."""
        pass

    async def vacuum(self) -> None:
        """Reclaim space after large deletions (optional)."""
        pass

    async def close(self) -> None:
        """Release connections (optional)."""
        pass
