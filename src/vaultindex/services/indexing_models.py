"""
Indexing Service data models.

Contains options, progress snapshots, results and errors of index updates.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

from vaultindex.core.folder_progress import FolderProgress


@dataclass
class IndexUpdateOptions:
    """Options for one index update run."""

    chunk_size: int = 1000
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    reindex_all: bool = False
    chunk_overlap: Optional[int] = None


@dataclass(frozen=True)
class IndexProgress:
    """
    Immutable snapshot of an indexing run, as delivered to progress observers.

    ``folder_progress`` is a read-only mapping of folder path (``""`` is the
    vault root) to rolled-up counters.
    """

    total_files: int = 0
    completed_files: int = 0
    total_chunks: int = 0
    completed_chunks: int = 0
    current_file: Optional[str] = None
    current_folder: Optional[str] = None
    folder_progress: Mapping[str, FolderProgress] = field(
        default_factory=lambda: MappingProxyType({})
    )
    new_files_count: int = 0
    updated_files_count: int = 0
    removed_files_count: int = 0
    waiting_for_rate_limit: bool = False


@dataclass(frozen=True)
class ChunkFailure:
    """A chunk (or whole document) that could not be indexed."""

    path: str
    error: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    kind: Optional[str] = None

    def describe(self) -> str:
        if self.start_line is not None:
            return f"{self.path}:{self.start_line}-{self.end_line}: {self.error}"
        return f"{self.path}: {self.error}"


@dataclass
class EmbeddingReport:
    """Outcome of running the batched embedding executor."""

    persisted: int = 0
    failures: list[ChunkFailure] = field(default_factory=list)


@dataclass
class IndexingResult:
    """Result of an indexing operation."""

    total_files: int = 0
    total_chunks: int = 0
    new_files: int = 0
    updated_files: int = 0
    removed_files: int = 0
    persisted_chunks: int = 0
    failures: list[ChunkFailure] = field(default_factory=list)
    duration_seconds: float = 0.0
    skipped: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def failure_summary(self, max_details: Optional[int] = None) -> str:
        """Count plus detail list, suitable for a single user notification."""
        if not self.failures:
            return "No failures"
        shown = self.failures if max_details is None else self.failures[:max_details]
        lines = [f"Failed to index {len(self.failures)} chunk(s) or file(s):"]
        lines.extend(f"  - {failure.describe()}" for failure in shown)
        hidden = len(self.failures) - len(shown)
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")
        return "\n".join(lines)


class IndexingError(Exception):
    """Base exception for indexing runs."""

    pass


class BatchEmbeddingError(IndexingError):
    """Every chunk of one batch failed; the run is aborted."""

    def __init__(self, message: str, batch_index: int, failures: list[ChunkFailure]):
        self.batch_index = batch_index
        self.failures = failures
        super().__init__(message)


class NoEmbeddingsProducedError(IndexingError):
    """A run produced no embeddings and the model has no prior index to fall back on."""

    def __init__(self, message: str, failures: Optional[list[ChunkFailure]] = None):
        self.failures = failures or []
        super().__init__(message)


class IndexingCancelledError(IndexingError):
    """The run was cancelled by its caller."""

    pass
