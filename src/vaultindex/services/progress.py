"""
Progress channel for indexing runs.

The ProgressReporter owns every mutable counter of a run (global file and
chunk counts, the folder rollup tree, the current file) and publishes
immutable IndexProgress snapshots to its observers. Observers never see the
live state and cannot break the run: their exceptions are logged and dropped.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Optional, Protocol, Union, runtime_checkable

from vaultindex.core.folder_progress import FolderProgressTree
from vaultindex.core.path_filter import folder_of
from vaultindex.services.indexing_models import IndexProgress

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressObserver(Protocol):
    """Receives progress snapshots during an indexing run."""

    def on_progress(self, progress: IndexProgress) -> None:
        ...


ProgressCallback = Callable[[IndexProgress], None]


class ProgressReporter:
    """
    Mutable progress state of one indexing run, published as snapshots.

    Chunk counts are tracked at two granularities: the global
    ``completed_chunks`` advances per embedded chunk, while the folder tree
    advances when a batch is persisted.
    The rate-limit flag is raised while at least one chunk is sleeping out a
    backoff.
    """

    def __init__(self) -> None:
        self._observers: list[ProgressCallback] = []
        self._tree = FolderProgressTree()
        self._total_files = 0
        self._completed_files = 0
        self._total_chunks = 0
        self._completed_chunks = 0
        self._current_file: Optional[str] = None
        self._current_folder: Optional[str] = None
        self._new_files = 0
        self._updated_files = 0
        self._removed_files = 0
        self._backing_off = 0

    def subscribe(self, observer: Union[ProgressObserver, ProgressCallback]) -> None:
        """Register a ProgressObserver or a plain callable."""
        if isinstance(observer, ProgressObserver):
            self._observers.append(observer.on_progress)
        else:
            self._observers.append(observer)

    def start_run(
        self,
        paths: Iterable[str],
        new_files: int = 0,
        updated_files: int = 0,
        removed_files: int = 0,
    ) -> None:
        """
        Reset the counters for the documents about to be indexed.

        Every document's folder and ancestors get a node, and each document is
        seeded as one expected file. Chunk totals are seeded later, once the
        document has been chunked.
        """
        paths = list(paths)
        self._tree = FolderProgressTree.from_paths(paths)
        for path in paths:
            self._tree.seed(folder_of(path), files=1)
        self._total_files = len(paths)
        self._completed_files = 0
        self._total_chunks = 0
        self._completed_chunks = 0
        self._current_file = None
        self._current_folder = None
        self._backing_off = 0
        self.set_counts(new_files, updated_files, removed_files)

    def set_counts(self, new_files: int, updated_files: int, removed_files: int) -> None:
        self._new_files = new_files
        self._updated_files = updated_files
        self._removed_files = removed_files

    def begin_document(self, path: str) -> None:
        self._current_file = path
        self._current_folder = folder_of(path)

    def add_chunks(self, path: str, count: int) -> None:
        """Seed the expected chunk count of one chunked document."""
        if count <= 0:
            return
        self._total_chunks += count
        self._tree.seed(folder_of(path), chunks=count)

    def complete_document(self, path: str) -> None:
        """Mark one document as fully processed."""
        self._completed_files += 1
        self._tree.advance(folder_of(path), files=1)

    def chunk_embedded(self, path: str) -> None:
        """Record one successful embedding and publish a snapshot."""
        self._completed_chunks += 1
        self._current_file = path
        self._current_folder = folder_of(path)
        self.emit()

    def waiting_for_rate_limit(self) -> None:
        """Publish a snapshot flagged as paused on a rate-limit backoff."""
        self._backing_off += 1
        self.emit()

    def rate_limit_wait_over(self) -> None:
        """Note that one backoff wait has ended; the flag drops with the last one."""
        self._backing_off = max(0, self._backing_off - 1)

    def batch_persisted(self, persisted_by_path: dict[str, int]) -> None:
        """Advance folder rollups for a persisted batch and publish a snapshot."""
        for path, count in persisted_by_path.items():
            self._tree.advance(folder_of(path), chunks=count)
        self.emit()

    @property
    def tree(self) -> FolderProgressTree:
        return self._tree

    def snapshot(self) -> IndexProgress:
        return IndexProgress(
            total_files=self._total_files,
            completed_files=self._completed_files,
            total_chunks=self._total_chunks,
            completed_chunks=self._completed_chunks,
            current_file=self._current_file,
            current_folder=self._current_folder,
            folder_progress=self._tree.snapshot(),
            new_files_count=self._new_files,
            updated_files_count=self._updated_files,
            removed_files_count=self._removed_files,
            waiting_for_rate_limit=self._backing_off > 0,
        )

    def emit(self) -> None:
        """Publish the current snapshot to every observer."""
        if not self._observers:
            return
        progress = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(progress)
            except Exception as e:
                logger.warning(f"Progress observer failed: {e}", exc_info=True)
