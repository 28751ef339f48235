"""
Core Layer - Configuration, chunking, path filtering, folder progress and change events.
"""

from vaultindex.core.cancellation import CancellationSignal, OperationCancelledError
from vaultindex.core.chunker import (
    Chunk,
    ChunkerConfig,
    ChunkerInterface,
    Document,
    MarkdownChunker,
    chunk_document,
    create_chunker,
    sanitize_content,
)
from vaultindex.core.config import (
    AutoUpdateConfig,
    EmbeddingConfig,
    IndexingConfig,
    LoggingConfig,
    RetryConfig,
    SearchConfig,
    VaultIndexConfig,
    VectorStoreConfig,
    load_config,
)
from vaultindex.core.debouncer import Debouncer
from vaultindex.core.file_events import DebouncedBatch, FileEvent, FileEventType
from vaultindex.core.folder_progress import FolderProgress, FolderProgressTree
from vaultindex.core.path_filter import (
    PathFilter,
    ancestor_folders,
    folder_of,
    folder_paths_to_include_patterns,
    include_patterns_to_folder_paths,
    is_under_folder,
    list_folder_paths,
)

__all__ = [
    # Config
    "VaultIndexConfig",
    "EmbeddingConfig",
    "VectorStoreConfig",
    "IndexingConfig",
    "RetryConfig",
    "SearchConfig",
    "AutoUpdateConfig",
    "LoggingConfig",
    "load_config",
    # Chunker
    "Document",
    "Chunk",
    "ChunkerConfig",
    "ChunkerInterface",
    "MarkdownChunker",
    "chunk_document",
    "create_chunker",
    "sanitize_content",
    # Paths
    "PathFilter",
    "folder_of",
    "ancestor_folders",
    "is_under_folder",
    "list_folder_paths",
    "folder_paths_to_include_patterns",
    "include_patterns_to_folder_paths",
    # Progress
    "FolderProgress",
    "FolderProgressTree",
    # Cancellation
    "CancellationSignal",
    "OperationCancelledError",
    # Change events
    "FileEvent",
    "FileEventType",
    "DebouncedBatch",
    "Debouncer",
]
