"""
Service Layer - Diff scanning, batched embedding, indexing, search, auto-update and ServicesContainer.
"""

from vaultindex.services.auto_update import (
    AutoUpdateError,
    AutoUpdateService,
    AutoUpdateStateFile,
    AutoUpdateStats,
)
from vaultindex.services.container import (
    ServicesContainer,
    create_services,
    retry_policy_from_config,
    update_options_from_config,
)
from vaultindex.services.diff_scanner import DiffScanner, ScanResult
from vaultindex.services.embedding_executor import BatchedEmbeddingExecutor
from vaultindex.services.indexing_models import (
    BatchEmbeddingError,
    ChunkFailure,
    EmbeddingReport,
    IndexingCancelledError,
    IndexingError,
    IndexingResult,
    IndexProgress,
    IndexUpdateOptions,
    NoEmbeddingsProducedError,
)
from vaultindex.services.indexing_service import IndexingService
from vaultindex.services.progress import ProgressObserver, ProgressReporter
from vaultindex.services.search_service import SearchOptions, SearchService

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    "retry_policy_from_config",
    "update_options_from_config",
    # Indexing
    "IndexingService",
    "IndexUpdateOptions",
    "IndexingResult",
    "IndexProgress",
    "ChunkFailure",
    "EmbeddingReport",
    "DiffScanner",
    "ScanResult",
    "BatchedEmbeddingExecutor",
    "ProgressReporter",
    "ProgressObserver",
    # Errors
    "IndexingError",
    "BatchEmbeddingError",
    "NoEmbeddingsProducedError",
    "IndexingCancelledError",
    # Search
    "SearchService",
    "SearchOptions",
    # Auto-update
    "AutoUpdateService",
    "AutoUpdateStats",
    "AutoUpdateStateFile",
    "AutoUpdateError",
]
