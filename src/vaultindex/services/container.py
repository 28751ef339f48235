"""
Centralized services container module for vaultindex.

Builds every collaborator of an indexing session from configuration so the
CLI (and any other front-end) wires the same objects the same way.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vaultindex.core.config import VaultIndexConfig, load_config
from vaultindex.infrastructure import (
    DocumentSourceInterface,
    EmbeddingProviderInterface,
    RetryPolicy,
    VaultDocumentSource,
    VaultWatcher,
    VectorStoreInterface,
    create_embedding_provider,
    create_vector_store,
)
from vaultindex.services.auto_update import AutoUpdateService, AutoUpdateStateFile
from vaultindex.services.indexing_models import IndexUpdateOptions
from vaultindex.services.indexing_service import IndexingService
from vaultindex.services.search_service import SearchOptions, SearchService


def retry_policy_from_config(config: VaultIndexConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry.max_attempts,
        initial_delay=config.retry.initial_delay,
        multiplier=config.retry.multiplier,
        max_delay=config.retry.max_delay,
    )


def update_options_from_config(
    config: VaultIndexConfig, reindex_all: bool = False
) -> IndexUpdateOptions:
    return IndexUpdateOptions(
        chunk_size=config.indexing.chunk_size,
        chunk_overlap=config.indexing.chunk_overlap,
        include_patterns=list(config.indexing.include_patterns),
        exclude_patterns=list(config.indexing.exclude_patterns),
        reindex_all=reindex_all,
    )


@dataclass
class ServicesContainer:
    """
    Container holding all shared service instances of one vault.

    Attributes:
        config: Application configuration
        vault_path: Root directory of the vault
        provider: Embedding provider
        vector_store: Vector store backend
        document_source: Reads the vault's notes
        search_service: Similarity queries
        indexing_service: Index updates and clears
    """

    config: VaultIndexConfig
    vault_path: Path
    provider: EmbeddingProviderInterface
    vector_store: VectorStoreInterface
    document_source: DocumentSourceInterface
    search_service: SearchService
    indexing_service: IndexingService

    def update_options(self, reindex_all: bool = False) -> IndexUpdateOptions:
        return update_options_from_config(self.config, reindex_all=reindex_all)

    def search_options(self, limit: Optional[int] = None, **kwargs) -> SearchOptions:
        return SearchOptions(
            min_similarity=kwargs.get("min_similarity", self.config.search.min_similarity),
            limit=limit if limit is not None else self.config.search.limit,
            scope=kwargs.get("scope"),
        )

    def create_auto_update(self) -> AutoUpdateService:
        """Build an auto-update service watching this vault."""
        return AutoUpdateService(
            self.indexing_service,
            self.update_options(),
            self.config.auto_update,
            watcher=VaultWatcher(),
            state_file=self.auto_update_state_file(),
        )

    def auto_update_state_file(self) -> AutoUpdateStateFile:
        """State file of the auto-update cool-down, resolved against the vault."""
        path = Path(self.config.auto_update.state_path)
        if not path.is_absolute():
            path = self.vault_path / path
        return AutoUpdateStateFile(path)

    async def close(self) -> None:
        await self.provider.close()
        await self.vector_store.close()


def create_services(
    vault_path: Path,
    config: Optional[VaultIndexConfig] = None,
    config_path: Optional[Path] = None,
) -> ServicesContainer:
    """
    Create and initialize all services for a vault.

    Args:
        vault_path: Root directory of the vault
        config: Ready configuration; loaded from ``config_path`` (or defaults
            and environment variables) when None
        config_path: Optional path to a YAML or JSON configuration file

    Returns:
        ServicesContainer with all initialized services.

    Raises:
        ProviderConfigurationError: If the embedding provider settings are incomplete
        ValueError: If the vector store backend is unknown
    """
    if config is None:
        config = load_config(config_path)
    vault_path = Path(vault_path).resolve()

    provider = create_embedding_provider(config.embedding)
    vector_store = create_vector_store(config.vector_store, base_dir=vault_path)
    document_source = VaultDocumentSource(vault_path)
    search_service = SearchService(vector_store, provider)
    indexing_service = IndexingService(
        provider,
        vector_store,
        document_source,
        batch_size=config.indexing.batch_size,
        retry_policy=retry_policy_from_config(config),
        call_timeout=config.indexing.call_timeout,
        search_service=search_service,
    )

    return ServicesContainer(
        config=config,
        vault_path=vault_path,
        provider=provider,
        vector_store=vector_store,
        document_source=document_source,
        search_service=search_service,
        indexing_service=indexing_service,
    )
