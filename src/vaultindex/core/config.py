"""
Configuration module for vaultindex.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

_defaults_cache: dict[str, Any] | None = None


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section) or {}
    value = section_defaults.get(key, fallback)
    # Lists are copied so instances never share the cached defaults.
    if isinstance(value, list):
        return list(value)
    return value


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider."""

    api_url: str = field(
        default_factory=lambda: _get_default(
            "embedding", "api_url", "https://api.openai.com/v1/embeddings"
        )
    )
    api_key: str = field(default_factory=lambda: _get_default("embedding", "api_key", ""))
    model: str = field(
        default_factory=lambda: _get_default("embedding", "model", "text-embedding-3-small")
    )
    dimension: int = field(default_factory=lambda: _get_default("embedding", "dimension", 1536))
    timeout: float = field(default_factory=lambda: _get_default("embedding", "timeout", 30.0))


@dataclass
class VectorStoreConfig:
    """Configuration for the vector store backend."""

    backend: str = field(default_factory=lambda: _get_default("vector_store", "backend", "local"))
    path: str = field(
        default_factory=lambda: _get_default(
            "vector_store", "path", ".vaultindex/qdrant"
        )
    )
    host: str = field(default_factory=lambda: _get_default("vector_store", "host", "localhost"))
    port: int = field(default_factory=lambda: _get_default("vector_store", "port", 6333))
    url: str = field(default_factory=lambda: _get_default("vector_store", "url", ""))
    api_key: str = field(default_factory=lambda: _get_default("vector_store", "api_key", ""))
    collection_prefix: str = field(
        default_factory=lambda: _get_default("vector_store", "collection_prefix", "vaultindex")
    )


@dataclass
class IndexingConfig:
    """Configuration for the indexing process."""

    chunk_size: int = field(default_factory=lambda: _get_default("indexing", "chunk_size", 1000))
    chunk_overlap: Optional[int] = field(
        default_factory=lambda: _get_default("indexing", "chunk_overlap", None)
    )
    batch_size: int = field(default_factory=lambda: _get_default("indexing", "batch_size", 100))
    call_timeout: Optional[float] = field(
        default_factory=lambda: _get_default("indexing", "call_timeout", None)
    )
    include_patterns: list[str] = field(
        default_factory=lambda: _get_default("indexing", "include_patterns", [])
    )
    exclude_patterns: list[str] = field(
        default_factory=lambda: _get_default("indexing", "exclude_patterns", [])
    )


@dataclass
class RetryConfig:
    """Configuration for embedding retries on rate limits."""

    max_attempts: int = field(default_factory=lambda: _get_default("retry", "max_attempts", 8))
    initial_delay: float = field(
        default_factory=lambda: _get_default("retry", "initial_delay", 2.0)
    )
    multiplier: float = field(default_factory=lambda: _get_default("retry", "multiplier", 2.0))
    max_delay: float = field(default_factory=lambda: _get_default("retry", "max_delay", 60.0))


@dataclass
class SearchConfig:
    """Configuration for similarity queries."""

    min_similarity: float = field(
        default_factory=lambda: _get_default("search", "min_similarity", 0.0)
    )
    limit: int = field(default_factory=lambda: _get_default("search", "limit", 10))


@dataclass
class AutoUpdateConfig:
    """Configuration for re-indexing when vault files change."""

    enabled: bool = field(default_factory=lambda: _get_default("auto_update", "enabled", False))
    interval_hours: float = field(
        default_factory=lambda: _get_default("auto_update", "interval_hours", 24.0)
    )
    debounce_ms: int = field(
        default_factory=lambda: _get_default("auto_update", "debounce_ms", 3000)
    )
    max_wait_ms: int = field(
        default_factory=lambda: _get_default("auto_update", "max_wait_ms", 60000)
    )
    state_path: str = field(
        default_factory=lambda: _get_default(
            "auto_update", "state_path", ".vaultindex/auto_update.json"
        )
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


_SECTIONS: dict[str, type] = {
    "embedding": EmbeddingConfig,
    "vector_store": VectorStoreConfig,
    "indexing": IndexingConfig,
    "retry": RetryConfig,
    "search": SearchConfig,
    "auto_update": AutoUpdateConfig,
    "logging": LoggingConfig,
}


@dataclass
class VaultIndexConfig:
    """Main configuration class for vaultindex."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    auto_update: AutoUpdateConfig = field(default_factory=AutoUpdateConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "VaultIndexConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            VaultIndexConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported or a section has unknown keys
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "VaultIndexConfig":
        """Create VaultIndexConfig from a dictionary."""
        config = cls()

        for section, section_cls in _SECTIONS.items():
            values = data.get(section)
            if values is None:
                continue
            known = {f.name for f in fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in config section '{section}': {', '.join(sorted(unknown))}"
                )
            setattr(config, section, section_cls(**values))

        return config

    def apply_env_overrides(self) -> "VaultIndexConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: VAULTINDEX_<SECTION>_<KEY>
        Examples:
            - VAULTINDEX_EMBEDDING_API_KEY
            - VAULTINDEX_VECTOR_STORE_BACKEND
            - VAULTINDEX_INDEXING_CHUNK_SIZE
            - VAULTINDEX_INDEXING_EXCLUDE_PATTERNS (comma-separated)
            - VAULTINDEX_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            # Embedding config
            "VAULTINDEX_EMBEDDING_API_KEY": ("embedding", "api_key", str),
            "VAULTINDEX_EMBEDDING_API_URL": ("embedding", "api_url", str),
            "VAULTINDEX_EMBEDDING_MODEL": ("embedding", "model", str),
            "VAULTINDEX_EMBEDDING_DIMENSION": ("embedding", "dimension", int),
            "VAULTINDEX_EMBEDDING_TIMEOUT": ("embedding", "timeout", float),
            # Vector store config
            "VAULTINDEX_VECTOR_STORE_BACKEND": ("vector_store", "backend", str),
            "VAULTINDEX_VECTOR_STORE_PATH": ("vector_store", "path", str),
            "VAULTINDEX_VECTOR_STORE_HOST": ("vector_store", "host", str),
            "VAULTINDEX_VECTOR_STORE_PORT": ("vector_store", "port", int),
            "VAULTINDEX_VECTOR_STORE_URL": ("vector_store", "url", str),
            "VAULTINDEX_VECTOR_STORE_API_KEY": ("vector_store", "api_key", str),
            "VAULTINDEX_VECTOR_STORE_COLLECTION_PREFIX": ("vector_store", "collection_prefix", str),
            # Indexing config
            "VAULTINDEX_INDEXING_CHUNK_SIZE": ("indexing", "chunk_size", int),
            "VAULTINDEX_INDEXING_CHUNK_OVERLAP": ("indexing", "chunk_overlap", int),
            "VAULTINDEX_INDEXING_BATCH_SIZE": ("indexing", "batch_size", int),
            "VAULTINDEX_INDEXING_CALL_TIMEOUT": ("indexing", "call_timeout", float),
            "VAULTINDEX_INDEXING_INCLUDE_PATTERNS": ("indexing", "include_patterns", _parse_list),
            "VAULTINDEX_INDEXING_EXCLUDE_PATTERNS": ("indexing", "exclude_patterns", _parse_list),
            # Retry config
            "VAULTINDEX_RETRY_MAX_ATTEMPTS": ("retry", "max_attempts", int),
            "VAULTINDEX_RETRY_INITIAL_DELAY": ("retry", "initial_delay", float),
            "VAULTINDEX_RETRY_MULTIPLIER": ("retry", "multiplier", float),
            "VAULTINDEX_RETRY_MAX_DELAY": ("retry", "max_delay", float),
            # Search config
            "VAULTINDEX_SEARCH_MIN_SIMILARITY": ("search", "min_similarity", float),
            "VAULTINDEX_SEARCH_LIMIT": ("search", "limit", int),
            # Auto-update config
            "VAULTINDEX_AUTO_UPDATE_ENABLED": ("auto_update", "enabled", _parse_bool),
            "VAULTINDEX_AUTO_UPDATE_INTERVAL_HOURS": ("auto_update", "interval_hours", float),
            "VAULTINDEX_AUTO_UPDATE_DEBOUNCE_MS": ("auto_update", "debounce_ms", int),
            # Logging config
            "VAULTINDEX_LOGGING_LEVEL": ("logging", "level", str),
            "VAULTINDEX_LOGGING_FORMAT": ("logging", "format", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: Path | str) -> None:
        """
        Save configuration to a file.

        Args:
            path: Path to save the configuration (.yaml, .yml, or .json)

        Raises:
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            content = self.to_yaml()
        elif path.suffix == ".json":
            content = self.to_json()
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _parse_bool(value: str) -> bool:
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes", "on")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string into a list of non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> VaultIndexConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        VaultIndexConfig instance
    """
    if config_path:
        config = VaultIndexConfig.from_file(config_path)
    else:
        config = VaultIndexConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
