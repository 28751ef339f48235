"""
Unit tests for configuration loading.
"""

import json
from unittest.mock import MagicMock

import pytest

from vaultindex.core.config import VaultIndexConfig, load_config
from vaultindex.services.container import (
    ServicesContainer,
    retry_policy_from_config,
    update_options_from_config,
)


class TestDefaults:
    def test_defaults_come_from_packaged_yaml(self):
        config = VaultIndexConfig()

        assert config.indexing.chunk_size == 1000
        assert config.indexing.batch_size == 100
        assert config.retry.max_attempts == 8
        assert config.vector_store.backend == "local"
        assert ".obsidian/**" in config.indexing.exclude_patterns
        assert config.auto_update.interval_hours == 24.0

    def test_instances_do_not_share_lists(self):
        first = VaultIndexConfig()
        second = VaultIndexConfig()

        first.indexing.exclude_patterns.append("extra/**")

        assert "extra/**" not in second.indexing.exclude_patterns


class TestFromFile:
    def test_yaml(self, tmp_path):
        path = tmp_path / "vaultindex.yaml"
        path.write_text(
            "embedding:\n  model: custom\n  dimension: 768\nindexing:\n  chunk_size: 400\n",
            encoding="utf-8",
        )

        config = VaultIndexConfig.from_file(path)

        assert config.embedding.model == "custom"
        assert config.embedding.dimension == 768
        assert config.indexing.chunk_size == 400
        assert config.indexing.batch_size == 100

    def test_json(self, tmp_path):
        path = tmp_path / "vaultindex.json"
        path.write_text(json.dumps({"search": {"limit": 3}}), encoding="utf-8")

        assert VaultIndexConfig.from_file(path).search.limit == 3

    def test_unknown_key_is_rejected(self, tmp_path):
        path = tmp_path / "vaultindex.yaml"
        path.write_text("indexing:\n  chunk_sise: 10\n", encoding="utf-8")

        with pytest.raises(ValueError, match="chunk_sise"):
            VaultIndexConfig.from_file(path)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "vaultindex.toml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ValueError):
            VaultIndexConfig.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            VaultIndexConfig.from_file(tmp_path / "absent.yaml")

    def test_save_round_trip(self, tmp_path):
        config = VaultIndexConfig()
        config.embedding.model = "saved-model"
        path = tmp_path / "out" / "config.yaml"

        config.save(path)

        assert VaultIndexConfig.from_file(path).embedding.model == "saved-model"


class TestEnvOverrides:
    def test_env_overrides_file_values(self, tmp_path, monkeypatch):
        path = tmp_path / "vaultindex.yaml"
        path.write_text("embedding:\n  model: from-file\n", encoding="utf-8")
        monkeypatch.setenv("VAULTINDEX_EMBEDDING_MODEL", "from-env")
        monkeypatch.setenv("VAULTINDEX_INDEXING_CHUNK_SIZE", "250")
        monkeypatch.setenv("VAULTINDEX_INDEXING_EXCLUDE_PATTERNS", "a/**, b/** ,")
        monkeypatch.setenv("VAULTINDEX_AUTO_UPDATE_ENABLED", "yes")

        config = load_config(path)

        assert config.embedding.model == "from-env"
        assert config.indexing.chunk_size == 250
        assert config.indexing.exclude_patterns == ["a/**", "b/**"]
        assert config.auto_update.enabled is True

    def test_env_can_be_skipped(self, monkeypatch):
        monkeypatch.setenv("VAULTINDEX_EMBEDDING_MODEL", "from-env")

        assert load_config(apply_env=False).embedding.model == "text-embedding-3-small"


class TestDerivedSettings:
    def test_retry_policy_and_update_options(self):
        config = VaultIndexConfig()
        config.retry.max_attempts = 3
        config.indexing.include_patterns = ["notes/**"]

        policy = retry_policy_from_config(config)
        options = update_options_from_config(config, reindex_all=True)

        assert policy.max_attempts == 3
        assert policy.delay_for(1) == 2.0
        assert options.include_patterns == ["notes/**"]
        assert options.reindex_all is True
        assert options.chunk_size == 1000

    def test_auto_update_state_file_is_resolved_against_the_vault(self, tmp_path):
        container = ServicesContainer(
            config=VaultIndexConfig(),
            vault_path=tmp_path,
            provider=MagicMock(),
            vector_store=MagicMock(),
            document_source=MagicMock(),
            search_service=MagicMock(),
            indexing_service=MagicMock(),
        )

        state_file = container.auto_update_state_file()

        assert state_file.path == tmp_path / ".vaultindex" / "auto_update.json"
