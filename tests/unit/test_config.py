"""Unit tests for configuration and the DI container."""

from __future__ import annotations

from pathlib import Path

import pytest

from engram.config import Config, get_config, reset_config
from engram.container import Container
from engram.infra.store import InMemoryGraphStore


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        """Test default thresholds and limits."""
        config = Config()

        assert config.duplicate_threshold == 0.90
        assert config.noop_threshold == 0.98
        assert config.traversal_decay == 0.7
        assert config.think_max_thoughts == 50
        assert config.think_timeout_seconds == 300.0
        assert config.think_session_ttl_seconds == 3600.0

    def test_db_path(self, temp_data_dir):
        """Test that db_path joins data_dir and db_name."""
        config = Config(data_dir=temp_data_dir, db_name="graph")

        assert config.db_path == temp_data_dir / "graph"

    def test_from_env(self, monkeypatch, temp_data_dir):
        """Test reading overrides from the environment."""
        monkeypatch.setenv("ENGRAM_STORE", "memory")
        monkeypatch.setenv("ENGRAM_DUPLICATE_THRESHOLD", "0.85")
        monkeypatch.setenv("ENGRAM_THINK_TIMEOUT", "60")
        monkeypatch.setenv("ENGRAM_EMBEDDING_DIMENSION", "384")
        monkeypatch.setenv("ENGRAM_PORT", "9000")

        config = Config.from_env()

        assert config.data_dir == Path(str(temp_data_dir))
        assert config.store == "memory"
        assert config.duplicate_threshold == 0.85
        assert config.think_timeout_seconds == 60.0
        assert config.embedding_dimension == 384
        assert config.server_port == 9000

    def test_get_config_is_cached(self):
        """Test that get_config returns one instance until reset."""
        reset_config()
        first = get_config()

        assert get_config() is first
        reset_config()
        assert get_config() is not first
        reset_config()


class TestContainer:
    """Tests for Container."""

    def test_components_share_one_store(self, container):
        """Test that engines are wired to the same store and locks."""
        assert isinstance(container.store, InMemoryGraphStore)
        assert container.decision_engine.locks is container._locks
        assert container.memory_service._store is container.store
        assert container.search_engine._store is container.store

    def test_components_are_cached(self, container):
        """Test lazy initialization happens once."""
        assert container.session_manager is container.session_manager
        assert container.decision_engine is container.decision_engine

    def test_session_limits_from_config(self, container, test_config):
        """Test that FastThink defaults come from config."""
        limits = container.session_manager.think_start().limits

        assert limits.max_thoughts == test_config.think_max_thoughts
        assert limits.thinking_timeout == test_config.think_timeout_seconds

    def test_unknown_store(self, test_config, embedder):
        """Test that an unknown store name is rejected."""
        test_config.store = "redis"
        container = Container.create(test_config, embedding_engine=embedder)

        with pytest.raises(ValueError):
            container.store

    def test_close_drops_components(self, container):
        """Test that close releases built components."""
        engine = container.decision_engine
        container.close()

        assert container.decision_engine is not engine
