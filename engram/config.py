"""Configuration settings for Engram."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _optional_int(value: str | None) -> int | None:
    return int(value) if value else None


@dataclass
class Config:
    """Engram configuration."""

    # Data storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".engram")
    db_name: str = "engram_db"
    store: str = "kuzu"  # "kuzu" or "memory"

    # Embedding model
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int | None = None  # Probed from the model if None

    # Decision Engine
    duplicate_threshold: float = 0.90
    noop_threshold: float = 0.98
    decision_top_k: int = 5

    # Search Engine
    traversal_decay: float = 0.7
    chain_max_depth: int = 10  # Upper bound for a caller-supplied chain depth
    chain_max_paths: int = 32  # Beam width of the chain path search

    # FastThink
    think_max_thoughts: int = 50
    think_max_depth: int = 10
    think_timeout_seconds: float = 300.0
    think_session_ttl_seconds: float = 3600.0

    # Server
    server_transport: str = "stdio"
    server_host: str = "127.0.0.1"
    server_port: int = 8765
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        """Get the full database path."""
        return self.data_dir / self.db_name

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        data_dir_str = os.environ.get("ENGRAM_DATA_DIR")
        data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".engram"

        return cls(
            data_dir=data_dir,
            db_name=os.environ.get("ENGRAM_DB_NAME", "engram_db"),
            store=os.environ.get("ENGRAM_STORE", "kuzu"),
            embedding_model=os.environ.get(
                "ENGRAM_EMBEDDING_MODEL",
                "sentence-transformers/all-MiniLM-L6-v2",
            ),
            embedding_dimension=_optional_int(
                os.environ.get("ENGRAM_EMBEDDING_DIMENSION")
            ),
            duplicate_threshold=float(
                os.environ.get("ENGRAM_DUPLICATE_THRESHOLD", "0.90")
            ),
            noop_threshold=float(os.environ.get("ENGRAM_NOOP_THRESHOLD", "0.98")),
            decision_top_k=int(os.environ.get("ENGRAM_DECISION_TOP_K", "5")),
            traversal_decay=float(os.environ.get("ENGRAM_TRAVERSAL_DECAY", "0.7")),
            chain_max_depth=int(os.environ.get("ENGRAM_CHAIN_MAX_DEPTH", "10")),
            chain_max_paths=int(os.environ.get("ENGRAM_CHAIN_MAX_PATHS", "32")),
            think_max_thoughts=int(os.environ.get("ENGRAM_THINK_MAX_THOUGHTS", "50")),
            think_max_depth=int(os.environ.get("ENGRAM_THINK_MAX_DEPTH", "10")),
            think_timeout_seconds=float(
                os.environ.get("ENGRAM_THINK_TIMEOUT", "300")
            ),
            think_session_ttl_seconds=float(
                os.environ.get("ENGRAM_THINK_SESSION_TTL", "3600")
            ),
            server_transport=os.environ.get("ENGRAM_TRANSPORT", "stdio"),
            server_host=os.environ.get("ENGRAM_HOST", "127.0.0.1"),
            server_port=int(os.environ.get("ENGRAM_PORT", "8765")),
            log_level=os.environ.get("ENGRAM_LOG_LEVEL", "INFO"),
        )


_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the config (for testing)."""
    global _config
    _config = None
