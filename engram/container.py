"""Dependency injection container for Engram."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .config import Config, get_config
from .domain.models import ThinkLimits, utc_now
from .domain.services import (
    DecisionEngine,
    KeyedLock,
    MemoryService,
    SearchEngine,
    SessionManager,
)
from .infra.database import DatabaseConnection
from .infra.embeddings import EmbeddingEngine, EmbeddingProvider
from .infra.store import GraphStore, InMemoryGraphStore, KuzuGraphStore


@dataclass
class Container:
    """Dependency injection container.

    Builds every component lazily on first access and shares one graph
    store, one embedding provider and one write-lock map between them.
    """

    config: Config
    clock: Callable[[], datetime] = utc_now
    _embedding_engine: EmbeddingProvider | None = None
    _database: DatabaseConnection | None = None
    _store: GraphStore | None = None
    _locks: KeyedLock = field(default_factory=KeyedLock)
    _decision_engine: DecisionEngine | None = None
    _search_engine: SearchEngine | None = None
    _session_manager: SessionManager | None = None
    _memory_service: MemoryService | None = None

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        embedding_engine: EmbeddingProvider | None = None,
        store: GraphStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> Container:
        """Create a new container with the given config.

        Args:
            config: Optional config. Uses global config if not provided.
            embedding_engine: Pre-built embedding provider (e.g. for tests).
            store: Pre-built graph store (e.g. for tests).
            clock: Source of timestamps for all components.

        Returns:
            A new Container instance.
        """
        return cls(
            config=config or get_config(),
            clock=clock,
            _embedding_engine=embedding_engine,
            _store=store,
        )

    @property
    def embedding_engine(self) -> EmbeddingProvider:
        """Get the embedding engine (lazy initialization)."""
        if self._embedding_engine is None:
            self._embedding_engine = EmbeddingEngine(
                model_name=self.config.embedding_model,
                dimension=self.config.embedding_dimension,
            )
        return self._embedding_engine

    @property
    def database(self) -> DatabaseConnection:
        """Get the database connection (lazy initialization)."""
        if self._database is None:
            self._database = DatabaseConnection(
                db_path=self.config.db_path,
                embedding_dimension=self.embedding_engine.dimension,
            )
        return self._database

    @property
    def store(self) -> GraphStore:
        """Get the graph store selected by config.store (lazy initialization)."""
        if self._store is None:
            if self.config.store == "memory":
                self._store = InMemoryGraphStore()
            elif self.config.store == "kuzu":
                self._store = KuzuGraphStore(self.database)
            else:
                raise ValueError(f"Unknown store: {self.config.store}")
        return self._store

    @property
    def decision_engine(self) -> DecisionEngine:
        """Get the Decision Engine (lazy initialization)."""
        if self._decision_engine is None:
            self._decision_engine = DecisionEngine(
                store=self.store,
                embedding_dimension=self.embedding_engine.dimension,
                duplicate_threshold=self.config.duplicate_threshold,
                noop_threshold=self.config.noop_threshold,
                top_k=self.config.decision_top_k,
                locks=self._locks,
                clock=self.clock,
            )
        return self._decision_engine

    @property
    def search_engine(self) -> SearchEngine:
        """Get the Search Engine (lazy initialization)."""
        if self._search_engine is None:
            self._search_engine = SearchEngine(
                store=self.store,
                decay=self.config.traversal_decay,
                max_chain_depth=self.config.chain_max_depth,
                max_chain_paths=self.config.chain_max_paths,
                clock=self.clock,
            )
        return self._search_engine

    @property
    def session_manager(self) -> SessionManager:
        """Get the FastThink session manager (lazy initialization)."""
        if self._session_manager is None:
            self._session_manager = SessionManager(
                decision_engine=self.decision_engine,
                search_engine=self.search_engine,
                embedder=self.embedding_engine,
                limits=ThinkLimits(
                    max_thoughts=self.config.think_max_thoughts,
                    max_depth=self.config.think_max_depth,
                    thinking_timeout=self.config.think_timeout_seconds,
                    session_ttl=self.config.think_session_ttl_seconds,
                ),
                clock=self.clock,
            )
        return self._session_manager

    @property
    def memory_service(self) -> MemoryService:
        """Get the memory service (lazy initialization)."""
        if self._memory_service is None:
            self._memory_service = MemoryService(
                store=self.store,
                decision_engine=self.decision_engine,
                embedder=self.embedding_engine,
                clock=self.clock,
            )
        return self._memory_service

    def close(self) -> None:
        """Close all resources."""
        if self._store is not None:
            self._store.close()
            self._store = None
        if self._database is not None:
            self._database.close()
            self._database = None
        self._decision_engine = None
        self._search_engine = None
        self._session_manager = None
        self._memory_service = None


# Module-level container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container.create()
    return _container


def set_container(container: Container) -> None:
    """Install a pre-built container (for testing)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset the container (for testing)."""
    global _container
    if _container is not None:
        _container.close()
    _container = None
