"""Pytest fixtures for Engram tests."""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

from engram.config import Config, reset_config
from engram.container import Container, reset_container, set_container
from engram.domain.exceptions import StoreUnavailable
from engram.domain.models import ThinkLimits
from engram.domain.services import (
    DecisionEngine,
    MemoryService,
    SearchEngine,
    SessionManager,
)
from engram.infra.store import InMemoryGraphStore

EMBEDDING_DIM = 256


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FlakyStore(InMemoryGraphStore):
    """In-memory store whose writes and queries fail while ``down`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise StoreUnavailable("store is down")

    def create_node(self, node):
        self._check()
        return super().create_node(node)

    def update_node(self, *args, **kwargs):
        self._check()
        return super().update_node(*args, **kwargs)

    def supersede(self, new_node, old_id, reason=None):
        self._check()
        return super().supersede(new_node, old_id, reason)

    def similarity_query(self, *args, **kwargs):
        self._check()
        return super().similarity_query(*args, **kwargs)


class HashingEmbedder:
    """Deterministic bag-of-words embedder.

    Identical texts get identical vectors; texts sharing words get
    proportionally similar ones.
    """

    def __init__(self, dimension: int = EMBEDDING_DIM) -> None:
        self._dimension = dimension
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        vec = np.zeros(self._dimension)
        for token in re.findall(r"[a-z0-9\[\]]+", text.lower()):
            digest = hashlib.md5(token.encode()).digest()
            vec[int.from_bytes(digest[:4], "little") % self._dimension] += 1.0
        norm = np.linalg.norm(vec)
        if norm:
            vec = vec / norm
        return vec.tolist()


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_data_dir: Path) -> Generator[Config, None, None]:
    """Create a test configuration backed by the in-memory store."""
    config = Config(
        data_dir=temp_data_dir,
        db_name="test_db",
        store="memory",
        embedding_dimension=EMBEDDING_DIM,
        duplicate_threshold=0.90,
        noop_threshold=0.98,
        decision_top_k=5,
        traversal_decay=0.7,
        think_max_thoughts=50,
        think_max_depth=10,
        think_timeout_seconds=300,
        think_session_ttl_seconds=3600,
    )
    yield config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def vec() -> Callable[[dict[int, float]], list[float]]:
    """Build an explicit embedding from {dimension index: weight}."""

    def make(components: dict[int, float]) -> list[float]:
        values = [0.0] * EMBEDDING_DIM
        for index, weight in components.items():
            values[index] = weight
        return values

    return make


@pytest.fixture
def store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def decision_engine(store: InMemoryGraphStore, clock: FakeClock) -> DecisionEngine:
    return DecisionEngine(store, embedding_dimension=EMBEDDING_DIM, clock=clock)


@pytest.fixture
def search_engine(store: InMemoryGraphStore, clock: FakeClock) -> SearchEngine:
    return SearchEngine(store, clock=clock)


@pytest.fixture
def think_limits() -> ThinkLimits:
    return ThinkLimits()


@pytest.fixture
def session_manager(
    decision_engine: DecisionEngine,
    search_engine: SearchEngine,
    embedder: HashingEmbedder,
    think_limits: ThinkLimits,
    clock: FakeClock,
) -> SessionManager:
    return SessionManager(
        decision_engine, search_engine, embedder, limits=think_limits, clock=clock
    )


@pytest.fixture
def memory_service(
    store: InMemoryGraphStore,
    decision_engine: DecisionEngine,
    embedder: HashingEmbedder,
    clock: FakeClock,
) -> MemoryService:
    return MemoryService(store, decision_engine, embedder, clock=clock)


@pytest.fixture
def container(
    test_config: Config, embedder: HashingEmbedder, clock: FakeClock
) -> Generator[Container, None, None]:
    """Create a test container with isolated dependencies.

    The container is installed as the global one so tool functions use it.
    """
    reset_config()
    reset_container()

    container = Container.create(test_config, embedding_engine=embedder, clock=clock)
    set_container(container)
    yield container

    container.close()
    reset_container()
    reset_config()


@pytest.fixture(autouse=True)
def set_test_env(temp_data_dir: Path) -> Generator[None, None, None]:
    """Set environment variables for tests."""
    old_env = os.environ.get("ENGRAM_DATA_DIR")
    os.environ["ENGRAM_DATA_DIR"] = str(temp_data_dir)
    yield
    if old_env:
        os.environ["ENGRAM_DATA_DIR"] = old_env
    else:
        os.environ.pop("ENGRAM_DATA_DIR", None)
