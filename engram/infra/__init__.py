"""Infrastructure layer - Database, graph stores and embeddings."""

from .database import DatabaseConnection
from .embeddings import EmbeddingEngine, EmbeddingProvider
from .store import GraphStore, InMemoryGraphStore, KuzuGraphStore

__all__ = [
    "DatabaseConnection",
    "EmbeddingEngine",
    "EmbeddingProvider",
    "GraphStore",
    "InMemoryGraphStore",
    "KuzuGraphStore",
]
