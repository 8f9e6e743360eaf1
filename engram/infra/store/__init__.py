"""Graph store implementations.

- base.py: GraphStore interface and similarity helpers
- memory.py: in-process store (tests, ephemeral runs)
- kuzu.py: KùzuDB store (production)
"""

from .base import GraphStore, SimilarityHit, cosine_similarity
from .kuzu import KuzuGraphStore
from .memory import InMemoryGraphStore

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "KuzuGraphStore",
    "SimilarityHit",
    "cosine_similarity",
]
