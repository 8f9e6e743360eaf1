"""Graph store interface consumed by the core.

Implementations supply node/edge CRUD, nearest-neighbour similarity
queries with time/concept/status filters, and neighbourhood lookups.
Each method is individually atomic; ``supersede`` is the one compound
write and must create the new node, flip the old node's status and add
the SUPERSEDES edge as a single unit.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

import numpy as np

from ...domain.models import (
    ConceptType,
    Direction,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
)

logger = logging.getLogger(__name__)

SimilarityHit = tuple[str, float]


def cosine_similarity(embedding1: list[float], embedding2: list[float]) -> float:
    """Compute cosine similarity between two embeddings.

    Returns 0.0 for zero vectors or mismatched dimensions.
    """
    if len(embedding1) != len(embedding2) or not embedding1:
        return 0.0

    vec1 = np.asarray(embedding1, dtype=float)
    vec2 = np.asarray(embedding2, dtype=float)

    norm1 = np.linalg.norm(vec1)
    norm2 = np.linalg.norm(vec2)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(vec1, vec2) / (norm1 * norm2))


def node_matches(
    node: MemoryNode,
    concept_filter: ConceptType | None = None,
    since: datetime | None = None,
    statuses: Iterable[NodeStatus] | None = None,
) -> bool:
    """Check a node against the filters of a similarity query."""
    if concept_filter is not None and node.concept_type != concept_filter:
        return False
    if statuses is not None and node.status not in set(statuses):
        return False
    if since is not None and node.last_touched < since:
        return False
    return True


class GraphStore(ABC):
    """Abstract graph-vector store."""

    # =========================================================================
    # Node CRUD
    # =========================================================================

    @abstractmethod
    def create_node(self, node: MemoryNode) -> str:
        """Persist a new node and return its id."""

    @abstractmethod
    def get_node(self, node_id: str) -> MemoryNode | None:
        """Fetch a node by id."""

    @abstractmethod
    def update_node(
        self,
        node_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        updated_at: datetime | None = None,
    ) -> MemoryNode:
        """Replace content/embedding of a node, keeping its id and edges.

        Raises:
            MemoryNotFoundError: If the node does not exist.
        """

    @abstractmethod
    def set_status(
        self, node_id: str, status: NodeStatus, updated_at: datetime | None = None
    ) -> None:
        """Change the status of a node.

        Raises:
            MemoryNotFoundError: If the node does not exist.
        """

    @abstractmethod
    def delete_node(self, node_id: str) -> bool:
        """Delete a node and its edges. Returns False if it did not exist."""

    @abstractmethod
    def count_nodes(self, status: NodeStatus | None = None) -> int:
        """Count nodes, optionally by status."""

    # =========================================================================
    # Edges
    # =========================================================================

    @abstractmethod
    def create_edge(self, relation: Relation) -> None:
        """Persist a directed edge.

        Raises:
            MemoryNotFoundError: If either endpoint does not exist.
        """

    @abstractmethod
    def supersede(
        self, new_node: MemoryNode, old_id: str, reason: str | None = None
    ) -> str:
        """Atomically create new_node, mark old_id superseded and link new -> old.

        Raises:
            MemoryNotFoundError: If old_id does not exist (nothing is written).
        """

    @abstractmethod
    def neighbors(
        self,
        node_id: str,
        edge_kinds: Iterable[RelationKind] | None = None,
        direction: Direction = Direction.BOTH,
    ) -> list[Relation]:
        """Edges touching node_id, filtered by kind and direction."""

    # =========================================================================
    # Queries
    # =========================================================================

    @abstractmethod
    def similarity_query(
        self,
        embedding: list[float],
        k: int,
        concept_filter: ConceptType | None = None,
        since: datetime | None = None,
        statuses: Iterable[NodeStatus] | None = None,
        min_score: float | None = None,
    ) -> list[SimilarityHit]:
        """Top-k (node_id, similarity) pairs, most similar first."""

    @abstractmethod
    def content_prefix_query(self, prefix: str, limit: int = 20) -> list[MemoryNode]:
        """Nodes whose content starts with prefix, newest first."""

    # =========================================================================
    # Entities
    # =========================================================================

    @abstractmethod
    def link_entity(self, memory_id: str, name: str) -> None:
        """Record that a memory mentions an entity (created on demand)."""

    @abstractmethod
    def entity_neighbors(self, memory_id: str) -> list[str]:
        """Ids of other memories mentioning any entity memory_id mentions."""

    # =========================================================================
    # Paths
    # =========================================================================

    def path_query(
        self,
        edge_kinds: Iterable[RelationKind],
        seed: str,
        max_depth: int,
        direction: Direction = Direction.BOTH,
        max_paths: int = 32,
    ) -> list[list[Relation]]:
        """Best simple paths from seed following edge_kinds.

        Beam search ranked by the product of edge weights. Each level keeps
        at most max_paths partial paths, so a query costs at most
        max_depth * max_paths neighbour lookups however dense the graph is.
        A path is complete when it reaches max_depth edges or has no
        unvisited neighbour left; visited sets are per path, so cycles never
        loop.

        Returns:
            Up to max_paths paths, highest weight product first, longer
            paths first on equal products.
        """
        if max_paths < 1:
            raise ValueError(f"max_paths must be positive, got {max_paths}")

        kinds = frozenset(edge_kinds)
        complete: list[tuple[float, list[Relation]]] = []
        beam: list[tuple[float, str, list[Relation], frozenset[str]]] = [
            (1.0, seed, [], frozenset({seed}))
        ]

        for _ in range(max_depth):
            grown = []
            for weight, node_id, path, visited in beam:
                extended = False
                for edge in self.neighbors(node_id, kinds, direction):
                    nxt = edge.other_end(node_id)
                    if nxt in visited:
                        continue
                    extended = True
                    grown.append(
                        (weight * edge.weight, nxt, [*path, edge], visited | {nxt})
                    )
                if not extended and path:
                    complete.append((weight, path))
            grown.sort(key=lambda item: item[0], reverse=True)
            beam = grown[:max_paths]
            if not beam:
                break

        complete.extend((weight, path) for weight, _, path, _ in beam if path)
        complete.sort(key=lambda item: (item[0], len(item[1])), reverse=True)

        logger.debug(
            f"path_query from {seed[:8]}...: {len(complete)} paths, "
            f"keeping {min(len(complete), max_paths)}"
        )
        return [path for _, path in complete[:max_paths]]

    def close(self) -> None:
        """Release resources held by the store."""
        return None
