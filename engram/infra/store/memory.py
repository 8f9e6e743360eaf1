"""In-process graph store.

Keeps nodes, edges and entity mentions in dictionaries guarded by one
lock. Used for tests and for ephemeral runs where nothing needs to
survive a restart.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone

from ...domain.exceptions import MemoryNotFoundError
from ...domain.models import (
    ConceptType,
    Direction,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
)
from .base import GraphStore, SimilarityHit, cosine_similarity, node_matches

logger = logging.getLogger(__name__)


class InMemoryGraphStore(GraphStore):
    """Dictionary-backed GraphStore."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[str, MemoryNode] = {}
        self._edges: list[Relation] = []
        self._mentions: dict[str, set[str]] = {}  # memory_id -> entity names
        self._entities: dict[str, datetime] = {}

    def _require(self, node_id: str) -> MemoryNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise MemoryNotFoundError(node_id)
        return node

    # =========================================================================
    # Node CRUD
    # =========================================================================

    def create_node(self, node: MemoryNode) -> str:
        with self._lock:
            self._nodes[node.id] = node.model_copy(deep=True)
        logger.debug(f"Created node {node.id[:8]}... ({node.concept_type.value})")
        return node.id

    def get_node(self, node_id: str) -> MemoryNode | None:
        with self._lock:
            node = self._nodes.get(node_id)
            return node.model_copy(deep=True) if node else None

    def update_node(
        self,
        node_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        updated_at: datetime | None = None,
    ) -> MemoryNode:
        with self._lock:
            node = self._require(node_id)
            changes: dict = {"updated_at": updated_at or datetime.now(timezone.utc)}
            if content is not None:
                changes["content"] = content
            if embedding is not None:
                changes["embedding"] = list(embedding)
            updated = node.model_copy(update=changes)
            self._nodes[node_id] = updated
            return updated.model_copy(deep=True)

    def set_status(
        self, node_id: str, status: NodeStatus, updated_at: datetime | None = None
    ) -> None:
        with self._lock:
            node = self._require(node_id)
            self._nodes[node_id] = node.model_copy(
                update={
                    "status": status,
                    "updated_at": updated_at or node.updated_at,
                }
            )

    def delete_node(self, node_id: str) -> bool:
        with self._lock:
            if self._nodes.pop(node_id, None) is None:
                return False
            self._edges = [
                e for e in self._edges if node_id not in (e.source_id, e.target_id)
            ]
            self._mentions.pop(node_id, None)
            return True

    def count_nodes(self, status: NodeStatus | None = None) -> int:
        with self._lock:
            if status is None:
                return len(self._nodes)
            return sum(1 for n in self._nodes.values() if n.status == status)

    # =========================================================================
    # Edges
    # =========================================================================

    def create_edge(self, relation: Relation) -> None:
        with self._lock:
            self._require(relation.source_id)
            self._require(relation.target_id)
            if relation.created_at is None:
                relation = relation.model_copy(
                    update={"created_at": datetime.now(timezone.utc)}
                )
            self._edges.append(relation)

    def supersede(
        self, new_node: MemoryNode, old_id: str, reason: str | None = None
    ) -> str:
        with self._lock:
            old = self._require(old_id)
            self._nodes[new_node.id] = new_node.model_copy(deep=True)
            self._nodes[old_id] = old.model_copy(
                update={"status": NodeStatus.SUPERSEDED}
            )
            self._edges.append(
                Relation(
                    source_id=new_node.id,
                    target_id=old_id,
                    kind=RelationKind.SUPERSEDES,
                    reason=reason,
                    created_at=new_node.created_at,
                )
            )
        return new_node.id

    def neighbors(
        self,
        node_id: str,
        edge_kinds: Iterable[RelationKind] | None = None,
        direction: Direction = Direction.BOTH,
    ) -> list[Relation]:
        kinds = set(edge_kinds) if edge_kinds is not None else None
        with self._lock:
            result = []
            for edge in self._edges:
                if kinds is not None and edge.kind not in kinds:
                    continue
                outgoing = edge.source_id == node_id
                incoming = edge.target_id == node_id
                if direction == Direction.OUT and outgoing:
                    result.append(edge)
                elif direction == Direction.IN and incoming:
                    result.append(edge)
                elif direction == Direction.BOTH and (outgoing or incoming):
                    result.append(edge)
            return [e.model_copy() for e in result]

    # =========================================================================
    # Queries
    # =========================================================================

    def similarity_query(
        self,
        embedding: list[float],
        k: int,
        concept_filter: ConceptType | None = None,
        since: datetime | None = None,
        statuses: Iterable[NodeStatus] | None = None,
        min_score: float | None = None,
    ) -> list[SimilarityHit]:
        status_set = set(statuses) if statuses is not None else None
        with self._lock:
            candidates = [
                n
                for n in self._nodes.values()
                if node_matches(n, concept_filter, since, status_set)
            ]

        hits: list[SimilarityHit] = []
        for node in candidates:
            similarity = cosine_similarity(embedding, node.embedding)
            if min_score is not None and similarity < min_score:
                continue
            hits.append((node.id, similarity))

        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits[:k]

    def content_prefix_query(self, prefix: str, limit: int = 20) -> list[MemoryNode]:
        with self._lock:
            matches = [
                n.model_copy(deep=True)
                for n in self._nodes.values()
                if n.content.startswith(prefix)
            ]
        matches.sort(key=lambda n: n.created_at, reverse=True)
        return matches[:limit]

    # =========================================================================
    # Entities
    # =========================================================================

    def link_entity(self, memory_id: str, name: str) -> None:
        normalized = name.strip().lower()
        if not normalized:
            return
        with self._lock:
            self._require(memory_id)
            self._entities.setdefault(normalized, datetime.now(timezone.utc))
            self._mentions.setdefault(memory_id, set()).add(normalized)

    def entity_neighbors(self, memory_id: str) -> list[str]:
        with self._lock:
            names = self._mentions.get(memory_id, set())
            if not names:
                return []
            return sorted(
                other
                for other, other_names in self._mentions.items()
                if other != memory_id and names & other_names
            )
