"""KùzuDB-backed graph store.

Nodes live in the ``Memory`` table with a cosine vector index on their
embedding; typed edges live in ``RELATION`` and entity mentions in
``MENTIONS``. Any driver failure surfaces as StoreUnavailable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from ...domain.exceptions import MemoryNotFoundError, StoreUnavailable
from ...domain.models import (
    ConceptType,
    Direction,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
)
from ..database import DatabaseConnection
from ..queries import NodeQueries
from .base import GraphStore, SimilarityHit, cosine_similarity, node_matches

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """KùzuDB returns naive timestamps; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class KuzuGraphStore(GraphStore):
    """GraphStore on top of an embedded KùzuDB database."""

    def __init__(self, db: DatabaseConnection) -> None:
        self._db = db

    # =========================================================================
    # Execution helpers
    # =========================================================================

    def _execute(self, query: str, parameters: dict | None = None) -> Any:
        try:
            return self._db.execute(query, parameters=parameters)
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Graph store query failed: {e}")
            raise StoreUnavailable(f"Graph store query failed: {e}") from e

    def _rows(self, query: str, parameters: dict | None = None) -> list[list]:
        result = self._execute(query, parameters)
        rows = []
        while result.has_next():
            rows.append(result.get_next())
        return rows

    def _row_to_node(self, row: list) -> MemoryNode:
        cols = NodeQueries.Columns
        return MemoryNode(
            id=row[cols.ID],
            content=row[cols.CONTENT],
            embedding=list(row[cols.EMBEDDING] or []),
            concept_type=ConceptType(row[cols.CONCEPT_TYPE]),
            status=NodeStatus(row[cols.STATUS]),
            subject_key=row[cols.SUBJECT_KEY] or None,
            created_at=_as_utc(row[cols.CREATED_AT]),
            updated_at=_as_utc(row[cols.UPDATED_AT]),
        )

    @staticmethod
    def _row_to_relation(row: list) -> Relation:
        return Relation(
            source_id=row[0],
            target_id=row[1],
            kind=RelationKind(row[2]),
            reason=row[3] or None,
            weight=row[4] if row[4] is not None else 1.0,
            created_at=_as_utc(row[5]),
        )

    @staticmethod
    def _node_params(node: MemoryNode) -> dict[str, Any]:
        return {
            "id": node.id,
            "content": node.content,
            "embedding": node.embedding,
            "concept_type": node.concept_type.value,
            "status": node.status.value,
            "subject_key": node.subject_key or "",
            "created_at": node.created_at,
            "updated_at": node.updated_at,
        }

    @staticmethod
    def _edge_params(relation: Relation) -> dict[str, Any]:
        return {
            "source_id": relation.source_id,
            "target_id": relation.target_id,
            "kind": relation.kind.value,
            "reason": relation.reason or "",
            "weight": relation.weight,
            "created_at": relation.created_at or datetime.now(timezone.utc),
        }

    # =========================================================================
    # Node CRUD
    # =========================================================================

    def create_node(self, node: MemoryNode) -> str:
        self._execute(NodeQueries.CREATE_NODE, self._node_params(node))
        logger.info(f"Created memory {node.id} ({node.concept_type.value})")
        return node.id

    def get_node(self, node_id: str) -> MemoryNode | None:
        rows = self._rows(NodeQueries.get_by_id(), {"id": node_id})
        return self._row_to_node(rows[0]) if rows else None

    def update_node(
        self,
        node_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        updated_at: datetime | None = None,
    ) -> MemoryNode:
        """Update a node in place.

        The vector index forbids SET on the embedding column, so content
        changes delete and recreate the node (with its edges and mentions)
        inside one transaction.
        """
        existing = self.get_node(node_id)
        if existing is None:
            raise MemoryNotFoundError(node_id)

        updated = existing.model_copy(
            update={
                "content": content if content is not None else existing.content,
                "embedding": (
                    list(embedding) if embedding is not None else existing.embedding
                ),
                "updated_at": updated_at or datetime.now(timezone.utc),
            }
        )

        edges = self.neighbors(node_id)
        mentions = [
            row[0]
            for row in self._rows(
                "MATCH (m:Memory {id: $id})-[:MENTIONS]->(e:Entity) RETURN e.name",
                {"id": node_id},
            )
        ]

        try:
            with self._db.transaction():
                self._db.execute(
                    "MATCH (m:Memory {id: $id}) DETACH DELETE m", {"id": node_id}
                )
                self._db.execute(NodeQueries.CREATE_NODE, self._node_params(updated))
                for edge in edges:
                    self._db.execute(NodeQueries.CREATE_EDGE, self._edge_params(edge))
                for name in mentions:
                    self._db.execute(
                        """
                        MATCH (m:Memory {id: $id}), (e:Entity {name: $name})
                        CREATE (m)-[:MENTIONS]->(e)
                        """,
                        {"id": node_id, "name": name},
                    )
        except Exception as e:
            logger.error(f"Update of memory {node_id} rolled back: {e}")
            raise StoreUnavailable(f"Update of memory {node_id} failed: {e}") from e

        logger.info(f"Updated memory {node_id}")
        return updated

    def set_status(
        self, node_id: str, status: NodeStatus, updated_at: datetime | None = None
    ) -> None:
        existing = self.get_node(node_id)
        if existing is None:
            raise MemoryNotFoundError(node_id)
        self._execute(
            NodeQueries.SET_STATUS,
            {
                "id": node_id,
                "status": status.value,
                "updated_at": updated_at or existing.updated_at,
            },
        )

    def delete_node(self, node_id: str) -> bool:
        if self.get_node(node_id) is None:
            return False
        self._execute("MATCH (m:Memory {id: $id}) DETACH DELETE m", {"id": node_id})
        logger.info(f"Deleted memory {node_id}")
        return True

    def count_nodes(self, status: NodeStatus | None = None) -> int:
        if status is None:
            rows = self._rows("MATCH (m:Memory) RETURN count(m)")
        else:
            rows = self._rows(
                "MATCH (m:Memory) WHERE m.status = $status RETURN count(m)",
                {"status": status.value},
            )
        return int(rows[0][0]) if rows else 0

    # =========================================================================
    # Edges
    # =========================================================================

    def create_edge(self, relation: Relation) -> None:
        for endpoint in (relation.source_id, relation.target_id):
            if self.get_node(endpoint) is None:
                raise MemoryNotFoundError(endpoint)
        self._execute(NodeQueries.CREATE_EDGE, self._edge_params(relation))
        logger.info(
            f"Linked memory {relation.source_id} -> {relation.target_id} "
            f"({relation.kind.value})"
        )

    def supersede(
        self, new_node: MemoryNode, old_id: str, reason: str | None = None
    ) -> str:
        if self.get_node(old_id) is None:
            raise MemoryNotFoundError(old_id)

        edge = Relation(
            source_id=new_node.id,
            target_id=old_id,
            kind=RelationKind.SUPERSEDES,
            reason=reason,
            created_at=new_node.created_at,
        )

        try:
            with self._db.transaction():
                self._db.execute(NodeQueries.CREATE_NODE, self._node_params(new_node))
                self._db.execute(
                    NodeQueries.SET_STATUS,
                    {
                        "id": old_id,
                        "status": NodeStatus.SUPERSEDED.value,
                        "updated_at": new_node.created_at,
                    },
                )
                self._db.execute(NodeQueries.CREATE_EDGE, self._edge_params(edge))
        except Exception as e:
            logger.error(f"Supersede of {old_id} rolled back: {e}")
            raise StoreUnavailable(f"Supersede of {old_id} failed: {e}") from e

        logger.info(f"Memory {new_node.id} supersedes {old_id}")
        return new_node.id

    def neighbors(
        self,
        node_id: str,
        edge_kinds: Iterable[RelationKind] | None = None,
        direction: Direction = Direction.BOTH,
    ) -> list[Relation]:
        rows: list[list] = []
        if direction in (Direction.OUT, Direction.BOTH):
            rows.extend(self._rows(NodeQueries.outgoing_edges(), {"id": node_id}))
        if direction in (Direction.IN, Direction.BOTH):
            rows.extend(self._rows(NodeQueries.incoming_edges(), {"id": node_id}))

        relations = [self._row_to_relation(row) for row in rows]
        if edge_kinds is not None:
            kinds = set(edge_kinds)
            relations = [r for r in relations if r.kind in kinds]
        return relations

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

        if self._db.vector_index_ready:
            try:
                hits = self._indexed_similarity(
                    embedding, k, concept_filter, since, status_set, min_score
                )
                if hits is not None:
                    return hits
            except StoreUnavailable as e:
                logger.warning(f"Vector index search failed, using fallback: {e}")

        return self._scan_similarity(
            embedding, k, concept_filter, since, status_set, min_score
        )

    def _indexed_similarity(
        self,
        embedding: list[float],
        k: int,
        concept_filter: ConceptType | None,
        since: datetime | None,
        statuses: set[NodeStatus] | None,
        min_score: float | None,
    ) -> list[SimilarityHit] | None:
        """Search the vector index, oversampling to survive filtering.

        Returns None when the filtered result may be incomplete, so the
        caller falls back to a full scan.
        """
        fetch_k = k * 4 + 20
        rows = self._rows(
            NodeQueries.vector_search(), {"embedding": embedding, "k": fetch_k}
        )

        hits: list[SimilarityHit] = []
        for node_id, similarity in rows:
            if min_score is not None and similarity < min_score:
                break
            node = self.get_node(node_id)
            if node is None or not node_matches(node, concept_filter, since, statuses):
                continue
            hits.append((node_id, float(similarity)))
            if len(hits) >= k:
                return hits

        if len(rows) >= fetch_k and (min_score is None or rows[-1][1] >= min_score):
            return None
        return hits

    def _scan_similarity(
        self,
        embedding: list[float],
        k: int,
        concept_filter: ConceptType | None,
        since: datetime | None,
        statuses: set[NodeStatus] | None,
        min_score: float | None,
    ) -> list[SimilarityHit]:
        """Fallback similarity search using Python-side computation."""
        where_clauses = []
        params: dict[str, Any] = {}

        if concept_filter is not None:
            where_clauses.append("m.concept_type = $concept_type")
            params["concept_type"] = concept_filter.value
        if statuses is not None:
            where_clauses.append("m.status IN $statuses")
            params["statuses"] = [s.value for s in statuses]

        where_clause = " AND ".join(where_clauses) if where_clauses else "TRUE"
        rows = self._rows(NodeQueries.filtered_nodes(where_clause), params or None)

        hits: list[SimilarityHit] = []
        for row in rows:
            node = self._row_to_node(row)
            if since is not None and node.last_touched < since:
                continue
            similarity = cosine_similarity(embedding, node.embedding)
            if min_score is not None and similarity < min_score:
                continue
            hits.append((node.id, similarity))

        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits[:k]

    def content_prefix_query(self, prefix: str, limit: int = 20) -> list[MemoryNode]:
        rows = self._rows(NodeQueries.by_prefix(), {"prefix": prefix, "limit": limit})
        return [self._row_to_node(row) for row in rows]

    # =========================================================================
    # Entities
    # =========================================================================

    def link_entity(self, memory_id: str, name: str) -> None:
        normalized = name.strip().lower()
        if not normalized:
            return
        if self.get_node(memory_id) is None:
            raise MemoryNotFoundError(memory_id)

        self._execute(
            """
            MERGE (e:Entity {name: $name})
            ON CREATE SET e.created_at = $created_at
            """,
            {"name": normalized, "created_at": datetime.now(timezone.utc)},
        )
        existing = self._rows(
            """
            MATCH (m:Memory {id: $id})-[:MENTIONS]->(e:Entity {name: $name})
            RETURN e.name
            """,
            {"id": memory_id, "name": normalized},
        )
        if not existing:
            self._execute(
                """
                MATCH (m:Memory {id: $id}), (e:Entity {name: $name})
                CREATE (m)-[:MENTIONS]->(e)
                """,
                {"id": memory_id, "name": normalized},
            )

    def entity_neighbors(self, memory_id: str) -> list[str]:
        rows = self._rows(
            """
            MATCH (m:Memory {id: $id})-[:MENTIONS]->(:Entity)<-[:MENTIONS]-(o:Memory)
            WHERE o.id <> $id
            RETURN DISTINCT o.id
            """,
            {"id": memory_id},
        )
        return sorted(row[0] for row in rows)

    def close(self) -> None:
        self._db.close()
