"""Integration tests for graph store implementations.

Every test runs against the in-memory store and, when the kuzu package
is installed, against an embedded KùzuDB database.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from engram.domain.exceptions import MemoryNotFoundError
from engram.domain.models import (
    ConceptType,
    Direction,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
)
from engram.infra.database import DatabaseConnection
from engram.infra.store import InMemoryGraphStore, KuzuGraphStore

DIM = 8
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def unit(index: int, other: int | None = None, weight: float = 0.0) -> list[float]:
    values = [0.0] * DIM
    values[index] = 1.0
    if other is not None:
        values[other] = weight
    return values


def node(content, embedding, concept_type=ConceptType.FACT, at=NOW, **kwargs):
    return MemoryNode(
        id=str(uuid.uuid4()),
        content=content,
        embedding=embedding,
        concept_type=concept_type,
        created_at=at,
        updated_at=at,
        **kwargs,
    )


@pytest.fixture(params=["memory", "kuzu"])
def graph_store(request, temp_data_dir):
    """A fresh store of each implementation."""
    if request.param == "memory":
        yield InMemoryGraphStore()
        return

    pytest.importorskip("kuzu")
    db = DatabaseConnection(temp_data_dir / "db", embedding_dimension=DIM)
    store = KuzuGraphStore(db)
    yield store
    store.close()


class TestNodes:
    """Tests for node CRUD."""

    def test_create_and_get(self, graph_store):
        """Test that a node round-trips with its fields."""
        created = node("User likes jazz", unit(0), subject_key="alice")
        graph_store.create_node(created)

        fetched = graph_store.get_node(created.id)

        assert fetched.content == "User likes jazz"
        assert fetched.subject_key == "alice"
        assert fetched.status == NodeStatus.ACTIVE
        assert fetched.created_at == NOW
        assert fetched.embedding == pytest.approx(unit(0))

    def test_get_missing(self, graph_store):
        assert graph_store.get_node("missing") is None

    def test_update_keeps_edges(self, graph_store):
        """Test that an update keeps the node's relations and mentions."""
        a = node("It rained", unit(0))
        b = node("Roads are wet", unit(1))
        graph_store.create_node(a)
        graph_store.create_node(b)
        graph_store.create_edge(
            Relation(source_id=a.id, target_id=b.id, kind=RelationKind.IMPLIES)
        )
        graph_store.link_entity(a.id, "Rain")

        later = NOW + timedelta(hours=1)
        graph_store.update_node(a.id, content="It rained hard", updated_at=later)

        fetched = graph_store.get_node(a.id)
        assert fetched.content == "It rained hard"
        assert fetched.updated_at == later
        assert [e.target_id for e in graph_store.neighbors(a.id)] == [b.id]

    def test_update_missing(self, graph_store):
        with pytest.raises(MemoryNotFoundError):
            graph_store.update_node("missing", content="x")

    def test_set_status_and_count(self, graph_store):
        """Test status changes and counting by status."""
        a = node("A", unit(0))
        graph_store.create_node(a)
        graph_store.create_node(node("B", unit(1)))

        graph_store.set_status(a.id, NodeStatus.INCOMPLETE)

        assert graph_store.count_nodes() == 2
        assert graph_store.count_nodes(NodeStatus.INCOMPLETE) == 1
        assert graph_store.count_nodes(NodeStatus.ACTIVE) == 1

    def test_delete(self, graph_store):
        """Test that delete removes the node and reports absence."""
        a = node("A", unit(0))
        graph_store.create_node(a)

        assert graph_store.delete_node(a.id) is True
        assert graph_store.delete_node(a.id) is False
        assert graph_store.count_nodes() == 0


class TestEdges:
    """Tests for edges and supersede."""

    def test_neighbors_by_direction_and_kind(self, graph_store):
        """Test filtering neighbours by direction and edge kind."""
        a, b, c = (node(x, unit(i)) for i, x in enumerate("ABC"))
        for n in (a, b, c):
            graph_store.create_node(n)
        graph_store.create_edge(
            Relation(source_id=a.id, target_id=b.id, kind=RelationKind.IMPLIES)
        )
        graph_store.create_edge(
            Relation(source_id=c.id, target_id=a.id, kind=RelationKind.BECAUSE)
        )

        out = graph_store.neighbors(a.id, direction=Direction.OUT)
        incoming = graph_store.neighbors(a.id, direction=Direction.IN)
        both = graph_store.neighbors(a.id)
        implies = graph_store.neighbors(a.id, edge_kinds=[RelationKind.IMPLIES])

        assert [e.target_id for e in out] == [b.id]
        assert [e.source_id for e in incoming] == [c.id]
        assert len(both) == 2
        assert [e.kind for e in implies] == [RelationKind.IMPLIES]

    def test_edge_to_missing_node(self, graph_store):
        a = node("A", unit(0))
        graph_store.create_node(a)

        with pytest.raises(MemoryNotFoundError):
            graph_store.create_edge(
                Relation(source_id=a.id, target_id="missing", kind="RELATES_TO")
            )

    def test_supersede(self, graph_store):
        """Test the atomic supersede write."""
        old = node("User prefers light mode", unit(0))
        graph_store.create_node(old)
        new = node("User prefers dark mode", unit(0, 1, 0.3))

        graph_store.supersede(new, old.id, reason="Conflicting value")

        assert graph_store.get_node(old.id).status == NodeStatus.SUPERSEDED
        assert graph_store.get_node(new.id).status == NodeStatus.ACTIVE
        edges = graph_store.neighbors(new.id, direction=Direction.OUT)
        assert [(e.target_id, e.kind) for e in edges] == [
            (old.id, RelationKind.SUPERSEDES)
        ]
        assert edges[0].reason == "Conflicting value"

    def test_supersede_missing_writes_nothing(self, graph_store):
        """Test that superseding an unknown node leaves the store untouched."""
        with pytest.raises(MemoryNotFoundError):
            graph_store.supersede(node("New", unit(0)), "missing")

        assert graph_store.count_nodes() == 0


class TestQueries:
    """Tests for similarity, prefix and entity queries."""

    def test_similarity_order_and_k(self, graph_store):
        """Test that hits are most similar first and capped at k."""
        close = node("Close", unit(0, 1, 0.1))
        far = node("Far", unit(0, 1, 1.0))
        other = node("Other", unit(2))
        for n in (close, far, other):
            graph_store.create_node(n)

        hits = graph_store.similarity_query(unit(0), k=2)

        assert [h[0] for h in hits] == [close.id, far.id]
        assert hits[0][1] > hits[1][1]

    def test_similarity_filters(self, graph_store):
        """Test concept, status, time and score filters."""
        recent = node("Recent", unit(0))
        old = node("Old", unit(0), at=NOW - timedelta(days=40))
        pref = node("Pref", unit(0), concept_type=ConceptType.PREFERENCE)
        gone = node("Gone", unit(0), status=NodeStatus.SUPERSEDED)
        weak = node("Weak", unit(0, 1, 3.0))
        for n in (recent, old, pref, gone, weak):
            graph_store.create_node(n)

        hits = graph_store.similarity_query(
            unit(0),
            k=10,
            concept_filter=ConceptType.FACT,
            since=NOW - timedelta(days=30),
            statuses=[NodeStatus.ACTIVE],
            min_score=0.5,
        )

        assert [h[0] for h in hits] == [recent.id]

    def test_content_prefix(self, graph_store):
        """Test prefix lookup, newest first."""
        first = node("[INCOMPLETE] First", unit(0), at=NOW - timedelta(hours=1))
        second = node("[INCOMPLETE] Second", unit(1))
        for n in (first, second, node("Plain", unit(2))):
            graph_store.create_node(n)

        nodes = graph_store.content_prefix_query("[INCOMPLETE]")

        assert [n.id for n in nodes] == [second.id, first.id]

    def test_entity_neighbors(self, graph_store):
        """Test that shared entity mentions connect memories."""
        a, b, c = (node(x, unit(i)) for i, x in enumerate("ABC"))
        for n in (a, b, c):
            graph_store.create_node(n)
        graph_store.link_entity(a.id, "Berlin")
        graph_store.link_entity(b.id, " berlin ")
        graph_store.link_entity(b.id, "Berlin")
        graph_store.link_entity(c.id, "Paris")

        assert graph_store.entity_neighbors(a.id) == [b.id]
        assert graph_store.entity_neighbors(c.id) == []

    def test_path_query(self, graph_store):
        """Test maximal paths along the requested edge kinds."""
        a, b, c, d = (node(x, unit(i)) for i, x in enumerate("ABCD"))
        for n in (a, b, c, d):
            graph_store.create_node(n)
        for src, dst in ((a, b), (b, c), (c, a)):
            graph_store.create_edge(
                Relation(source_id=src.id, target_id=dst.id, kind=RelationKind.IMPLIES)
            )
        graph_store.create_edge(
            Relation(source_id=a.id, target_id=d.id, kind=RelationKind.RELATES_TO)
        )

        paths = graph_store.path_query(
            [RelationKind.IMPLIES], a.id, max_depth=5, direction=Direction.OUT
        )

        assert [[e.target_id for e in p] for p in paths] == [[b.id, c.id]]

        short = graph_store.path_query(
            [RelationKind.IMPLIES], a.id, max_depth=1, direction=Direction.OUT
        )
        assert [len(p) for p in short] == [1]

    def test_path_query_dense_graph_is_bounded(self, graph_store):
        """Test that a fully connected graph yields at most max_paths paths."""
        nodes = [node(f"N{i}", unit(i)) for i in range(DIM)]
        for n in nodes:
            graph_store.create_node(n)
        strong = {(0, 1), (1, 2), (2, 3)}
        for i, src in enumerate(nodes):
            for j, dst in enumerate(nodes):
                if i != j:
                    graph_store.create_edge(
                        Relation(
                            source_id=src.id,
                            target_id=dst.id,
                            kind=RelationKind.IMPLIES,
                            weight=1.0 if (i, j) in strong else 0.5,
                        )
                    )

        paths = graph_store.path_query(
            [RelationKind.IMPLIES],
            nodes[0].id,
            max_depth=DIM - 1,
            direction=Direction.OUT,
            max_paths=5,
        )

        assert len(paths) == 5
        assert all(len(p) == DIM - 1 for p in paths)
        assert [e.target_id for e in paths[0][:3]] == [n.id for n in nodes[1:4]]

    def test_path_query_rejects_empty_beam(self, graph_store):
        a = node("A", unit(0))
        graph_store.create_node(a)

        with pytest.raises(ValueError):
            graph_store.path_query([RelationKind.IMPLIES], a.id, 3, max_paths=0)
