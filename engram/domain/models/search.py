"""Search mode table and recall result models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from pydantic import BaseModel, Field

from .enums import ChainMode, Direction, RelationKind, SearchMode
from .memory import MemoryNode, Relation


@dataclass(frozen=True)
class SearchModeSpec:
    """Fixed parameters of one recall tier."""

    window: timedelta | None
    max_graph_depth: int
    seed_k: int
    min_seed_score: float
    max_results: int
    description: str


SEARCH_MODES: dict[SearchMode, SearchModeSpec] = {
    SearchMode.RECENT: SearchModeSpec(
        window=timedelta(hours=4),
        max_graph_depth=1,
        seed_k=5,
        min_seed_score=0.6,
        max_results=10,
        description="Fast recent memories (4 hours) + nearest graph",
    ),
    SearchMode.CONTEXTUAL: SearchModeSpec(
        window=timedelta(days=30),
        max_graph_depth=2,
        seed_k=10,
        min_seed_score=0.5,
        max_results=20,
        description="Balanced search (30 days) + moderate graph",
    ),
    SearchMode.DEEP: SearchModeSpec(
        window=timedelta(days=90),
        max_graph_depth=3,
        seed_k=15,
        min_seed_score=0.4,
        max_results=50,
        description="Deep search (90 days) + extensive graph",
    ),
    SearchMode.FULL: SearchModeSpec(
        window=None,
        max_graph_depth=4,
        seed_k=50,
        min_seed_score=0.0,
        max_results=100,
        description="Complete history + full graph traversal",
    ),
}


@dataclass(frozen=True)
class ChainModeSpec:
    """Edge kinds and direction followed by a reasoning chain mode."""

    edge_kinds: frozenset[RelationKind]
    direction: Direction
    max_depth: int


CHAIN_MODES: dict[ChainMode, ChainModeSpec] = {
    ChainMode.CAUSAL: ChainModeSpec(
        edge_kinds=frozenset({RelationKind.BECAUSE}),
        direction=Direction.OUT,
        max_depth=5,
    ),
    ChainMode.FORWARD: ChainModeSpec(
        edge_kinds=frozenset({RelationKind.IMPLIES}),
        direction=Direction.OUT,
        max_depth=5,
    ),
    ChainMode.BOTH: ChainModeSpec(
        edge_kinds=frozenset(
            {RelationKind.IMPLIES, RelationKind.BECAUSE, RelationKind.CONTRADICTS}
        ),
        direction=Direction.BOTH,
        max_depth=5,
    ),
    ChainMode.DEEP: ChainModeSpec(
        edge_kinds=frozenset(
            {
                RelationKind.IMPLIES,
                RelationKind.BECAUSE,
                RelationKind.CONTRADICTS,
                RelationKind.SUPPORTS,
                RelationKind.REFUTES,
            }
        ),
        direction=Direction.BOTH,
        max_depth=7,
    ),
}


class ChainLink(BaseModel):
    """One edge of a reasoning chain, oriented cause -> effect."""

    cause_id: str
    effect_id: str
    kind: RelationKind
    reason: str | None = None


class ReasoningChain(BaseModel):
    """An ordered path of relations derived from a seed memory."""

    seed_id: str
    seed_similarity: float
    score: float
    links: list[ChainLink] = Field(default_factory=list)
    nodes: list[MemoryNode] = Field(
        default_factory=list, description="Nodes in presentation order"
    )

    @property
    def depth(self) -> int:
        return len(self.links)

    def reasoning_trail(self) -> str:
        """Render the chain as one line per link."""
        contents = {node.id: node.content for node in self.nodes}
        lines = []
        for i, link in enumerate(self.links, start=1):
            cause = contents.get(link.cause_id, link.cause_id)
            effect = contents.get(link.effect_id, link.effect_id)
            lines.append(f"[{i}] {cause} -{link.kind.value}-> {effect}")
        return "\n".join(lines)


class MemoryGraph(BaseModel):
    """Nodes and edges around a memory, for visualisation."""

    nodes: list[MemoryNode] = Field(default_factory=list)
    edges: list[Relation] = Field(default_factory=list)
