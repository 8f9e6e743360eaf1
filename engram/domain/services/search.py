"""Search Engine - tiered recall and reasoning chains over the memory graph.

Recall seeds on vector similarity inside the mode's time window, then
expands breadth-first along relation edges and shared entities up to the
mode's graph depth. Scores decay geometrically with hop distance.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ..exceptions import InvalidInput, MemoryNotFoundError
from ..models import (
    CHAIN_MODES,
    INCOMPLETE_MARKER,
    SEARCH_MODES,
    ChainLink,
    ChainMode,
    ConceptType,
    Direction,
    MemoryGraph,
    MemoryNode,
    NodeStatus,
    ReasoningChain,
    Relation,
    RelationKind,
    ScoredMemory,
    SearchMode,
    utc_now,
)

if TYPE_CHECKING:
    from ...infra.store import GraphStore

logger = logging.getLogger(__name__)

# Kinds whose source is the effect and whose target is the cause.
_EFFECT_TO_CAUSE = frozenset({RelationKind.BECAUSE})


class SearchEngine:
    """Read-only recall over the shared memory graph."""

    def __init__(
        self,
        store: GraphStore,
        decay: float = 0.7,
        max_chain_depth: int = 10,
        max_chain_paths: int = 32,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Graph store holding the memory graph.
            decay: Per-hop score multiplier, in (0, 1).
            max_chain_depth: Largest depth a caller may request for a chain.
            max_chain_paths: Beam width for chain path search; also the most
                paths scored per call.
            clock: Source of "now" for time windows.
        """
        if not 0 < decay < 1:
            raise ValueError(f"decay must be in (0, 1), got {decay}")
        self._store = store
        self._decay = decay
        self._max_chain_depth = max_chain_depth
        self._max_chain_paths = max_chain_paths
        self._clock = clock

    # =========================================================================
    # Tiered recall
    # =========================================================================

    def search_memory(
        self,
        query_embedding: list[float],
        mode: SearchMode = SearchMode.CONTEXTUAL,
        concept_filter: ConceptType | None = None,
        limit: int | None = None,
    ) -> list[ScoredMemory]:
        """Recall memories for a query embedding.

        Args:
            query_embedding: Embedding of the query text.
            mode: Recall tier; fixes window, depth and seed parameters.
            concept_filter: Only return nodes of this concept type.
            limit: Maximum results (capped at the mode's max_results).

        Returns:
            Nodes sorted by score descending, ties by updated_at descending.
            Empty when nothing matches.
        """
        tier = SEARCH_MODES[SearchMode(mode)]
        include_superseded = mode == SearchMode.FULL
        max_results = min(limit, tier.max_results) if limit else tier.max_results

        statuses = [NodeStatus.ACTIVE, NodeStatus.INCOMPLETE]
        if include_superseded:
            statuses.append(NodeStatus.SUPERSEDED)

        since = self._clock() - tier.window if tier.window is not None else None
        seeds = self._store.similarity_query(
            query_embedding,
            k=tier.seed_k,
            concept_filter=concept_filter,
            since=since,
            statuses=statuses,
            min_score=tier.min_seed_score,
        )
        if not seeds:
            return []

        nodes: dict[str, MemoryNode | None] = {}
        best: dict[str, ScoredMemory] = {}

        for seed_id, similarity in seeds:
            for node_id, hop in self._expand(
                seed_id, tier.max_graph_depth, include_superseded, nodes
            ):
                node = nodes[node_id]
                if node is None:
                    continue
                if concept_filter is not None and node.concept_type != concept_filter:
                    continue
                score = similarity * self._decay**hop
                current = best.get(node_id)
                if current is None or score > current.score:
                    best[node_id] = ScoredMemory(
                        node=node, score=score, hop=hop, seed_id=seed_id
                    )

        results = sorted(
            best.values(),
            key=lambda m: (m.score, m.node.updated_at),
            reverse=True,
        )
        logger.debug(
            f"search_memory[{tier.description}]: {len(seeds)} seeds, "
            f"{len(results)} reached"
        )
        return results[:max_results]

    def _expand(
        self,
        seed_id: str,
        max_depth: int,
        include_superseded: bool,
        nodes: dict[str, MemoryNode | None],
    ) -> list[tuple[str, int]]:
        """Breadth-first (node_id, hop) pairs reachable from seed_id.

        Follows relation edges in both directions and co-mentioned
        entities. Superseded nodes are neither returned nor traversed
        unless include_superseded is set. Fetched nodes are cached in nodes.
        """
        reached: list[tuple[str, int]] = []
        visited = {seed_id}
        queue: deque[tuple[str, int]] = deque([(seed_id, 0)])

        while queue:
            node_id, hop = queue.popleft()
            node = self._load(node_id, nodes)
            if node is None:
                continue
            if node.status == NodeStatus.SUPERSEDED and not include_superseded:
                continue
            reached.append((node_id, hop))

            if hop >= max_depth:
                continue

            neighbor_ids = [
                edge.other_end(node_id)
                for edge in self._store.neighbors(node_id, direction=Direction.BOTH)
            ]
            neighbor_ids.extend(self._store.entity_neighbors(node_id))

            for neighbor_id in neighbor_ids:
                if neighbor_id not in visited:
                    visited.add(neighbor_id)
                    queue.append((neighbor_id, hop + 1))

        return reached

    def _load(
        self, node_id: str, nodes: dict[str, MemoryNode | None]
    ) -> MemoryNode | None:
        if node_id not in nodes:
            nodes[node_id] = self._store.get_node(node_id)
        return nodes[node_id]

    # =========================================================================
    # Reasoning chains
    # =========================================================================

    def search_reasoning_chain(
        self,
        seed_embedding: list[float],
        chain_mode: ChainMode = ChainMode.BOTH,
        max_depth: int | None = None,
        limit: int = 3,
    ) -> list[ReasoningChain]:
        """Highest-scoring causal paths from the best-matching seed node.

        A path's score is the seed similarity times the product of its edge
        weights; equal scores prefer longer paths. Links are presented
        oldest cause first.
        """
        chain_cfg = CHAIN_MODES[ChainMode(chain_mode)]
        depth = max_depth if max_depth is not None else chain_cfg.max_depth
        if not 1 <= depth <= self._max_chain_depth:
            raise InvalidInput(
                f"Chain depth must be between 1 and {self._max_chain_depth}, "
                f"got {depth}"
            )

        seeds = self._store.similarity_query(
            seed_embedding,
            k=1,
            statuses=[NodeStatus.ACTIVE, NodeStatus.INCOMPLETE],
        )
        if not seeds:
            return []
        seed_id, seed_similarity = seeds[0]

        paths = self._store.path_query(
            chain_cfg.edge_kinds,
            seed_id,
            depth,
            chain_cfg.direction,
            max_paths=max(limit, self._max_chain_paths),
        )

        scored: list[tuple[float, list[Relation]]] = []
        for path in paths:
            score = seed_similarity
            for edge in path:
                score *= edge.weight
            scored.append((score, path))
        scored.sort(key=lambda item: (item[0], len(item[1])), reverse=True)

        nodes: dict[str, MemoryNode | None] = {}
        chains = []
        for score, path in scored[:limit]:
            links, order = self._orient(seed_id, path)
            chains.append(
                ReasoningChain(
                    seed_id=seed_id,
                    seed_similarity=seed_similarity,
                    score=score,
                    links=links,
                    nodes=[
                        node
                        for node in (self._load(nid, nodes) for nid in order)
                        if node is not None
                    ],
                )
            )

        logger.debug(
            f"search_reasoning_chain[{chain_mode}]: seed {seed_id[:8]}..., "
            f"{len(paths)} paths, returning {len(chains)}"
        )
        return chains

    @staticmethod
    def _orient(
        seed_id: str, path: list[Relation]
    ) -> tuple[list[ChainLink], list[str]]:
        """Turn a path walked from seed_id into cause -> effect links.

        Returns the links and the node ids in presentation order. A path
        walked towards causes (mostly "backwards") is reversed so that the
        oldest cause comes first.
        """
        walk = [seed_id]
        links = []
        backwards = 0
        for edge in path:
            current = walk[-1]
            nxt = edge.other_end(current)
            walk.append(nxt)

            if edge.kind in _EFFECT_TO_CAUSE:
                cause, effect = edge.target_id, edge.source_id
            else:
                cause, effect = edge.source_id, edge.target_id
            if cause == nxt:
                backwards += 1
            links.append(
                ChainLink(
                    cause_id=cause, effect_id=effect, kind=edge.kind, reason=edge.reason
                )
            )

        if backwards * 2 > len(path):
            links.reverse()
            walk.reverse()
        return links, walk

    # =========================================================================
    # Lookups
    # =========================================================================

    def find_incomplete(self, limit: int = 20) -> list[MemoryNode]:
        """Memories still carrying the incomplete marker, newest first."""
        return self._store.content_prefix_query(INCOMPLETE_MARKER, limit=limit)

    def memory_graph(self, memory_id: str, depth: int = 2) -> MemoryGraph:
        """Nodes and edges within depth hops of a memory.

        Raises:
            MemoryNotFoundError: If the memory does not exist.
        """
        root = self._store.get_node(memory_id)
        if root is None:
            raise MemoryNotFoundError(memory_id)

        nodes = {root.id: root}
        edges: dict[tuple[str, str, RelationKind], Relation] = {}
        queue: deque[tuple[str, int]] = deque([(root.id, 0)])

        while queue:
            node_id, hop = queue.popleft()
            if hop >= depth:
                continue
            for edge in self._store.neighbors(node_id, direction=Direction.BOTH):
                edges.setdefault((edge.source_id, edge.target_id, edge.kind), edge)
                other = edge.other_end(node_id)
                if other in nodes:
                    continue
                node = self._store.get_node(other)
                if node is None:
                    continue
                nodes[other] = node
                queue.append((other, hop + 1))

        return MemoryGraph(nodes=list(nodes.values()), edges=list(edges.values()))
