"""Decision Engine - classifies incoming facts against existing memory.

Every write to the shared memory graph goes through
``DecisionEngine.classify_and_apply``. It finds active nodes of the same
concept type above the duplicate threshold, compares the candidate with
the best match and applies exactly one of ADD, UPDATE, SUPERSEDE or NOOP.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ..exceptions import InvalidConceptType, InvalidInput
from ..models import (
    Added,
    Candidate,
    ConceptType,
    Decision,
    MemoryNode,
    NodeStatus,
    Noop,
    Superseded,
    Updated,
    utc_now,
)
from .comparison import ContentComparator, ContentRelation
from .locks import KeyedLock

if TYPE_CHECKING:
    from ...infra.store import GraphStore

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Decides ADD/UPDATE/SUPERSEDE/NOOP for candidate facts and applies it."""

    def __init__(
        self,
        store: GraphStore,
        embedding_dimension: int | None = None,
        duplicate_threshold: float = 0.90,
        noop_threshold: float = 0.98,
        top_k: int = 5,
        comparator: ContentComparator | None = None,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Graph store holding the memory graph.
            embedding_dimension: Expected embedding length (None: unchecked).
            duplicate_threshold: Similarity at which nodes count as duplicates.
            noop_threshold: Similarity at or above which a candidate without an
                explicit contradiction is a NOOP.
            top_k: Number of duplicate candidates fetched per call.
            comparator: Content comparison rule.
            locks: Write serialization map, shared with other writers.
            clock: Source of timestamps.
        """
        self._store = store
        self._dimension = embedding_dimension
        self._duplicate_threshold = duplicate_threshold
        self._noop_threshold = noop_threshold
        self._top_k = top_k
        self._comparator = comparator or ContentComparator()
        self._locks = locks if locks is not None else KeyedLock()
        self._clock = clock

    @property
    def duplicate_threshold(self) -> float:
        return self._duplicate_threshold

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate(self, candidate: Candidate) -> ConceptType:
        if not candidate.content or not candidate.content.strip():
            raise InvalidInput("Content cannot be empty")

        try:
            concept_type = ConceptType(candidate.concept_type)
        except ValueError as e:
            raise InvalidConceptType(candidate.concept_type) from e

        if not candidate.embedding:
            raise InvalidInput("Embedding cannot be empty")
        if self._dimension is not None and len(candidate.embedding) != self._dimension:
            raise InvalidInput(
                f"Embedding dimension mismatch (expected {self._dimension}, "
                f"got {len(candidate.embedding)})"
            )
        return concept_type

    @staticmethod
    def lock_key(concept_type: ConceptType) -> str:
        """Serialization key for writes.

        Duplicate detection is scoped to one concept type, so serializing
        per concept type keeps two candidates from both seeing "no
        duplicate" for the same fact.
        """
        return f"concept:{concept_type.value}"

    # =========================================================================
    # Classification
    # =========================================================================

    def classify_and_apply(self, candidate: Candidate) -> Decision:
        """Classify a candidate fact and apply the resulting write.

        Raises:
            InvalidInput: Empty content or wrong embedding dimension.
            InvalidConceptType: concept_type outside the ontology.
            StoreUnavailable: The graph store could not be reached.
        """
        concept_type = self._validate(candidate)

        with self._locks.hold(self.lock_key(concept_type)):
            if candidate.force_add:
                return self._add(candidate, concept_type, "Forced add")

            matches = self._find_duplicates(candidate, concept_type)
            if not matches:
                return self._add(
                    candidate,
                    concept_type,
                    f"No memories above {self._duplicate_threshold} similarity",
                )

            target, similarity = matches[0]
            ambiguous_ids = [node.id for node, _ in matches[1:]]
            if ambiguous_ids:
                logger.warning(
                    f"Ambiguous duplicate: {len(matches)} nodes qualified; "
                    f"acting on {target.id} (similarity={similarity:.3f}), "
                    f"others={ambiguous_ids}"
                )

            comparison = self._comparator.compare(target.content, candidate.content)
            logger.debug(
                f"Compared with {target.id[:8]}...: {comparison.relation.value} "
                f"({comparison.reason})"
            )

            decision: Decision
            if comparison.explicit:
                decision = self._supersede(
                    candidate, concept_type, target, comparison.reason
                )
            elif similarity >= self._noop_threshold:
                decision = Noop(node_id=target.id, reason="Near-identical content")
            elif comparison.relation == ContentRelation.CONTRADICTS:
                decision = self._supersede(
                    candidate, concept_type, target, comparison.reason
                )
            elif comparison.relation == ContentRelation.REFINES:
                decision = self._update(candidate, target, comparison.reason)
            else:
                decision = Noop(node_id=target.id, reason=comparison.reason)

            decision.similarity = similarity
            decision.ambiguous_ids = ambiguous_ids
            logger.info(
                f"Decision {decision.decision.value} -> {decision.node_id} "
                f"({decision.reason})"
            )
            return decision

    def _find_duplicates(
        self, candidate: Candidate, concept_type: ConceptType
    ) -> list[tuple[MemoryNode, float]]:
        """Active same-type nodes above the duplicate threshold, best first.

        Ties on similarity break by most recent updated_at.
        """
        hits = self._store.similarity_query(
            candidate.embedding,
            k=self._top_k,
            concept_filter=concept_type,
            statuses=[NodeStatus.ACTIVE],
            min_score=self._duplicate_threshold,
        )

        matches: list[tuple[MemoryNode, float]] = []
        for node_id, similarity in hits:
            node = self._store.get_node(node_id)
            if node is None or node.status != NodeStatus.ACTIVE:
                continue
            if (
                candidate.subject_key
                and node.subject_key
                and node.subject_key != candidate.subject_key
            ):
                continue
            matches.append((node, similarity))

        matches.sort(key=lambda m: (m[1], m[0].updated_at), reverse=True)
        return matches

    # =========================================================================
    # Writes (exactly one store call each)
    # =========================================================================

    def _new_node(self, candidate: Candidate, concept_type: ConceptType) -> MemoryNode:
        now = self._clock()
        return MemoryNode(
            id=str(uuid.uuid4()),
            content=candidate.content.strip(),
            embedding=list(candidate.embedding),
            concept_type=concept_type,
            status=candidate.status,
            created_at=now,
            updated_at=now,
            subject_key=candidate.subject_key,
        )

    def _add(
        self, candidate: Candidate, concept_type: ConceptType, reason: str
    ) -> Added:
        node = self._new_node(candidate, concept_type)
        self._store.create_node(node)
        logger.info(f"Decision ADD -> {node.id} ({reason})")
        return Added(node_id=node.id, reason=reason)

    def _update(self, candidate: Candidate, target: MemoryNode, reason: str) -> Updated:
        merged = candidate.content.strip()
        self._store.update_node(
            target.id,
            content=merged,
            embedding=list(candidate.embedding),
            updated_at=self._clock(),
        )
        return Updated(node_id=target.id, merged_content=merged, reason=reason)

    def _supersede(
        self,
        candidate: Candidate,
        concept_type: ConceptType,
        target: MemoryNode,
        reason: str,
    ) -> Superseded:
        node = self._new_node(candidate, concept_type)
        self._store.supersede(node, target.id, reason=reason)
        return Superseded(node_id=node.id, superseded_id=target.id, reason=reason)
