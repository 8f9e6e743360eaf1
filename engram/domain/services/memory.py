"""Memory Service - facade over the core engines.

Coordinates fact extraction, embedding and the Decision Engine for
incoming text, and provides the plain CRUD passthroughs (get, update,
delete, link) that sit outside the decision path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ..exceptions import InvalidConceptType, InvalidInput, MemoryNotFoundError
from ..models import (
    INCOMPLETE_MARKER,
    AddMemoryResult,
    Candidate,
    ConceptType,
    Decision,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
    utc_now,
)
from .extraction import FactExtractor, SentenceExtractor

if TYPE_CHECKING:
    from ...infra.embeddings import EmbeddingProvider
    from ...infra.store import GraphStore
    from .decision import DecisionEngine

logger = logging.getLogger(__name__)


class MemoryService:
    """Entry point for storing and maintaining memories."""

    def __init__(
        self,
        store: GraphStore,
        decision_engine: DecisionEngine,
        embedder: EmbeddingProvider,
        extractor: FactExtractor | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._decisions = decision_engine
        self._embedder = embedder
        self._extractor = extractor or SentenceExtractor()
        self._clock = clock

    @staticmethod
    def _parse_concept(concept_type: str | ConceptType) -> ConceptType:
        try:
            return ConceptType(concept_type)
        except ValueError as e:
            raise InvalidConceptType(str(concept_type)) from e

    def _require(self, memory_id: str) -> MemoryNode:
        node = self._store.get_node(memory_id)
        if node is None:
            raise MemoryNotFoundError(memory_id)
        return node

    # =========================================================================
    # Writes through the Decision Engine
    # =========================================================================

    def add_memory(
        self, text: str, concept_type: str | ConceptType | None = None
    ) -> AddMemoryResult:
        """Extract facts from text and route each through the Decision Engine.

        Args:
            text: Raw text, possibly several sentences.
            concept_type: Force this concept type instead of the guessed one.

        Returns:
            One decision per extracted fact, in text order.
        """
        if not text or not text.strip():
            raise InvalidInput("Content cannot be empty")
        forced = self._parse_concept(concept_type) if concept_type else None

        facts = self._extractor.extract(text)
        result = AddMemoryResult(facts_extracted=len(facts))

        for fact in facts:
            if not fact.content or not fact.content.strip():
                logger.warning("Extractor returned an empty fact, skipping")
                continue
            decision = self._decisions.classify_and_apply(
                Candidate(
                    content=fact.content,
                    embedding=self._embedder.embed(fact.content),
                    concept_type=(forced or fact.concept_type).value,
                )
            )
            for entity in fact.entities:
                self._store.link_entity(decision.node_id, entity)
            result.decisions.append(decision)

        logger.info(
            f"add_memory: {result.facts_extracted} facts, "
            f"{len(result.decisions)} decisions"
        )
        return result

    def store_fact(
        self,
        content: str,
        concept_type: str | ConceptType = ConceptType.FACT,
        subject_key: str | None = None,
    ) -> Decision:
        """Store a single already-extracted fact."""
        if not content or not content.strip():
            raise InvalidInput("Content cannot be empty")
        concept = self._parse_concept(concept_type)
        return self._decisions.classify_and_apply(
            Candidate(
                content=content,
                embedding=self._embedder.embed(content),
                concept_type=concept.value,
                subject_key=subject_key,
            )
        )

    # =========================================================================
    # CRUD passthroughs
    # =========================================================================

    def get_memory(self, memory_id: str) -> MemoryNode:
        return self._require(memory_id)

    def update_memory(self, memory_id: str, new_content: str) -> MemoryNode:
        """Replace a memory's content, keeping its id and relations.

        An incomplete memory whose new content no longer carries the
        incomplete marker becomes active again.
        """
        if not new_content or not new_content.strip():
            raise InvalidInput("Content cannot be empty")
        node = self._require(memory_id)
        content = new_content.strip()

        with self._decisions.locks.hold(self._decisions.lock_key(node.concept_type)):
            now = self._clock()
            updated = self._store.update_node(
                memory_id,
                content=content,
                embedding=self._embedder.embed(content),
                updated_at=now,
            )
            if updated.status == NodeStatus.INCOMPLETE and not content.startswith(
                INCOMPLETE_MARKER
            ):
                self._store.set_status(memory_id, NodeStatus.ACTIVE, updated_at=now)
                updated = updated.model_copy(update={"status": NodeStatus.ACTIVE})
                logger.info(f"Memory {memory_id} is no longer incomplete")

        logger.info(f"Updated memory {memory_id}")
        return updated

    def delete_memory(self, memory_id: str) -> None:
        """Delete a memory and its relations.

        Raises:
            MemoryNotFoundError: If the memory does not exist.
        """
        node = self._require(memory_id)
        with self._decisions.locks.hold(self._decisions.lock_key(node.concept_type)):
            if not self._store.delete_node(memory_id):
                raise MemoryNotFoundError(memory_id)
        logger.info(f"Deleted memory {memory_id}")

    def link_memories(
        self,
        source_id: str,
        target_id: str,
        kind: str | RelationKind,
        reason: str | None = None,
        weight: float = 1.0,
    ) -> Relation:
        """Create a typed relation between two memories.

        SUPERSEDES edges are only created by the Decision Engine, together
        with the status change of the replaced memory.
        """
        try:
            relation_kind = (
                kind if isinstance(kind, RelationKind) else RelationKind(kind.upper())
            )
        except ValueError as e:
            raise InvalidInput(f"Invalid relation kind '{kind}'") from e
        if relation_kind == RelationKind.SUPERSEDES:
            raise InvalidInput("SUPERSEDES relations cannot be created directly")
        if source_id == target_id:
            raise InvalidInput("Cannot link a memory to itself")
        if not 0.0 <= weight <= 1.0:
            raise InvalidInput(f"Weight must be between 0 and 1, got {weight}")

        self._require(source_id)
        self._require(target_id)

        relation = Relation(
            source_id=source_id,
            target_id=target_id,
            kind=relation_kind,
            reason=reason,
            weight=weight,
            created_at=self._clock(),
        )
        self._store.create_edge(relation)
        logger.info(f"Linked {source_id} -{relation_kind.value}-> {target_id}")
        return relation

    def stats(self) -> dict[str, int]:
        """Node counts by status."""
        counts = {s.value: self._store.count_nodes(s) for s in NodeStatus}
        counts["total"] = self._store.count_nodes()
        return counts
