"""Core memory graph domain models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .enums import ConceptType, NodeStatus, RelationKind


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class MemoryNode(BaseModel):
    """An atomic fact stored in the memory graph."""

    id: str = Field(..., description="Unique identifier (UUID)")
    content: str = Field(..., description="Text of the fact")
    embedding: list[float] = Field(
        default_factory=list, description="Embedding vector of the content"
    )
    concept_type: ConceptType = Field(
        default=ConceptType.FACT, description="Ontology category"
    )
    status: NodeStatus = Field(
        default=NodeStatus.ACTIVE, description="Lifecycle status"
    )
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    subject_key: str | None = Field(
        default=None, description="Comparison key used for duplicate detection"
    )

    @property
    def last_touched(self) -> datetime:
        """Latest of created_at and updated_at."""
        return max(self.created_at, self.updated_at)


class Relation(BaseModel):
    """A typed directed edge between two memory nodes."""

    source_id: str = Field(..., description="Source memory ID")
    target_id: str = Field(..., description="Target memory ID")
    kind: RelationKind = Field(..., description="Type of relationship")
    reason: str | None = Field(None, description="Reason for the edge")
    weight: float = Field(default=1.0, ge=0.0, le=1.0, description="Edge confidence")
    created_at: datetime | None = Field(None, description="When the edge was created")

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite to node_id."""
        return self.target_id if node_id == self.source_id else self.source_id


class Candidate(BaseModel):
    """A fact proposed for storage, before classification."""

    content: str
    embedding: list[float]
    concept_type: str = ConceptType.FACT.value
    subject_key: str | None = None
    force_add: bool = Field(
        default=False,
        description="Skip duplicate classification and always ADD",
    )
    status: NodeStatus = Field(
        default=NodeStatus.ACTIVE, description="Status of a newly created node"
    )


class ScoredMemory(BaseModel):
    """A memory node returned by a recall query."""

    node: MemoryNode
    score: float = Field(..., description="similarity(seed) * decay^hop")
    hop: int = Field(default=0, description="Graph distance from the seed")
    seed_id: str | None = Field(None, description="Seed the node was reached from")

    @property
    def superseded(self) -> bool:
        return self.node.status == NodeStatus.SUPERSEDED
