"""Decision outcome models.

A decision is a closed tagged union discriminated on ``decision``; each
variant carries only the payload that makes sense for it.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .enums import DecisionKind


class _DecisionBase(BaseModel):
    node_id: str = Field(..., description="Memory id the caller should refer to")
    reason: str = Field(default="", description="Why this decision was taken")
    similarity: float | None = Field(
        None, description="Similarity to the matched node, if any"
    )
    ambiguous_ids: list[str] = Field(
        default_factory=list,
        description="Other nodes that also qualified as duplicates",
    )


class Added(_DecisionBase):
    """A new node was created."""

    decision: Literal[DecisionKind.ADD] = DecisionKind.ADD


class Updated(_DecisionBase):
    """The candidate refined an existing node, which kept its id."""

    decision: Literal[DecisionKind.UPDATE] = DecisionKind.UPDATE
    merged_content: str


class Superseded(_DecisionBase):
    """A new node replaced an existing one."""

    decision: Literal[DecisionKind.SUPERSEDE] = DecisionKind.SUPERSEDE
    superseded_id: str


class Noop(_DecisionBase):
    """The candidate added nothing; node_id is the existing node."""

    decision: Literal[DecisionKind.NOOP] = DecisionKind.NOOP


Decision = Annotated[
    Union[Added, Updated, Superseded, Noop], Field(discriminator="decision")
]


class AddMemoryResult(BaseModel):
    """Outcome of extracting and storing facts from raw text."""

    facts_extracted: int = 0
    decisions: list[Decision] = Field(default_factory=list)

    def count(self, kind: DecisionKind) -> int:
        return sum(1 for d in self.decisions if d.decision == kind)
