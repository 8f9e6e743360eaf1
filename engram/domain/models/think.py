"""FastThink session models.

A session holds an arena of thoughts addressed by index. Parent links are
indices into the same arena, so the graph never holds object references.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .decision import Decision
from .enums import SessionState

INCOMPLETE_MARKER = "[INCOMPLETE]"


class ThinkLimits(BaseModel):
    """Per-session limits."""

    max_thoughts: int = Field(default=50, ge=1)
    max_depth: int = Field(default=10, ge=0)
    thinking_timeout: float = Field(default=300.0, gt=0, description="Seconds")
    session_ttl: float = Field(default=3600.0, gt=0, description="Seconds")


class Thought(BaseModel):
    """A single node of a session's reasoning graph."""

    index: int
    parent_indices: list[int] = Field(default_factory=list)
    content: str
    depth: int = 0
    timestamp: datetime
    recalled: bool = False
    source_memory_id: str | None = Field(
        None, description="Memory a recalled thought was copied from"
    )


class ThinkSession(BaseModel):
    """Volatile state of one FastThink session."""

    session_id: str
    created_at: datetime
    state: SessionState = SessionState.ACTIVE
    limits: ThinkLimits = Field(default_factory=ThinkLimits)
    thoughts: dict[int, Thought] = Field(default_factory=dict)
    next_index: int = 0
    conclusion_index: int | None = None
    topic: str | None = None

    @property
    def thought_count(self) -> int:
        return len(self.thoughts)

    @property
    def max_depth_reached(self) -> int:
        return max((t.depth for t in self.thoughts.values()), default=0)

    def ordered_thoughts(self) -> list[Thought]:
        return [self.thoughts[i] for i in sorted(self.thoughts)]

    def ancestors(self, index: int) -> list[Thought]:
        """Return index and all of its ancestors, ordered by index."""
        seen: set[int] = set()
        stack = [index]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.thoughts[current].parent_indices)
        return [self.thoughts[i] for i in sorted(seen)]


class ThinkStartResult(BaseModel):
    session_id: str
    state: SessionState
    limits: ThinkLimits


class ThinkAddResult(BaseModel):
    index: int
    thought_count: int
    depth: int


class ThinkRecallResult(BaseModel):
    recalled_count: int
    indices: list[int] = Field(default_factory=list)
    truncated: int = Field(default=0, description="Results dropped for capacity")


class ThinkConcludeResult(BaseModel):
    conclusion_index: int
    state: SessionState


class ThinkCommitResult(BaseModel):
    memory_id: str
    decision: Decision
    thoughts_processed: int
    state: SessionState = SessionState.COMMITTED


class ThinkDiscardResult(BaseModel):
    discarded_count: int
    state: SessionState = SessionState.DISCARDED


class ThinkStatus(BaseModel):
    session_id: str
    state: SessionState
    thought_count: int
    depth: int
    has_conclusion: bool
    elapsed_seconds: float
    remaining_seconds: float


class TimeoutSave(BaseModel):
    """Record of a session auto-saved after its timeout."""

    session_id: str
    memory_id: str
    reason: str
    thought_count: int
