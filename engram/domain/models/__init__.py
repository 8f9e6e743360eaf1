"""Domain models for Engram.

This package provides all domain models, organized by concern:
- enums: ConceptType, NodeStatus, RelationKind, SearchMode, ChainMode, ...
- memory: MemoryNode, Relation, Candidate, ScoredMemory
- decision: Added, Updated, Superseded, Noop (the Decision union)
- search: mode tables, ReasoningChain, MemoryGraph
- think: FastThink session, thought and result models
"""

from .decision import AddMemoryResult, Added, Decision, Noop, Superseded, Updated
from .enums import (
    CAUSAL_KINDS,
    ChainMode,
    ConceptType,
    DecisionKind,
    Direction,
    NodeStatus,
    RelationKind,
    SearchMode,
    SessionState,
)
from .memory import Candidate, MemoryNode, Relation, ScoredMemory, utc_now
from .search import (
    CHAIN_MODES,
    SEARCH_MODES,
    ChainLink,
    ChainModeSpec,
    MemoryGraph,
    ReasoningChain,
    SearchModeSpec,
)
from .think import (
    INCOMPLETE_MARKER,
    ThinkAddResult,
    ThinkCommitResult,
    ThinkConcludeResult,
    ThinkDiscardResult,
    ThinkLimits,
    ThinkRecallResult,
    ThinkSession,
    ThinkStartResult,
    ThinkStatus,
    Thought,
    TimeoutSave,
)

__all__ = [
    # Enums
    "CAUSAL_KINDS",
    "ChainMode",
    "ConceptType",
    "DecisionKind",
    "Direction",
    "NodeStatus",
    "RelationKind",
    "SearchMode",
    "SessionState",
    # Memory graph
    "Candidate",
    "MemoryNode",
    "Relation",
    "ScoredMemory",
    "utc_now",
    # Decisions
    "AddMemoryResult",
    "Added",
    "Decision",
    "Noop",
    "Superseded",
    "Updated",
    # Search
    "CHAIN_MODES",
    "SEARCH_MODES",
    "ChainLink",
    "ChainModeSpec",
    "MemoryGraph",
    "ReasoningChain",
    "SearchModeSpec",
    # FastThink
    "INCOMPLETE_MARKER",
    "ThinkAddResult",
    "ThinkCommitResult",
    "ThinkConcludeResult",
    "ThinkDiscardResult",
    "ThinkLimits",
    "ThinkRecallResult",
    "ThinkSession",
    "ThinkStartResult",
    "ThinkStatus",
    "Thought",
    "TimeoutSave",
]
