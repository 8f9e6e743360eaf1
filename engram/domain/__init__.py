"""Domain layer - Core business logic and models."""

from .exceptions import (
    EngramError,
    InvalidConceptType,
    InvalidInput,
    InvalidTransition,
    LimitExceeded,
    MemoryNotFoundError,
    SessionNotFound,
    SessionTimedOut,
    StoreUnavailable,
)
from .models import (
    Candidate,
    ConceptType,
    Decision,
    MemoryNode,
    NodeStatus,
    Relation,
    RelationKind,
    ScoredMemory,
    SearchMode,
    SessionState,
)

__all__ = [
    # Exceptions
    "EngramError",
    "InvalidConceptType",
    "InvalidInput",
    "InvalidTransition",
    "LimitExceeded",
    "MemoryNotFoundError",
    "SessionNotFound",
    "SessionTimedOut",
    "StoreUnavailable",
    # Models
    "Candidate",
    "ConceptType",
    "Decision",
    "MemoryNode",
    "NodeStatus",
    "Relation",
    "RelationKind",
    "ScoredMemory",
    "SearchMode",
    "SessionState",
]
