"""Enumeration types for Engram domain models."""

from enum import Enum


class ConceptType(str, Enum):
    """Ontology category of a memory node."""

    SKILL = "skill"  # Things the user can do
    PREFERENCE = "preference"  # Likes, dislikes, choices
    GOAL = "goal"  # Plans and intentions
    FACT = "fact"  # Plain statements
    OPINION = "opinion"  # Beliefs and views
    EXPERIENCE = "experience"  # Things that happened
    ACHIEVEMENT = "achievement"  # Things that were completed


class NodeStatus(str, Enum):
    """Lifecycle status of a memory node."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"
    INCOMPLETE = "incomplete"  # Auto-saved from a timed-out think session


class RelationKind(str, Enum):
    """Type of directed edge between memories.

    Causal relationships:
        IMPLIES: source leads to target (source is the cause)
        BECAUSE: source holds because of target (target is the cause)
        CONTRADICTS: source contradicts target

    Structural relationships:
        SUPERSEDES: source replaces target (target is superseded)
        RELATES_TO: generic association
        SUPPORTS / REFUTES: evidence for or against the target
    """

    IMPLIES = "IMPLIES"
    BECAUSE = "BECAUSE"
    CONTRADICTS = "CONTRADICTS"
    SUPERSEDES = "SUPERSEDES"
    RELATES_TO = "RELATES_TO"
    SUPPORTS = "SUPPORTS"
    REFUTES = "REFUTES"


CAUSAL_KINDS = frozenset(
    {RelationKind.IMPLIES, RelationKind.BECAUSE, RelationKind.CONTRADICTS}
)


class Direction(str, Enum):
    """Edge direction followed during traversal."""

    OUT = "out"
    IN = "in"
    BOTH = "both"


class SearchMode(str, Enum):
    """Recall tier, from cheapest to most exhaustive."""

    RECENT = "recent"
    CONTEXTUAL = "contextual"
    DEEP = "deep"
    FULL = "full"


class ChainMode(str, Enum):
    """Reasoning chain traversal mode."""

    CAUSAL = "causal"  # Why? Follow BECAUSE edges
    FORWARD = "forward"  # What follows? Follow IMPLIES edges
    BOTH = "both"
    DEEP = "deep"


class DecisionKind(str, Enum):
    """Outcome of classifying a candidate fact."""

    ADD = "ADD"
    UPDATE = "UPDATE"
    SUPERSEDE = "SUPERSEDE"
    NOOP = "NOOP"


class SessionState(str, Enum):
    """FastThink session state."""

    ACTIVE = "active"
    CONCLUDING = "concluding"
    COMMITTED = "committed"
    DISCARDED = "discarded"
    TIMED_OUT = "timed_out"
