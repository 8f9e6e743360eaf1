"""Custom exceptions for Engram."""

from __future__ import annotations


class EngramError(Exception):
    """Base exception for Engram."""

    pass


class StoreUnavailable(EngramError):
    """Raised when the graph store cannot be reached.

    Transient: the caller may retry the same operation.
    """

    pass


class InvalidInput(EngramError):
    """Raised when input validation fails."""

    pass


class InvalidConceptType(InvalidInput):
    """Raised when a concept type is outside the ontology."""

    def __init__(self, concept_type: str) -> None:
        self.concept_type = concept_type
        super().__init__(f"Invalid concept type '{concept_type}'")


class MemoryNotFoundError(EngramError):
    """Raised when a memory is not found."""

    def __init__(self, memory_id: str) -> None:
        self.memory_id = memory_id
        super().__init__(f"Memory with ID '{memory_id}' not found")


class SessionNotFound(EngramError):
    """Raised when a think session does not exist (or no longer exists)."""

    def __init__(self, session_id: str, message: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(message or f"Think session '{session_id}' not found")


class SessionTimedOut(SessionNotFound):
    """Raised by the call that found a session past its timeout.

    The session's thoughts were saved as an incomplete memory before the
    session was dropped.
    """

    def __init__(self, session_id: str, memory_id: str, reason: str) -> None:
        self.memory_id = memory_id
        self.reason = reason
        super().__init__(
            session_id,
            f"Think session '{session_id}' timed out ({reason}); "
            f"thoughts saved as incomplete memory '{memory_id}'",
        )


class InvalidTransition(EngramError):
    """Raised when an operation is not allowed in the session's state."""

    def __init__(self, session_id: str, state: str, operation: str) -> None:
        self.session_id = session_id
        self.state = state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} session '{session_id}' in state '{state}'"
        )


class LimitExceeded(EngramError):
    """Raised when a think session limit would be exceeded."""

    def __init__(self, limit: str, value: int, attempted: int) -> None:
        self.limit = limit
        self.value = value
        self.attempted = attempted
        super().__init__(f"{limit} exceeded (limit {value}, attempted {attempted})")
