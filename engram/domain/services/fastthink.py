"""FastThink - isolated scratchpad reasoning sessions.

A session is a volatile, index-addressed graph of thoughts. Nothing in a
session touches the memory graph until it is committed (through the
Decision Engine) or times out, in which case every thought is saved as a
single node tagged ``[INCOMPLETE]``.

State machine::

    active -> concluding -> committed | discarded
    active | concluding -> timed_out

Terminal sessions are removed immediately, so any later call on them
raises SessionNotFound. Timeouts are checked lazily at the start of every
operation and by ``sweep_expired``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..exceptions import (
    InvalidInput,
    InvalidTransition,
    LimitExceeded,
    SessionNotFound,
    SessionTimedOut,
    StoreUnavailable,
)
from ..models import (
    INCOMPLETE_MARKER,
    Candidate,
    ConceptType,
    NodeStatus,
    SearchMode,
    SessionState,
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
    utc_now,
)
from .locks import KeyedLock

if TYPE_CHECKING:
    from ...infra.embeddings import EmbeddingProvider
    from .decision import DecisionEngine
    from .search import SearchEngine

logger = logging.getLogger(__name__)

_LIVE_STATES = (SessionState.ACTIVE, SessionState.CONCLUDING)


class SessionManager:
    """Owns all FastThink sessions of a process."""

    def __init__(
        self,
        decision_engine: DecisionEngine,
        search_engine: SearchEngine,
        embedder: EmbeddingProvider,
        limits: ThinkLimits | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            decision_engine: Single writer to the memory graph.
            search_engine: Read-only recall used by think_recall.
            embedder: Embeds recall queries and committed content.
            limits: Default limits for new sessions.
            clock: Source of "now" for timeouts.
        """
        self._decisions = decision_engine
        self._search = search_engine
        self._embedder = embedder
        self._limits = limits or ThinkLimits()
        self._clock = clock
        self._sessions: dict[str, ThinkSession] = {}
        self._guard = threading.Lock()
        self._session_locks = KeyedLock()

    @property
    def session_count(self) -> int:
        with self._guard:
            return len(self._sessions)

    # =========================================================================
    # Session bookkeeping
    # =========================================================================

    def _get(self, session_id: str) -> ThinkSession:
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def _drop(self, session: ThinkSession, state: SessionState) -> None:
        session.state = state
        with self._guard:
            self._sessions.pop(session.session_id, None)

    def _elapsed(self, session: ThinkSession) -> float:
        return (self._clock() - session.created_at).total_seconds()

    @staticmethod
    def _require_state(
        session: ThinkSession, allowed: tuple[SessionState, ...], operation: str
    ) -> None:
        if session.state not in allowed:
            raise InvalidTransition(session.session_id, session.state.value, operation)

    def _open(self, session_id: str) -> ThinkSession:
        """Fetch a live session, timing it out first if it is overdue."""
        session = self._get(session_id)
        self._check_timeout(session)
        return session

    # =========================================================================
    # Timeouts
    # =========================================================================

    def _timeout_reason(self, session: ThinkSession) -> str | None:
        elapsed = self._elapsed(session)
        if elapsed > session.limits.session_ttl:
            return f"session_ttl of {session.limits.session_ttl:g}s exceeded"
        if elapsed > session.limits.thinking_timeout:
            return f"thinking_timeout of {session.limits.thinking_timeout:g}s exceeded"
        return None

    def _check_timeout(self, session: ThinkSession) -> None:
        """Auto-save and drop an overdue session.

        The session stays live if the save fails, so the next check retries.

        Raises:
            SessionTimedOut: The session was overdue and has been saved.
            StoreUnavailable: The save failed; the session is unchanged.
        """
        if session.state not in _LIVE_STATES:
            return
        reason = self._timeout_reason(session)
        if reason is None:
            return

        memory_id = self._save_incomplete(session, reason)
        self._drop(session, SessionState.TIMED_OUT)
        logger.warning(
            f"Think session {session.session_id} timed out ({reason}); "
            f"{session.thought_count} thoughts saved as {memory_id}"
        )
        raise SessionTimedOut(session.session_id, memory_id, reason)

    def _incomplete_content(self, session: ThinkSession, reason: str) -> str:
        header = f"{INCOMPLETE_MARKER} {session.topic or 'Unfinished reasoning'}"
        lines = [header, f"(auto-saved: {reason})"]
        for thought in session.ordered_thoughts():
            tag = " (recalled)" if thought.recalled else ""
            lines.append(f"[{thought.index}]{tag} {thought.content}")
        return "\n".join(lines)

    def _save_incomplete(self, session: ThinkSession, reason: str) -> str:
        content = self._incomplete_content(session, reason)
        decision = self._decisions.classify_and_apply(
            Candidate(
                content=content,
                embedding=self._embedder.embed(content),
                concept_type=ConceptType.FACT.value,
                force_add=True,
                status=NodeStatus.INCOMPLETE,
            )
        )
        return decision.node_id

    def sweep_expired(self) -> list[TimeoutSave]:
        """Check every live session for timeout.

        Sessions whose auto-save fails are left in place and retried on
        the next sweep or call.
        """
        with self._guard:
            session_ids = list(self._sessions)

        saves = []
        for session_id in session_ids:
            with self._session_locks.hold(session_id):
                with self._guard:
                    session = self._sessions.get(session_id)
                if session is None:
                    continue
                count = session.thought_count
                try:
                    self._check_timeout(session)
                except SessionTimedOut as e:
                    saves.append(
                        TimeoutSave(
                            session_id=session_id,
                            memory_id=e.memory_id,
                            reason=e.reason,
                            thought_count=count,
                        )
                    )
                except StoreUnavailable as e:
                    logger.error(
                        f"Failed to auto-save timed out session {session_id}: {e}"
                    )

        if saves:
            logger.info(f"Swept {len(saves)} timed out think sessions")
        return saves

    # =========================================================================
    # Operations
    # =========================================================================

    def think_start(
        self,
        topic: str | None = None,
        max_thoughts: int | None = None,
        max_depth: int | None = None,
        thinking_timeout: float | None = None,
        session_ttl: float | None = None,
    ) -> ThinkStartResult:
        """Create a new active session."""
        overrides = {
            "max_thoughts": max_thoughts,
            "max_depth": max_depth,
            "thinking_timeout": thinking_timeout,
            "session_ttl": session_ttl,
        }
        try:
            limits = ThinkLimits(
                **{
                    **self._limits.model_dump(),
                    **{k: v for k, v in overrides.items() if v is not None},
                }
            )
        except ValidationError as e:
            raise InvalidInput(f"Invalid session limits: {e}") from e

        session = ThinkSession(
            session_id=str(uuid.uuid4()),
            created_at=self._clock(),
            limits=limits,
            topic=topic.strip() if topic and topic.strip() else None,
        )
        with self._guard:
            self._sessions[session.session_id] = session

        logger.info(f"Started think session {session.session_id}")
        return ThinkStartResult(
            session_id=session.session_id, state=session.state, limits=limits
        )

    def _check_capacity(self, session: ThinkSession) -> int:
        remaining = session.limits.max_thoughts - session.thought_count
        if remaining <= 0:
            raise LimitExceeded(
                "max_thoughts", session.limits.max_thoughts, session.thought_count + 1
            )
        return remaining

    def _depth_for(self, session: ThinkSession, parent_indices: list[int]) -> int:
        for index in parent_indices:
            if index not in session.thoughts:
                raise InvalidInput(
                    f"Parent index {index} does not exist in session "
                    f"'{session.session_id}'"
                )
        depth = (
            1 + max(session.thoughts[i].depth for i in parent_indices)
            if parent_indices
            else 0
        )
        if depth > session.limits.max_depth:
            raise LimitExceeded("max_depth", session.limits.max_depth, depth)
        return depth

    def _append(
        self,
        session: ThinkSession,
        content: str,
        parent_indices: list[int],
        depth: int,
        source_memory_id: str | None = None,
    ) -> Thought:
        thought = Thought(
            index=session.next_index,
            parent_indices=parent_indices,
            content=content,
            depth=depth,
            timestamp=self._clock(),
            recalled=source_memory_id is not None,
            source_memory_id=source_memory_id,
        )
        session.thoughts[thought.index] = thought
        session.next_index += 1
        return thought

    def think_add(
        self,
        session_id: str,
        content: str,
        parent_indices: list[int] | None = None,
    ) -> ThinkAddResult:
        """Append an authored thought.

        Parents must be existing indices, so the thought graph stays
        acyclic. No parents makes a new root.
        """
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            self._require_state(session, (SessionState.ACTIVE,), "add thought to")

            if not content or not content.strip():
                raise InvalidInput("Thought content cannot be empty")
            self._check_capacity(session)
            parents = sorted(set(parent_indices or []))
            depth = self._depth_for(session, parents)

            thought = self._append(session, content.strip(), parents, depth)
            return ThinkAddResult(
                index=thought.index,
                thought_count=session.thought_count,
                depth=thought.depth,
            )

    def think_recall(
        self,
        session_id: str,
        query: str,
        mode: SearchMode = SearchMode.CONTEXTUAL,
        concept_filter: ConceptType | None = None,
        limit: int = 5,
        parent_index: int | None = None,
    ) -> ThinkRecallResult:
        """Attach memories matching query as recalled thoughts.

        Results beyond the session's remaining capacity are dropped and
        counted in ``truncated``.
        """
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            self._require_state(session, (SessionState.ACTIVE,), "recall into")

            if not query or not query.strip():
                raise InvalidInput("Recall query cannot be empty")
            capacity = self._check_capacity(session)
            parents = [parent_index] if parent_index is not None else []
            depth = self._depth_for(session, parents)

            results = self._search.search_memory(
                self._embedder.embed(query),
                mode=mode,
                concept_filter=concept_filter,
                limit=limit,
            )
            kept = results[:capacity]

            indices = [
                self._append(
                    session,
                    scored.node.content,
                    parents,
                    depth,
                    source_memory_id=scored.node.id,
                ).index
                for scored in kept
            ]
            logger.debug(
                f"Recalled {len(indices)} memories into session {session_id}"
            )
            return ThinkRecallResult(
                recalled_count=len(indices),
                indices=indices,
                truncated=len(results) - len(kept),
            )

    def think_conclude(
        self, session_id: str, thought_index: int | None = None
    ) -> ThinkConcludeResult:
        """Mark a thought (default: the latest) as the conclusion."""
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            self._require_state(session, (SessionState.ACTIVE,), "conclude")

            if not session.thoughts:
                raise InvalidInput("Cannot conclude a session without thoughts")
            index = max(session.thoughts) if thought_index is None else thought_index
            if index not in session.thoughts:
                raise InvalidInput(
                    f"Thought index {index} does not exist in session '{session_id}'"
                )

            session.conclusion_index = index
            session.state = SessionState.CONCLUDING
            return ThinkConcludeResult(conclusion_index=index, state=session.state)

    def _commit_content(self, session: ThinkSession, include_chain: bool) -> str:
        assert session.conclusion_index is not None
        conclusion = session.thoughts[session.conclusion_index]
        if not include_chain:
            return conclusion.content

        steps = [
            t.content
            for t in session.ancestors(conclusion.index)
            if not t.recalled and t.index != conclusion.index
        ]
        return "\n".join([*steps, conclusion.content])

    def think_commit(
        self,
        session_id: str,
        concept_type: str = ConceptType.FACT.value,
        include_chain: bool = False,
        subject_key: str | None = None,
    ) -> ThinkCommitResult:
        """Persist the conclusion through the Decision Engine.

        If the write fails the session stays in ``concluding`` and the
        commit may be retried.
        """
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            self._require_state(session, (SessionState.CONCLUDING,), "commit")

            content = self._commit_content(session, include_chain)
            decision = self._decisions.classify_and_apply(
                Candidate(
                    content=content,
                    embedding=self._embedder.embed(content),
                    concept_type=concept_type,
                    subject_key=subject_key,
                )
            )

            processed = session.thought_count
            self._drop(session, SessionState.COMMITTED)
            logger.info(
                f"Committed think session {session_id}: "
                f"{decision.decision.value} -> {decision.node_id}"
            )
            return ThinkCommitResult(
                memory_id=decision.node_id,
                decision=decision,
                thoughts_processed=processed,
            )

    def think_discard(self, session_id: str) -> ThinkDiscardResult:
        """Drop a session and its thoughts without persisting anything."""
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            self._require_state(session, _LIVE_STATES, "discard")

            count = session.thought_count
            self._drop(session, SessionState.DISCARDED)
            logger.info(f"Discarded think session {session_id} ({count} thoughts)")
            return ThinkDiscardResult(discarded_count=count)

    def think_status(self, session_id: str) -> ThinkStatus:
        """Read-only snapshot of a session."""
        with self._session_locks.hold(session_id):
            session = self._open(session_id)
            elapsed = self._elapsed(session)
            deadline = min(session.limits.thinking_timeout, session.limits.session_ttl)
            return ThinkStatus(
                session_id=session.session_id,
                state=session.state,
                thought_count=session.thought_count,
                depth=session.max_depth_reached,
                has_conclusion=session.conclusion_index is not None,
                elapsed_seconds=elapsed,
                remaining_seconds=max(0.0, deadline - elapsed),
            )
