"""MCP Server for Engram."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, TypeVar

from mcp.server.fastmcp import FastMCP

from .container import get_container
from .domain.exceptions import EngramError, InvalidInput, SessionTimedOut
from .domain.models import (
    ChainMode,
    ConceptType,
    MemoryNode,
    ReasoningChain,
    ScoredMemory,
    SearchMode,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


# =============================================================================
# Helper Functions
# =============================================================================


def _normalize_content(content: str) -> str:
    """Normalize content that may be wrapped in MCP TextContent format.

    Some MCP clients send content as JSON array: [{"text": "...", "type": "text"}]
    """
    if not content:
        return content

    stripped = content.strip()
    if not (stripped.startswith("[") and stripped.endswith("]")):
        return content

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return content
    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict) and isinstance(first.get("text"), str):
            return _normalize_content(first["text"])
    return content


def _parse_enum(enum_cls: type[E], value: str | None, label: str) -> E | None:
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidInput(
            f"Invalid {label} '{value}'. Valid values: {[m.value for m in enum_cls]}"
        ) from e


def _error(e: EngramError) -> dict[str, Any]:
    """Convert a domain error into a tool error response."""
    result: dict[str, Any] = {
        "success": False,
        "error": str(e),
        "error_type": type(e).__name__,
    }
    if isinstance(e, SessionTimedOut):
        result["memory_id"] = e.memory_id
    return result


def _format_node(node: MemoryNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "content": node.content,
        "concept_type": node.concept_type.value,
        "status": node.status.value,
        "subject_key": node.subject_key,
        "created_at": node.created_at.isoformat(),
        "updated_at": node.updated_at.isoformat(),
    }


def _format_scored(scored: ScoredMemory) -> dict[str, Any]:
    result = _format_node(scored.node)
    result["score"] = round(scored.score, 4)
    result["hop"] = scored.hop
    if scored.superseded:
        result["superseded"] = True
    return result


def _format_chain(chain: ReasoningChain) -> dict[str, Any]:
    return {
        "seed_id": chain.seed_id,
        "score": round(chain.score, 4),
        "depth": chain.depth,
        "links": [link.model_dump(mode="json") for link in chain.links],
        "nodes": [_format_node(node) for node in chain.nodes],
        "reasoning_trail": chain.reasoning_trail(),
    }


# =============================================================================
# Server Setup
# =============================================================================

SERVER_INSTRUCTIONS = """\
Engram is a long-lived memory graph of atomic facts, entities and causal relations.

## Storing
- `engram_add_memory` splits text into facts; `engram_store_fact` stores one fact.
- Every write is classified against existing memory as ADD, UPDATE, SUPERSEDE or
  NOOP, so re-stating a known fact never creates a duplicate.

## Recalling
- `engram_search_memory` modes: recent (4h), contextual (30d), deep (90d),
  full (all history, including superseded facts).
- `engram_search_reasoning_chain` follows IMPLIES/BECAUSE/CONTRADICTS edges.

## FastThink
Use `think_start` -> `think_add`/`think_recall` -> `think_conclude` ->
`think_commit` for scratchpad reasoning that only reaches memory on commit.
Sessions that time out are saved with an [INCOMPLETE] marker; find them again
with `engram_find_incomplete`.
"""

mcp = FastMCP(
    "engram",
    instructions=SERVER_INSTRUCTIONS,
)


# =============================================================================
# Health Check Tools
# =============================================================================


@mcp.tool(name="ping")
def ping() -> dict[str, Any]:
    """Health check - verify Engram is running."""
    try:
        stats = get_container().memory_service.stats()
    except EngramError as e:
        return _error(e)
    return {"status": "ok", "message": "Engram is operational", "memories": stats}


# =============================================================================
# Memory Tools
# =============================================================================


@mcp.tool(name="engram_add_memory")
def add_memory(content: str, concept_type: str | None = None) -> dict[str, Any]:
    """Extract facts from text and store each one.

    Args:
        content: Raw text; each sentence becomes a candidate fact.
        concept_type: Force a concept type (skill, preference, goal, fact,
            opinion, experience, achievement) instead of the guessed one.

    Returns:
        One decision (ADD/UPDATE/SUPERSEDE/NOOP) per extracted fact.
    """
    try:
        concept = _parse_enum(ConceptType, concept_type, "concept type")
        result = get_container().memory_service.add_memory(
            _normalize_content(content), concept_type=concept
        )
    except EngramError as e:
        return _error(e)

    return {
        "success": True,
        "facts_extracted": result.facts_extracted,
        "decisions": [d.model_dump(mode="json") for d in result.decisions],
    }


@mcp.tool(name="engram_store_fact")
def store_fact(
    content: str,
    concept_type: str = "fact",
    subject_key: str | None = None,
) -> dict[str, Any]:
    """Store a single fact through the decision engine.

    Args:
        content: The fact.
        concept_type: Ontology category of the fact.
        subject_key: Optional key naming what the fact is about, so facts
            about different subjects are never merged.

    Returns:
        The decision and the memory id to refer to.
    """
    try:
        decision = get_container().memory_service.store_fact(
            _normalize_content(content),
            concept_type=concept_type,
            subject_key=subject_key,
        )
    except EngramError as e:
        return _error(e)

    return {
        "success": True,
        "memory_id": decision.node_id,
        "decision": decision.model_dump(mode="json"),
    }


@mcp.tool(name="engram_search_memory")
def search_memory(
    query: str,
    mode: str = "contextual",
    concept_type: str | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """Recall memories by meaning, recency and graph proximity.

    Args:
        query: What to look for.
        mode: recent, contextual, deep or full.
        concept_type: Optional concept type filter.
        limit: Maximum results (capped per mode).
    """
    try:
        search_mode = (
            _parse_enum(SearchMode, mode, "search mode") or SearchMode.CONTEXTUAL
        )
        concept = _parse_enum(ConceptType, concept_type, "concept type")
        container = get_container()
        results = container.search_engine.search_memory(
            container.embedding_engine.embed(query),
            mode=search_mode,
            concept_filter=concept,
            limit=limit,
        )
    except EngramError as e:
        return _error(e)

    return {
        "success": True,
        "mode": search_mode.value,
        "count": len(results),
        "memories": [_format_scored(r) for r in results],
    }


@mcp.tool(name="engram_search_by_concept")
def search_by_concept(
    query: str,
    concept_type: str,
    mode: str = "contextual",
    limit: int | None = None,
) -> dict[str, Any]:
    """Recall memories of one concept type (e.g. only preferences)."""
    if not concept_type:
        return _error(InvalidInput("concept_type is required"))
    return search_memory(query, mode=mode, concept_type=concept_type, limit=limit)


@mcp.tool(name="engram_search_reasoning_chain")
def search_reasoning_chain(
    query: str,
    chain_mode: str = "both",
    max_depth: int | None = None,
    limit: int = 3,
) -> dict[str, Any]:
    """Find causal reasoning chains around the best-matching memory.

    Args:
        query: Text used to pick the seed memory.
        chain_mode: causal (why?), forward (what follows?), both, or deep.
        max_depth: Maximum chain length (default per mode).
        limit: Number of chains to return.
    """
    try:
        mode = _parse_enum(ChainMode, chain_mode, "chain mode") or ChainMode.BOTH
        container = get_container()
        chains = container.search_engine.search_reasoning_chain(
            container.embedding_engine.embed(query),
            chain_mode=mode,
            max_depth=max_depth,
            limit=limit,
        )
    except EngramError as e:
        return _error(e)

    return {
        "success": True,
        "chain_mode": mode.value,
        "chains": [_format_chain(c) for c in chains],
    }


@mcp.tool(name="engram_get_memory")
def get_memory(memory_id: str) -> dict[str, Any]:
    """Get a specific memory by its ID."""
    try:
        node = get_container().memory_service.get_memory(memory_id)
    except EngramError as e:
        return _error(e)
    return {"success": True, "memory": _format_node(node)}


@mcp.tool(name="engram_update_memory")
def update_memory(memory_id: str, content: str) -> dict[str, Any]:
    """Replace the content of a memory, keeping its id and relations.

    Removing the [INCOMPLETE] marker from an auto-saved memory marks it
    active again.
    """
    try:
        node = get_container().memory_service.update_memory(
            memory_id, _normalize_content(content)
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, "memory": _format_node(node)}


@mcp.tool(name="engram_delete_memory")
def delete_memory(memory_id: str) -> dict[str, Any]:
    """Delete a memory and its relations."""
    try:
        get_container().memory_service.delete_memory(memory_id)
    except EngramError as e:
        return _error(e)
    return {"success": True, "message": f"Memory '{memory_id}' deleted"}


@mcp.tool(name="engram_link_memories")
def link_memories(
    source_id: str,
    target_id: str,
    relation_type: str = "RELATES_TO",
    reason: str | None = None,
    weight: float = 1.0,
) -> dict[str, Any]:
    """Create a typed relationship between two memories.

    Args:
        source_id: Source memory ID.
        target_id: Target memory ID.
        relation_type: IMPLIES, BECAUSE, CONTRADICTS, RELATES_TO, SUPPORTS
            or REFUTES.
        reason: Optional reason for the link.
        weight: Confidence in the link, 0 to 1.
    """
    try:
        relation = get_container().memory_service.link_memories(
            source_id, target_id, relation_type, reason=reason, weight=weight
        )
    except EngramError as e:
        return _error(e)
    return {
        "success": True,
        "message": f"Linked '{source_id}' -> '{target_id}' ({relation.kind.value})",
    }


@mcp.tool(name="engram_get_memory_graph")
def get_memory_graph(memory_id: str, depth: int = 2) -> dict[str, Any]:
    """Get the nodes and edges around a memory."""
    try:
        graph = get_container().search_engine.memory_graph(memory_id, depth=depth)
    except EngramError as e:
        return _error(e)
    return {
        "success": True,
        "nodes": [_format_node(n) for n in graph.nodes],
        "edges": [e.model_dump(mode="json") for e in graph.edges],
    }


@mcp.tool(name="engram_find_incomplete")
def find_incomplete(limit: int = 20) -> dict[str, Any]:
    """List reasoning sessions that were auto-saved after a timeout."""
    try:
        nodes = get_container().search_engine.find_incomplete(limit=limit)
    except EngramError as e:
        return _error(e)
    return {
        "success": True,
        "count": len(nodes),
        "memories": [_format_node(n) for n in nodes],
    }


# =============================================================================
# FastThink Tools
# =============================================================================


@mcp.tool(name="think_start")
def think_start(
    topic: str | None = None,
    max_thoughts: int | None = None,
    max_depth: int | None = None,
    thinking_timeout: float | None = None,
) -> dict[str, Any]:
    """Start an isolated scratchpad reasoning session.

    Nothing is written to memory until think_commit. Sessions left alone
    past their timeout are saved with an [INCOMPLETE] marker.
    """
    try:
        manager = get_container().session_manager
        manager.sweep_expired()
        result = manager.think_start(
            topic=topic,
            max_thoughts=max_thoughts,
            max_depth=max_depth,
            thinking_timeout=thinking_timeout,
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_add")
def think_add(
    session_id: str,
    content: str,
    parent_indices: list[int] | None = None,
) -> dict[str, Any]:
    """Add a thought, optionally building on earlier thoughts by index."""
    try:
        result = get_container().session_manager.think_add(
            session_id, _normalize_content(content), parent_indices=parent_indices
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_recall")
def think_recall(
    session_id: str,
    query: str,
    mode: str = "contextual",
    concept_type: str | None = None,
    limit: int = 5,
    parent_index: int | None = None,
) -> dict[str, Any]:
    """Pull matching memories into the session as recalled thoughts."""
    try:
        search_mode = (
            _parse_enum(SearchMode, mode, "search mode") or SearchMode.CONTEXTUAL
        )
        concept = _parse_enum(ConceptType, concept_type, "concept type")
        result = get_container().session_manager.think_recall(
            session_id,
            query,
            mode=search_mode,
            concept_filter=concept,
            limit=limit,
            parent_index=parent_index,
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_conclude")
def think_conclude(session_id: str, thought_index: int | None = None) -> dict[str, Any]:
    """Mark a thought (default: the latest) as the session's conclusion."""
    try:
        result = get_container().session_manager.think_conclude(
            session_id, thought_index=thought_index
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_commit")
def think_commit(
    session_id: str,
    concept_type: str = "fact",
    include_chain: bool = False,
    subject_key: str | None = None,
) -> dict[str, Any]:
    """Store the conclusion in memory and close the session.

    Args:
        session_id: Session to commit.
        concept_type: Concept type of the stored conclusion.
        include_chain: Also store the authored thoughts leading to it.
        subject_key: Optional comparison key for duplicate detection.
    """
    try:
        result = get_container().session_manager.think_commit(
            session_id,
            concept_type=concept_type,
            include_chain=include_chain,
            subject_key=subject_key,
        )
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_discard")
def think_discard(session_id: str) -> dict[str, Any]:
    """Drop a session without storing anything."""
    try:
        result = get_container().session_manager.think_discard(session_id)
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}


@mcp.tool(name="think_status")
def think_status(session_id: str) -> dict[str, Any]:
    """Get a snapshot of a session."""
    try:
        result = get_container().session_manager.think_status(session_id)
    except EngramError as e:
        return _error(e)
    return {"success": True, **result.model_dump(mode="json")}
