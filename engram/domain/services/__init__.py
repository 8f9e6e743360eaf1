"""Domain Services Package.

Main components:
- DecisionEngine: ADD/UPDATE/SUPERSEDE/NOOP classification of new facts
- SearchEngine: tiered recall and reasoning chains
- SessionManager: FastThink scratchpad sessions
- MemoryService: facade for extraction and CRUD passthroughs
"""

from .comparison import Comparison, ContentComparator, ContentRelation
from .decision import DecisionEngine
from .extraction import (
    ConceptClassifier,
    ExtractedFact,
    FactExtractor,
    SentenceExtractor,
)
from .fastthink import SessionManager
from .locks import KeyedLock
from .memory import MemoryService
from .search import SearchEngine

__all__ = [
    "DecisionEngine",
    "SearchEngine",
    "SessionManager",
    "MemoryService",
    "Comparison",
    "ContentComparator",
    "ContentRelation",
    "ConceptClassifier",
    "ExtractedFact",
    "FactExtractor",
    "SentenceExtractor",
    "KeyedLock",
]
