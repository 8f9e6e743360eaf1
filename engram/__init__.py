"""Engram - memory consolidation and scratchpad reasoning for AI agents."""

__version__ = "0.1.0"
