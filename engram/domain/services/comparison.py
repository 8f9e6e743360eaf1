"""Content comparison rule used to tell refinements from contradictions.

Two facts that already passed the similarity threshold are compared on
their content words:

1. Explicit contradiction: a word both texts share is negated in one and
   not the other ("likes coffee" -> "does not like coffee"), or one side
   of an opposite pair is dropped while the other is introduced
   ("loves cats" -> "hates cats"). Negation scope runs to the end of its
   clause, so "likes Python but not Java" only negates "Java".
2. Otherwise the content-word sets are diffed:
   - nothing added -> SAME (no new information)
   - words added, none dropped -> REFINES
   - words added and dropped -> CONTRADICTS (a conflicting value for the
     same subject, e.g. "light mode" -> "dark mode")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")
_CLAUSE_BREAK_RE = re.compile(
    r"[,;:.!?()]|\b(?:but|and|or|while|though|although|whereas)\b"
)


class ContentRelation(str, Enum):
    """How a candidate's content relates to an existing node's content."""

    SAME = "same"
    REFINES = "refines"
    CONTRADICTS = "contradicts"


@dataclass(frozen=True)
class Comparison:
    """Result of comparing two contents."""

    relation: ContentRelation
    reason: str
    explicit: bool = False  # True on a negation flip or an opposite pair
    added: frozenset[str] = field(default_factory=frozenset)
    removed: frozenset[str] = field(default_factory=frozenset)


class ContentComparator:
    """Keyword and token-diff comparison of two facts about one subject."""

    NEGATION_WORDS = frozenset(
        {
            "not",
            "no",
            "never",
            "don't",
            "doesn't",
            "didn't",
            "isn't",
            "aren't",
            "wasn't",
            "weren't",
            "won't",
            "can't",
            "cannot",
            "without",
        }
    )

    # Words that carry no fact of their own ("actually", "instead").
    DISCOURSE_MARKERS = frozenset(
        {"actually", "instead", "however", "anymore", "nowadays"}
    )

    OPPOSITE_PAIRS = (
        ("love", "hate"),
        ("like", "dislike"),
        ("prefer", "avoid"),
        ("best", "worst"),
        ("enable", "disable"),
        ("always", "never"),
        ("true", "false"),
    )

    STOPWORDS = frozenset(
        {
            "a",
            "an",
            "the",
            "is",
            "are",
            "was",
            "were",
            "be",
            "been",
            "am",
            "to",
            "of",
            "and",
            "or",
            "but",
            "in",
            "on",
            "at",
            "for",
            "with",
            "by",
            "as",
            "it",
            "its",
            "this",
            "that",
            "i",
            "my",
            "me",
            "user",
            "user's",
            "they",
            "their",
            "has",
            "have",
            "had",
            "does",
            "do",
            "did",
            "very",
            "really",
            "also",
            "now",
        }
    )

    IGNORED = STOPWORDS | NEGATION_WORDS | DISCOURSE_MARKERS

    @staticmethod
    def tokenize(text: str) -> list[str]:
        """Lowercase word tokens."""
        return _TOKEN_RE.findall(text.lower())

    @staticmethod
    def _stem(token: str) -> str:
        if len(token) > 4 and token.endswith("ies"):
            return token[:-3] + "y"
        if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
            return token[:-1]
        return token

    @staticmethod
    def _forms(term: str) -> frozenset[str]:
        """Inflections of an opposite-pair term, matched as whole tokens."""
        if term.endswith("e"):
            return frozenset({term, term + "s", term + "d", term[:-1] + "ing"})
        return frozenset(
            {
                term,
                term + "s",
                term + "ed",
                term + "ing",
                term + term[-1] + "ed",
                term + term[-1] + "ing",
            }
        )

    def content_words(self, text: str) -> frozenset[str]:
        """Stemmed tokens excluding stopwords, negations and markers."""
        return frozenset(
            self._stem(tok) for tok in self.tokenize(text) if tok not in self.IGNORED
        )

    def negated_words(self, text: str) -> frozenset[str]:
        """Content words inside a negation's scope (the rest of its clause)."""
        negated = set()
        for clause in _CLAUSE_BREAK_RE.split(text.lower()):
            in_scope = False
            for tok in self.tokenize(clause):
                if tok in self.NEGATION_WORDS:
                    in_scope = True
                elif in_scope and tok not in self.IGNORED:
                    negated.add(self._stem(tok))
        return frozenset(negated)

    def explicit_contradiction(self, existing: str, candidate: str) -> str | None:
        """Reason string if the candidate explicitly contradicts, else None."""
        shared = self.content_words(existing) & self.content_words(candidate)
        flipped = shared & (
            self.negated_words(existing) ^ self.negated_words(candidate)
        )
        if flipped:
            return f"Negation flips on: {', '.join(sorted(flipped))}"

        old_tokens = set(self.tokenize(existing))
        new_tokens = set(self.tokenize(candidate))
        old_only = old_tokens - new_tokens
        new_only = new_tokens - old_tokens

        for positive, negative in self.OPPOSITE_PAIRS:
            pos, neg = self._forms(positive), self._forms(negative)
            if (pos & old_only and neg & new_only) or (
                neg & old_only and pos & new_only
            ):
                return f"Opposite terms: {positive} vs {negative}"

        return None

    def compare(self, existing: str, candidate: str) -> Comparison:
        """Compare a candidate fact against an existing one."""
        reason = self.explicit_contradiction(existing, candidate)
        if reason is not None:
            return Comparison(ContentRelation.CONTRADICTS, reason, explicit=True)

        old_words = self.content_words(existing)
        new_words = self.content_words(candidate)
        added = new_words - old_words
        removed = old_words - new_words

        if not added:
            return Comparison(
                ContentRelation.SAME,
                "No new information",
                added=added,
                removed=removed,
            )
        if not removed:
            return Comparison(
                ContentRelation.REFINES,
                f"Adds detail: {', '.join(sorted(added))}",
                added=added,
                removed=removed,
            )
        return Comparison(
            ContentRelation.CONTRADICTS,
            f"Conflicting value: {', '.join(sorted(removed))} -> "
            f"{', '.join(sorted(added))}",
            added=added,
            removed=removed,
        )
