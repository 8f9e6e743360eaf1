"""Rule-based fact extraction.

Splits raw text into sentence-sized facts, guesses each fact's concept
type from keyword patterns and picks out capitalised names as entities.
Any object with a compatible ``extract`` method can replace it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol

from ..models import ConceptType

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")
_NAME_RE = re.compile(r"\b[A-Z][\w+#.-]*(?:\s+[A-Z][\w+#.-]*)*")


@dataclass
class ExtractedFact:
    """A fact found in raw text, before embedding."""

    content: str
    concept_type: ConceptType
    entities: list[str] = field(default_factory=list)


class FactExtractor(Protocol):
    def extract(self, text: str) -> list[ExtractedFact]: ...


class ConceptClassifier:
    """Keyword-pattern concept classification.

    A concept's score is the fraction of its keywords present in the text.
    Equal scores resolve in declaration order; FACT is the fallback.
    """

    KEYWORD_PATTERNS: dict[ConceptType, tuple[str, ...]] = {
        ConceptType.PREFERENCE: (
            "love",
            "like",
            "prefer",
            "enjoy",
            "favorite",
            "hate",
            "dislike",
        ),
        ConceptType.SKILL: (
            "can",
            "know how",
            "able to",
            "expert",
            "proficient",
            "skilled",
        ),
        ConceptType.GOAL: ("want", "plan", "goal", "aim", "intend", "wish"),
        ConceptType.OPINION: ("think", "believe", "feel", "opinion", "view"),
        ConceptType.EXPERIENCE: ("did", "went", "saw", "experienced", "happened"),
        ConceptType.ACHIEVEMENT: (
            "completed",
            "finished",
            "achieved",
            "accomplished",
            "built",
        ),
        ConceptType.FACT: ("is", "are", "was", "were", "has", "have"),
    }

    def __init__(self) -> None:
        # Keywords also match their simple inflections (likes, planned, ...)
        self._patterns = {
            concept: [
                re.compile(rf"\b{re.escape(kw)}(?:s|es|d|ed|ing)?\b")
                for kw in keywords
            ]
            for concept, keywords in self.KEYWORD_PATTERNS.items()
        }

    def scores(self, text: str) -> dict[ConceptType, float]:
        lowered = text.lower()
        result = {}
        for concept, patterns in self._patterns.items():
            matched = sum(1 for p in patterns if p.search(lowered))
            if matched:
                result[concept] = matched / len(patterns)
        return result

    def classify(self, text: str) -> ConceptType:
        scores = self.scores(text)
        if not scores:
            return ConceptType.FACT
        return max(scores, key=scores.__getitem__)


class SentenceExtractor:
    """Default extractor: one fact per sentence."""

    def __init__(
        self, classifier: ConceptClassifier | None = None, min_length: int = 3
    ) -> None:
        self._classifier = classifier or ConceptClassifier()
        self._min_length = min_length

    @staticmethod
    def split_sentences(text: str) -> list[str]:
        return [s.strip() for s in _SENTENCE_RE.split(text) if s and s.strip()]

    @staticmethod
    def extract_entities(sentence: str) -> list[str]:
        """Capitalised names, skipping a capitalised first word and "I"."""
        entities: list[str] = []
        for match in _NAME_RE.finditer(sentence):
            words = match.group(0).rstrip(".").split()
            if match.start() == 0:
                words = words[1:]
            name = " ".join(w for w in words if w != "I")
            if name and name not in entities:
                entities.append(name)
        return entities

    def extract(self, text: str) -> list[ExtractedFact]:
        facts = []
        for sentence in self.split_sentences(text):
            if len(sentence) < self._min_length:
                continue
            facts.append(
                ExtractedFact(
                    content=sentence,
                    concept_type=self._classifier.classify(sentence),
                    entities=self.extract_entities(sentence),
                )
            )
        return facts
