"""Unit tests for rule-based fact extraction."""

import pytest

from engram.domain.models import ConceptType
from engram.domain.services import ConceptClassifier, SentenceExtractor


class TestConceptClassifier:
    """Tests for ConceptClassifier."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("I love hiking in the mountains", ConceptType.PREFERENCE),
            ("She likes green tea", ConceptType.PREFERENCE),
            ("I can speak French", ConceptType.SKILL),
            ("We plan to move next year", ConceptType.GOAL),
            ("I think remote work suits me", ConceptType.OPINION),
            ("I went to Lisbon last spring", ConceptType.EXPERIENCE),
            ("I finished the marathon", ConceptType.ACHIEVEMENT),
            ("The server is in Frankfurt", ConceptType.FACT),
        ],
    )
    def test_classify(self, text, expected):
        """Test keyword classification of typical sentences."""
        assert ConceptClassifier().classify(text) == expected

    def test_no_keywords_falls_back_to_fact(self):
        """Test the FACT fallback."""
        assert ConceptClassifier().classify("Blue sky over Oslo") == ConceptType.FACT

    def test_keywords_match_whole_words(self):
        """Test that keywords do not match inside longer words."""
        scores = ConceptClassifier().scores("Cancel the canoe trip")

        assert ConceptType.SKILL not in scores

    def test_scores_are_fractions(self):
        """Test that a score is matched keywords over all keywords."""
        scores = ConceptClassifier().scores("I want to achieve my goal")

        assert scores[ConceptType.GOAL] == pytest.approx(2 / 6)


class TestSentenceExtractor:
    """Tests for SentenceExtractor."""

    def test_split_sentences(self):
        """Test splitting on terminal punctuation and newlines."""
        parts = SentenceExtractor.split_sentences(
            "I love hiking. I work at Acme!\nIs it raining?  Yes"
        )

        assert parts == ["I love hiking.", "I work at Acme!", "Is it raining?", "Yes"]

    def test_short_fragments_are_skipped(self):
        """Test that fragments below min_length are not facts."""
        facts = SentenceExtractor().extract("I love tea.\nOk")

        assert [f.content for f in facts] == ["I love tea."]

    def test_extract_assigns_concepts(self):
        """Test that each fact gets its own concept type."""
        facts = SentenceExtractor().extract(
            "I love hiking. I finished the marathon."
        )

        assert [f.concept_type for f in facts] == [
            ConceptType.PREFERENCE,
            ConceptType.ACHIEVEMENT,
        ]

    def test_entities(self):
        """Test capitalised names, excluding the first word and "I"."""
        assert SentenceExtractor.extract_entities(
            "Alice moved to Berlin with Bob."
        ) == ["Berlin", "Bob"]
        assert SentenceExtractor.extract_entities("I moved to New York") == [
            "New York"
        ]

    def test_empty_text(self):
        """Test that blank text yields no facts."""
        assert SentenceExtractor().extract("   \n  ") == []
