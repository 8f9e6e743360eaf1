"""Unit tests for the content comparison rule."""

import pytest

from engram.domain.services import ContentComparator, ContentRelation


@pytest.fixture
def comparator():
    return ContentComparator()


class TestExplicitContradiction:
    """Tests for negation flips and opposite pairs."""

    @pytest.mark.parametrize(
        "existing,candidate",
        [
            ("User likes coffee", "User does not like coffee"),
            ("User drinks alcohol", "User no longer drinks alcohol"),
            ("User loves cats", "User hates cats"),
            ("Dark mode is enabled", "Dark mode is disabled"),
            ("User is not vegetarian", "User is vegetarian"),
        ],
    )
    def test_explicit(self, comparator, existing, candidate):
        """Test contradictions that need no token diff."""
        comparison = comparator.compare(existing, candidate)

        assert comparison.relation == ContentRelation.CONTRADICTS
        assert comparison.explicit

    def test_both_negated_is_not_explicit(self, comparator):
        """Test that matching polarity is not a contradiction by itself."""
        comparison = comparator.compare(
            "User does not eat meat", "User never eats meat"
        )

        assert not comparison.explicit
        assert comparison.relation == ContentRelation.SAME

    @pytest.mark.parametrize(
        "existing,candidate",
        [
            ("User likes Python", "User likes Python but not Java"),
            ("User uses vim", "User uses vim without plugins"),
            (
                "User likes tea and dislikes coffee",
                "User likes tea and dislikes coffee and milk",
            ),
            (
                "Release is likely next week",
                "Release is likely next week because the team dislikes delays",
            ),
            (
                "User prefers dark mode",
                "User prefers dark mode, actually in every editor",
            ),
        ],
    )
    def test_added_detail_refines(self, comparator, existing, candidate):
        """Test that new negations, opposites or markers on new words refine."""
        comparison = comparator.compare(existing, candidate)

        assert not comparison.explicit
        assert comparison.relation == ContentRelation.REFINES

    def test_negation_scope_ends_at_clause(self, comparator):
        """Test that a negation only covers the rest of its clause."""
        assert comparator.negated_words("User likes Python, but not Java") == {
            "java"
        }
        assert comparator.negated_words("User doesn't drink coffee") == {
            "drink",
            "coffee",
        }

    def test_opposites_match_whole_words(self, comparator):
        """Test that "likely" is not a form of "like"."""
        assert (
            comparator.explicit_contradiction(
                "Rain is likely today", "User dislikes rain today"
            )
            is None
        )

    def test_marker_alone_is_not_explicit(self, comparator):
        """Test that "actually" with the same facts is no contradiction."""
        comparison = comparator.compare(
            "User lives in Rome", "Actually the user lives in Rome"
        )

        assert not comparison.explicit
        assert comparison.relation == ContentRelation.SAME


class TestTokenDiff:
    """Tests for the content-word diff."""

    def test_same(self, comparator):
        """Test that stopwords and plurals do not count as new words."""
        comparison = comparator.compare("User likes cats", "The user likes a cat")

        assert comparison.relation == ContentRelation.SAME

    def test_refines(self, comparator):
        """Test that added words with none dropped refine."""
        comparison = comparator.compare("User likes tea", "User likes green tea")

        assert comparison.relation == ContentRelation.REFINES
        assert comparison.added == frozenset({"green"})
        assert not comparison.explicit

    def test_conflicting_value(self, comparator):
        """Test that a swapped value contradicts without being explicit."""
        comparison = comparator.compare(
            "User prefers light mode", "User prefers dark mode"
        )

        assert comparison.relation == ContentRelation.CONTRADICTS
        assert not comparison.explicit
        assert comparison.removed == frozenset({"light"})
        assert "light -> dark" in comparison.reason

    def test_content_words(self, comparator):
        """Test stemming and stopword removal."""
        assert comparator.content_words("The user's cities are lovely") == frozenset(
            {"city", "lovely"}
        )

    def test_changed_value_with_marker(self, comparator):
        """Test that a marker does not hide a swapped value."""
        comparison = comparator.compare(
            "User works from home", "User actually works from the office"
        )

        assert comparison.relation == ContentRelation.CONTRADICTS
        assert comparison.removed == frozenset({"home"})
        assert comparison.added == frozenset({"office"})
