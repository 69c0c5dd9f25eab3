"""
Unit tests for wildcard matching.
"""

import pytest

from jdkcache.core.wildcard import WildcardMatcher


class TestWildcardMatcher:
    """Test WildcardMatcher class."""

    @pytest.mark.parametrize("candidate", ["", "a", "17.0.4+7", "anything at all"])
    def test_star_matches_everything(self, candidate):
        """Test '*' matches any text, including empty."""
        assert WildcardMatcher("*").match(candidate)

    def test_exact_pattern(self):
        """Test pattern without wildcards compares exactly."""
        matcher = WildcardMatcher("17.0.4")
        assert matcher.match("17.0.4")
        assert not matcher.match("17.0.41")
        assert not matcher.match("17.0.")

    def test_question_mark_matches_one_character(self):
        """Test '?' consumes exactly one character."""
        matcher = WildcardMatcher("a?c")
        assert matcher.match("abc")
        assert not matcher.match("ac")
        assert not matcher.match("abbc")

    def test_version_prefix(self):
        """Test '17*' selects 17 releases only."""
        matcher = WildcardMatcher("17*")
        assert matcher.match("17.0.4+7")
        assert not matcher.match("11.0.1")

    def test_adjacent_stars(self):
        """Test '**' behaves like a single '*'."""
        assert WildcardMatcher("a**c").match("abbbc")
        assert WildcardMatcher("a**c").match("ac")

    def test_middle_segments(self):
        """Test segments between stars are found in order."""
        matcher = WildcardMatcher("*0.*+*")
        assert matcher.match("17.0.4+7")
        assert not matcher.match("17.1.4-7")

    def test_segments_must_not_overlap_suffix(self):
        """Test middle segment cannot reuse characters of the suffix."""
        assert not WildcardMatcher("*ab*b").match("ab")
        assert WildcardMatcher("*ab*b").match("abb")

    def test_prefix_and_suffix(self):
        """Test fixed prefix and suffix around a star."""
        matcher = WildcardMatcher("jdk-*.tar.gz")
        assert matcher.match("jdk-17.tar.gz")
        assert not matcher.match("jdk-17.zip")
        assert not matcher.match("jre-17.tar.gz")

    def test_case_sensitive_by_default(self):
        """Test default comparison is case-sensitive."""
        assert not WildcardMatcher("JDK*").match("jdk17")

    def test_case_insensitive(self):
        """Test case_sensitive=False ignores case."""
        assert WildcardMatcher("JDK*", case_sensitive=False).match("jdk17")

    def test_pattern_is_trimmed(self):
        """Test surrounding whitespace of the pattern is ignored."""
        assert WildcardMatcher("  17*  ").match("17.0.1")

    def test_none_candidate(self):
        """Test None never matches."""
        assert not WildcardMatcher("*").match(None)

    def test_long_input_is_fast(self):
        """Test pathological pattern doesn't backtrack exponentially."""
        matcher = WildcardMatcher("*a*a*a*a*a*a*a*b")
        assert not matcher.match("a" * 5000)
