"""
Glob-style matching of version patterns.

Supports '*' (any run of characters, including none) and '?' (exactly one
character). Matching is linear in practice: the fixed prefix and suffix are
checked first, then each middle segment is located greedily at its earliest
position inside the remaining window. No backtracking is needed because a
'*' separates every pair of segments.
"""

from typing import List


class WildcardMatcher:
    """
    Compiled wildcard pattern.

    Args:
        pattern: Pattern text, surrounding whitespace is ignored
        case_sensitive: Compare characters exactly when True

    Example:
        >>> WildcardMatcher("17*").match("17.0.4+7")
        True
        >>> WildcardMatcher("a?c").match("ac")
        False
    """

    def __init__(self, pattern: str, case_sensitive: bool = True):
        self.pattern = pattern.strip()
        self.case_sensitive = case_sensitive
        text = self.pattern if case_sensitive else self.pattern.lower()

        self._has_star = "*" in text
        segments = text.split("*")
        self._prefix = segments[0]
        self._suffix = segments[-1] if self._has_star else ""
        # empty middles come from adjacent stars
        self._middle: List[str] = [s for s in segments[1:-1] if s]

    def match(self, candidate: str) -> bool:
        """Return True if candidate matches the whole pattern."""
        if candidate is None:
            return False
        text = candidate if self.case_sensitive else candidate.lower()

        if not self._has_star:
            return len(text) == len(self._prefix) and _fits(self._prefix, text, 0)

        if len(text) < len(self._prefix) + len(self._suffix):
            return False
        if not _fits(self._prefix, text, 0):
            return False
        suffix_start = len(text) - len(self._suffix)
        if not _fits(self._suffix, text, suffix_start):
            return False

        position = len(self._prefix)
        for segment in self._middle:
            found = _find(segment, text, position, suffix_start)
            if found < 0:
                return False
            position = found + len(segment)
        return True

    def __repr__(self) -> str:
        return f"WildcardMatcher({self.pattern!r}, case_sensitive={self.case_sensitive})"


def _fits(segment: str, text: str, offset: int) -> bool:
    for i, ch in enumerate(segment):
        if ch != "?" and ch != text[offset + i]:
            return False
    return True


def _find(segment: str, text: str, start: int, end: int) -> int:
    last = end - len(segment)
    for offset in range(start, last + 1):
        if _fits(segment, text, offset):
            return offset
    return -1


__all__ = ["WildcardMatcher"]
