"""Glob matching for files that are copied without rendering."""

from __future__ import annotations

import logging
from typing import Iterable

from ..core.errors import GlobPatternError

logger = logging.getLogger(__name__)

RECURSIVE = "**"


def segment_matches(pattern: str, segment: str) -> bool:
    """Match one path segment against a pattern where ``*`` spans any text."""
    if "*" not in pattern:
        return pattern == segment

    head, *middle, tail = pattern.split("*")
    if not segment.startswith(head):
        return False
    end = len(segment) - len(tail)
    if end < len(head) or not segment.endswith(tail):
        return False

    pos = len(head)
    for token in middle:
        if not token:
            continue
        found = segment.find(token, pos, end)
        if found < 0:
            return False
        pos = found + len(token)
    return True


def pattern_matches(pattern: list[str], path: list[str]) -> bool:
    """Match segment lists, where a ``**`` segment spans zero or more segments.

    ``reach[j]`` records whether the pattern consumed so far can end right
    before ``path[j]``; each pattern segment advances the table once, so the
    cost is linear in ``len(pattern) * len(path)``.
    """
    n = len(path)
    reach = [False] * (n + 1)
    reach[0] = True
    for pat in pattern:
        nxt = [False] * (n + 1)
        if pat == RECURSIVE:
            carried = False
            for j in range(n + 1):
                carried = carried or reach[j]
                nxt[j] = carried
        else:
            for j in range(n):
                if reach[j] and segment_matches(pat, path[j]):
                    nxt[j + 1] = True
        reach = nxt
        if not any(reach):
            return False
    return reach[n]


def _normalize(text: str) -> str:
    return text.replace("\\", "/")


class CopyFilter:
    """Ordered set of compiled copy-without-render patterns."""

    def __init__(self, patterns: list[str]) -> None:
        self._patterns = patterns
        self._compiled = [p.split("/") for p in patterns]

    @classmethod
    def compile(cls, patterns: Iterable[str]) -> "CopyFilter":
        """Validate and normalize raw glob patterns.

        Raises:
            GlobPatternError: For empty patterns or bracket-class syntax
        """
        normalized: list[str] = []
        for raw in patterns:
            pattern = raw.strip()
            if not pattern:
                raise GlobPatternError("Invalid empty pattern in _copy_without_render")
            if "[" in pattern or "]" in pattern:
                raise GlobPatternError(f"Invalid glob pattern: {raw}")
            pattern = _normalize(pattern)
            if pattern not in normalized:
                normalized.append(pattern)
        logger.debug("Compiled %d copy-without-render pattern(s)", len(normalized))
        return cls(normalized)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def is_match(self, rel_path: str) -> bool:
        """True when any pattern matches the template-relative path."""
        segments = _normalize(rel_path).split("/")
        return any(pattern_matches(pat, segments) for pat in self._compiled)

    def __bool__(self) -> bool:
        return bool(self._patterns)
