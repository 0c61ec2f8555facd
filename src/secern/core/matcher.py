from __future__ import annotations

import re
import warnings
from typing import List, Pattern, Sequence, Tuple

from secern.utils.logging import get_logger

log = get_logger("secern.matcher")

# \1..\99 or (?(1)...) not escaped by a preceding backslash
_NUMBERED_REFERENCE = re.compile(r"(?<!\\)(?:\\\\)*(?:\\[1-9]|\(\?\(\d)")


class PatternSetError(ValueError):
    """A pattern in the set failed to compile."""

    def __init__(self, index: int, pattern: str, reason: str):
        self.index = index
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"pattern #{index} ({pattern!r}): {reason}")


class PatternSet:
    """
    A compiled group of regular expressions queried as one "any match" predicate.

    The patterns are joined into a single alternation so one search answers
    whether at least one of them matches. Patterns that cannot share one
    expression make the set fall back to searching each compiled pattern in
    turn: global inline flags such as ``(?i)`` past the first pattern, and
    numbered group references whose numbers the join would shift.
    """

    def __init__(self, patterns: Sequence[str]):
        self.patterns: Tuple[str, ...] = tuple(patterns)
        if not self.patterns:
            raise ValueError("a pattern set needs at least one pattern")

        self._compiled: List[Pattern[str]] = []
        for idx, pattern in enumerate(self.patterns, start=1):
            try:
                self._compiled.append(re.compile(pattern))
            except re.error as e:
                raise PatternSetError(idx, pattern, str(e)) from e

        self._combined = self._combine()

    def _shifts_group_references(self) -> bool:
        groups_before = 0
        for pattern, compiled in zip(self.patterns, self._compiled):
            if groups_before and _NUMBERED_REFERENCE.search(pattern):
                return True
            groups_before += compiled.groups
        return False

    def _combine(self):
        if len(self._compiled) == 1:
            return self._compiled[0]
        if self._shifts_group_references():
            log.debug("Patterns use numbered group references, searching them one by one")
            return None

        joined = "|".join(f"(?:{p})" for p in self.patterns)
        try:
            # before 3.11 a mid-expression global flag only warns and then
            # applies to every alternative
            with warnings.catch_warnings():
                warnings.simplefilter("error", DeprecationWarning)
                return re.compile(joined)
        except (re.error, DeprecationWarning) as e:
            log.debug("Patterns cannot be combined (%s), searching them one by one", e)
            return None

    @property
    def single_pass(self) -> bool:
        return self._combined is not None

    def matches(self, line: str) -> bool:
        """Return True if any pattern matches anywhere in the line."""
        if self._combined is not None:
            return self._combined.search(line) is not None
        return any(p.search(line) is not None for p in self._compiled)

    def __len__(self) -> int:
        return len(self.patterns)

    def __repr__(self) -> str:
        return f"PatternSet({list(self.patterns)!r})"

