from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

DISCARD_SENTINEL = "null"


class DestinationKind(str, Enum):
    """Where a sink sends the lines it claims."""

    DISCARD = "discard"
    FILE = "file"


@dataclass(frozen=True)
class SinkDeclaration:
    """One sink as declared in the configuration, before compilation."""

    name: str
    destination: DestinationKind
    patterns: List[str]
    path: Optional[str] = None
    invert: bool = False


@dataclass
class DispatchReport:
    """Summary of one routing run."""

    lines_read: int = 0
    matched: Dict[str, int] = field(default_factory=dict)
    passed_through: int = 0
    dropped: int = 0
    elapsed_s: float = 0.0

    def bump_match(self, sink_name: str) -> None:
        """Increment the match count for a sink."""
        self.matched[sink_name] = self.matched.get(sink_name, 0) + 1

    @property
    def lines_matched(self) -> int:
        return sum(self.matched.values())
