from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from secern.core.errors import PatternCompileError, PatternFailure
from secern.core.matcher import PatternSet, PatternSetError
from secern.core.models import DestinationKind, SinkDeclaration
from secern.core.output import DISCARD, Destination, FileDestination
from secern.utils.logging import get_logger

log = get_logger("secern.registry")


@dataclass
class Sink:
    """A named pattern set bound to a destination."""

    name: str
    matcher: PatternSet
    destination: Destination
    invert: bool = False
    path: Optional[str] = None

    def claims(self, line: str) -> bool:
        """Effective match: the raw pattern-set result, flipped when inverted."""
        return self.matcher.matches(line) != self.invert

    @property
    def destination_label(self) -> str:
        return self.path if self.path is not None else "(discard)"


class SinkRegistry:
    """Sinks in declaration order. The order is the match precedence."""

    def __init__(self, sinks: Sequence[Sink], dry_run: bool = False):
        self._sinks: Tuple[Sink, ...] = tuple(sinks)
        self.dry_run = dry_run

    def __iter__(self) -> Iterator[Sink]:
        return iter(self._sinks)

    def __len__(self) -> int:
        return len(self._sinks)

    def __getitem__(self, index: int) -> Sink:
        return self._sinks[index]

    @property
    def sinks(self) -> Tuple[Sink, ...]:
        return self._sinks

    def names(self) -> List[str]:
        return [s.name for s in self._sinks]

    def destinations(self) -> List[Destination]:
        return [s.destination for s in self._sinks]


def compile_pattern_sets(declarations: Sequence[SinkDeclaration]) -> List[PatternSet]:
    """
    Compile every declaration's patterns.

    Failures are collected across all sinks and raised together as one
    :class:`PatternCompileError`, so nothing is returned unless every sink
    compiled.
    """
    compiled: List[PatternSet] = []
    failures: List[PatternFailure] = []
    for decl in declarations:
        try:
            compiled.append(PatternSet(decl.patterns))
        except PatternSetError as e:
            failures.append(PatternFailure(decl.name, e.index, e.pattern, e.reason))
        except ValueError as e:
            failures.append(PatternFailure(decl.name, 0, "", str(e)))

    if failures:
        raise PatternCompileError(failures)
    return compiled


def _open_destinations(declarations: Sequence[SinkDeclaration]) -> List[Destination]:
    opened: List[Destination] = []
    try:
        for decl in declarations:
            if decl.destination is DestinationKind.DISCARD:
                opened.append(DISCARD)
            else:
                opened.append(FileDestination.create(decl.name, decl.path))
    except Exception:
        for dest in opened:
            dest.close()
        raise
    return opened


def build_registry(declarations: Sequence[SinkDeclaration], dry_run: bool = False) -> SinkRegistry:
    """
    Build the sink registry from declarations.

    All pattern sets are compiled before any output file is touched. With
    ``dry_run`` no file is created at all and every sink gets the discard
    destination, which is enough for validating a configuration.

    Raises:
        PatternCompileError: if any sink's patterns fail to compile.
        OutputFileError: if an output file or its directory cannot be created.
    """
    matchers = compile_pattern_sets(declarations)

    if dry_run:
        destinations: List[Destination] = [DISCARD for _ in declarations]
    else:
        destinations = _open_destinations(declarations)

    sinks = [
        Sink(
            name=decl.name,
            matcher=matcher,
            destination=dest,
            invert=decl.invert,
            path=decl.path,
        )
        for decl, matcher, dest in zip(declarations, matchers, destinations)
    ]
    for sink in sinks:
        log.debug(
            "Sink %s: %d pattern(s) single_pass=%s -> %s invert=%s",
            sink.name, len(sink.matcher), sink.matcher.single_pass, sink.destination_label, sink.invert,
        )
    return SinkRegistry(sinks, dry_run=dry_run)
