from __future__ import annotations

import time
from typing import BinaryIO, Iterable, Iterator, Optional

from secern.core.errors import InputDecodeError
from secern.core.models import DispatchReport
from secern.core.output import DefaultOutput
from secern.core.registry import Sink, SinkRegistry
from secern.utils.logging import get_logger

log = get_logger("secern.router")


def read_lines(stream: BinaryIO) -> Iterator[str]:
    """
    Yield UTF-8 lines from a binary stream without their terminators.

    ``\\n`` ends a line and a ``\\r`` right before it is dropped too. A last
    line without a terminator is still yielded.
    """
    for number, raw in enumerate(stream, start=1):
        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InputDecodeError(number, e) from e


class LineRouter:
    """
    Sends every line to the first sink that claims it.

    Sinks are scanned in registry order and the scan stops at the first
    claim. Unclaimed lines go to the default output when it is enabled and
    are dropped otherwise.
    """

    def __init__(self, registry: SinkRegistry, default: DefaultOutput):
        self.registry = registry
        self.default = default

    @property
    def pass_through(self) -> bool:
        return self.default.enabled

    def route(self, line: str) -> Optional[Sink]:
        """Dispatch one line. Returns the sink that claimed it, if any."""
        for sink in self.registry:
            if sink.claims(line):
                sink.destination.write_line(line)
                return sink

        if self.default.enabled:
            self.default.write_line(line)
        return None

    def run(self, lines: Iterable[str], report: Optional[DispatchReport] = None) -> DispatchReport:
        """
        Route every line of ``lines`` in order.

        The report is updated in place while lines flow, so a caller holding
        it still sees the counts if a fatal error stops the run.
        """
        if report is None:
            report = DispatchReport()
        for name in self.registry.names():
            report.matched.setdefault(name, 0)

        start = time.perf_counter()
        try:
            for line in lines:
                report.lines_read += 1
                sink = self.route(line)
                if sink is not None:
                    report.bump_match(sink.name)
                elif self.default.enabled:
                    report.passed_through += 1
                else:
                    report.dropped += 1
        finally:
            report.elapsed_s = time.perf_counter() - start

        log.debug(
            "Routed %d line(s): %d matched, %d passed through, %d dropped",
            report.lines_read, report.lines_matched, report.passed_through, report.dropped,
        )
        return report
