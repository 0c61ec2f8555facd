"""
Output destinations and the Output Manager.

A sink either discards what it claims or owns a buffered writer to one file.
Lines nobody claims go to the default output (stdout in the CLI), which keeps
its own buffer so a closed reader can be told apart from a failing file.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, TextIO, Union

from secern.core.errors import (
    DefaultOutputError,
    DownstreamClosed,
    OutputFileError,
    SecernError,
    SinkWriteError,
)
from secern.core.models import DestinationKind
from secern.utils.logging import get_logger

log = get_logger("secern.output")

SINK_BUFFER_SIZE = 64 * 1024
STDOUT_BUFFER_SIZE = 4096 * 1024
LINE_TERMINATOR = "\n"


class Discard:
    """Destination that accepts lines and writes them nowhere."""

    kind = DestinationKind.DISCARD

    def write_line(self, line: str) -> None:
        return None

    def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return "Discard()"


DISCARD = Discard()


class FileDestination:
    """A buffered writer to one file, owned by exactly one sink."""

    kind = DestinationKind.FILE

    def __init__(self, sink_name: str, path: str, handle: TextIO):
        self.sink_name = sink_name
        self.path = path
        self._handle = handle
        self.closed = False

    @classmethod
    def create(cls, sink_name: str, path: str, buffer_size: int = SINK_BUFFER_SIZE) -> "FileDestination":
        """Create (truncate) ``path``, making missing parent directories first."""
        try:
            parent = Path(path).parent
            if str(parent) not in {"", "."}:
                parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "w", encoding="utf-8", newline="", buffering=buffer_size)
        except OSError as e:
            raise OutputFileError(sink_name, path, e) from e
        log.debug("Opened output file %s for sink %s", path, sink_name)
        return cls(sink_name, path, handle)

    def write_line(self, line: str) -> None:
        # payload and terminator as two writes, no per-line formatting
        try:
            self._handle.write(line)
            self._handle.write(LINE_TERMINATOR)
        except (OSError, ValueError) as e:
            raise SinkWriteError(self.sink_name, self.path, e) from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._handle.close()
        except OSError as e:
            raise SinkWriteError(self.sink_name, self.path, e, action="flush final data to") from e

    def __repr__(self) -> str:
        return f"FileDestination(sink={self.sink_name!r}, path={self.path!r})"


Destination = Union[Discard, FileDestination]


class DefaultOutput:
    """
    Buffered writer for unclaimed lines.

    The buffer is held here rather than in the stream so the stream itself
    (usually ``sys.stdout.buffer``) is never wrapped or closed by us. A reader
    that goes away surfaces as :class:`DownstreamClosed`.
    """

    def __init__(self, stream: Optional[BinaryIO], enabled: bool = True, capacity: int = STDOUT_BUFFER_SIZE):
        if enabled and stream is None:
            raise ValueError("an enabled default output needs a stream")
        self.stream = stream
        self.enabled = enabled
        self.capacity = max(1, int(capacity))
        self.broken = False
        self._buffer = bytearray()

    @classmethod
    def disabled(cls) -> "DefaultOutput":
        return cls(None, enabled=False)

    def write_line(self, line: str) -> None:
        if not self.enabled:
            return
        self._buffer += line.encode("utf-8")
        self._buffer += b"\n"
        if len(self._buffer) >= self.capacity:
            self.flush()

    def flush(self) -> None:
        if not self.enabled or self.broken:
            return
        data = bytes(self._buffer)
        self._buffer.clear()
        try:
            if data:
                self.stream.write(data)
            self.stream.flush()
        except BrokenPipeError as e:
            self.broken = True
            raise DownstreamClosed("Default output reader closed the stream") from e
        except OSError as e:
            raise DefaultOutputError(f"Unable to write data to STDOUT due to error: {e}") from e


class OutputManager:
    """
    Owns every sink destination plus the default output.

    ``close()`` flushes and closes all of them. A failing sink does not stop
    the others from being flushed; the first error is raised afterwards.
    """

    def __init__(self, destinations: Iterable[Destination], default: DefaultOutput):
        self.destinations: List[Destination] = list(destinations)
        self.default = default
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True

        first_error: Optional[SecernError] = None
        for dest in self.destinations:
            try:
                dest.close()
            except SinkWriteError as e:
                if first_error is None:
                    first_error = e
                else:
                    log.error("%s", e)

        try:
            self.default.flush()
        except SecernError as e:
            if first_error is None:
                first_error = e
            else:
                log.error("%s", e)

        if first_error is not None:
            raise first_error

    def __enter__(self) -> "OutputManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.close()
        except SecernError as close_error:
            if exc is None:
                raise
            # the error already in flight is the one reported
            log.error("Error while flushing outputs during shutdown: %s", close_error)
        return False
