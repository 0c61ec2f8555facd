"""
Exception hierarchy for secern.

Low-level code raises these; ``secern.main`` is the only place that turns
them into process exit codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


class SecernError(Exception):
    """Base class for every fatal secern error."""


class ConfigError(SecernError):
    """The configuration document is missing, unreadable or malformed."""


class TemplateExistsError(ConfigError):
    """The target of --gen-template already exists."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Template file '{path}' already exists, refusing to overwrite it")


@dataclass(frozen=True)
class PatternFailure:
    """A sink whose pattern set could not be compiled."""

    sink_name: str
    pattern_index: int
    pattern: str
    reason: str

    def describe(self) -> str:
        return (
            f"Error parsing Regex pattern #{self.pattern_index} ({self.pattern!r}) "
            f"in sink named '{self.sink_name}' due to error: {self.reason}"
        )


class PatternCompileError(ConfigError):
    """One or more sinks carry patterns that do not compile.

    All failures found in a validation pass are reported together.
    """

    def __init__(self, failures: List[PatternFailure]):
        self.failures = list(failures)
        lines = [f.describe() for f in self.failures]
        super().__init__(
            f"{len(self.failures)} sink(s) failed pattern compilation:\n" + "\n".join(lines)
        )


class OutputFileError(SecernError):
    """An output file (or its parent directory) could not be created."""

    def __init__(self, sink_name: str, path: str, reason: object):
        self.sink_name = sink_name
        self.path = path
        super().__init__(
            f"Unable to create output file '{path}' for sink named '{sink_name}' due to error: {reason}"
        )


class SinkWriteError(SecernError):
    """Writing or flushing a sink's output file failed mid-run."""

    def __init__(self, sink_name: str, path: str, reason: object, action: str = "write to"):
        self.sink_name = sink_name
        self.path = path
        super().__init__(
            f"Unable to {action} output file '{path}' for sink named '{sink_name}' due to error: {reason}"
        )


class DefaultOutputError(SecernError):
    """Writing to the default output failed for a reason other than a closed reader."""


class InputDecodeError(SecernError):
    """An input line is not valid UTF-8."""

    def __init__(self, line_number: int, reason: object):
        self.line_number = line_number
        super().__init__(f"Unable to decode input line {line_number} as UTF-8: {reason}")


class DownstreamClosed(SecernError):
    """The consumer of the default output stopped reading.

    This is expected termination in a pipeline (e.g. ``| head``) and maps to
    exit code 0.
    """
