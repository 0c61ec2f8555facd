from __future__ import annotations

from typing import Iterable, List, Sequence

from secern.core.models import DispatchReport, SinkDeclaration
from secern.core.output import DefaultOutput, OutputManager
from secern.core.registry import SinkRegistry, build_registry
from secern.core.router import LineRouter
from secern.utils.logging import get_logger


class SiftEngine:
    """
    Builds the sink registry from declarations and runs lines through it.
    """

    def __init__(self, declarations: Sequence[SinkDeclaration], default: DefaultOutput):
        """
        Initialize the engine.

        Args:
            declarations: Sinks in declaration order.
            default: Where unclaimed lines go; a disabled output drops them.
        """
        self.declarations: List[SinkDeclaration] = list(declarations)
        self.default = default
        self.log = get_logger("secern.engine")

    def validate(self) -> SinkRegistry:
        """Compile every sink without creating any output file."""
        return build_registry(self.declarations, dry_run=True)

    def run(self, lines: Iterable[str]) -> DispatchReport:
        """
        Route ``lines`` and flush every output before returning.

        Output files are created only after all patterns compiled. Whatever
        stops the run, every sink file and the default output are flushed on
        the way out.
        """
        registry = build_registry(self.declarations)
        self.log.info(
            "Built %d sink(s), %d writing to files, pass-through %s",
            len(registry),
            sum(1 for d in self.declarations if d.path is not None),
            "enabled" if self.default.enabled else "disabled",
        )

        report = DispatchReport()
        router = LineRouter(registry, self.default)
        with OutputManager(registry.destinations(), self.default):
            router.run(lines, report)
        return report
