from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional

import typer

from secern import __version__
from secern.config_models import generate_template, load_and_validate_config
from secern.core.engine import SiftEngine
from secern.core.errors import ConfigError, DownstreamClosed, SecernError
from secern.core.models import DispatchReport
from secern.core.output import DefaultOutput
from secern.core.registry import SinkRegistry
from secern.core.router import read_lines
from secern.utils.logging import get_logger, setup_logging

STDIN_BUFFER_SIZE = 64 * 1024

log = get_logger("secern.main")

app = typer.Typer(
    name="secern",
    help=(
        "Sift lines read on STDIN into output files using regex patterns "
        "defined in a YAML configuration file."
    ),
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"secern {__version__}")
        raise typer.Exit()


@contextmanager
def open_stdin() -> Iterator[BinaryIO]:
    """Binary stdin with a larger read buffer when there is a real descriptor.

    Only a reader opened here is closed on exit; fd 0 itself stays open.
    """
    try:
        fd = sys.stdin.fileno()
    except (AttributeError, OSError, ValueError):
        yield sys.stdin.buffer
        return
    with open(fd, "rb", buffering=STDIN_BUFFER_SIZE, closefd=False) as stdin:
        yield stdin


def _silence_stdout() -> None:
    """Point stdout at the null device so interpreter shutdown stays quiet."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError):
        # stdout has no descriptor (embedded or captured), nothing to redirect
        return


def print_summary(registry: SinkRegistry) -> None:
    """Print one line per sink for --validate-only."""
    for idx, sink in enumerate(registry, start=1):
        typer.echo(
            f"{idx}. {sink.name}: output={sink.destination_label} "
            f"patterns={len(sink.matcher)} invert={str(sink.invert).lower()}"
        )
    typer.echo(f"Configuration is valid: {len(registry)} sink(s)")


def log_report(report: DispatchReport) -> None:
    log.info("Ending data processing. Time elapsed was: %.3fs", report.elapsed_s)
    log.info(
        "Lines read: %d, matched: %d, passed through: %d, dropped: %d",
        report.lines_read, report.lines_matched, report.passed_through, report.dropped,
    )
    for name, count in report.matched.items():
        log.info("  sink %s: %d line(s)", name, count)


@app.command()
def run(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", metavar="FILE", help="Specifies the YAML config file"
    ),
    gen_template: Optional[str] = typer.Option(
        None, "--gen-template", "-g", metavar="FILE",
        help="Generates an example YAML config file and exits",
    ),
    validate_only: bool = typer.Option(
        False, "--validate-only", "-v",
        help="Validate that the config file specified by -c is correctly formed.",
    ),
    no_stdout: bool = typer.Option(
        False, "--no-stdout", "-n", help="Disables emitting unfiltered data on STDOUT"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Disables emitting info level log events (version, run time, etc) on STDERR",
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Print the version and exit",
    ),
) -> None:
    """Route each line of STDIN to the first sink whose patterns claim it."""
    setup_logging(quiet=quiet)
    log.info("secern %s", __version__)

    try:
        if gen_template:
            generate_template(gen_template)
            raise typer.Exit(0)

        if not config:
            raise ConfigError("Please specify the configuration file!")

        log.info("Loading configuration file: %s", config)
        cfg = load_and_validate_config(config)

        if validate_only:
            registry = SiftEngine(cfg.declarations(), DefaultOutput.disabled()).validate()
            log.info("Configuration summary")
            print_summary(registry)
            raise typer.Exit(0)

        default = DefaultOutput.disabled() if no_stdout else DefaultOutput(sys.stdout.buffer)
        engine = SiftEngine(cfg.declarations(), default)

        log.info("Starting data processing.")
        with open_stdin() as stdin:
            report = engine.run(read_lines(stdin))
    except DownstreamClosed:
        _silence_stdout()
        raise typer.Exit(0)
    except SecernError as e:
        log.error("%s", e)
        raise typer.Exit(1)

    log_report(report)


def main() -> None:
    """Entry point for the secern CLI."""
    app()


if __name__ == "__main__":
    main()
