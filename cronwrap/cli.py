#!/usr/bin/env python3
"""
cronwrap CLI - Thin entrypoint for operator commands.

Commands:
- run:      Run a cron job and record its outcome
- influxdb: Emit line-protocol metrics for telegraf's execd input
- inspect:  Show the last run of named jobs
- list:     List every recorded job
- serve:    Serve the read-only monitor API

Design Principles:
==================
- CLI is a dispatcher only
- No execution or storage logic inside the CLI
- The wrapped job's failure is the dominant exit signal
- No interactive prompts
- No retry logic

Exit Codes:
===========
- 0: Success
- 1: The wrapped job failed (whether or not its status was recorded)
- 2: Usage or configuration error
- 3: The job succeeded but its status could not be recorded
- 4: A status record could not be read (inspect, influxdb)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cronwrap import __version__
from cronwrap.config import (
    DEFAULT_FILE_MODE,
    Settings,
    parse_duration,
    parse_file_mode,
)
from cronwrap.errors import ConfigurationError, StatusReadError
from cronwrap.logging_setup import configure_logging
from cronwrap.recorder import run as record_run
from cronwrap.reporting import DEFAULT_MEASUREMENT, InfluxReporter, Inspector
from cronwrap.status import StatusStore

logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0
EXIT_USAGE = 2
EXIT_READ_ERROR = 4


def _duration_arg(text: str) -> float:
    try:
        return parse_duration(text)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e))


def _mode_arg(text: str) -> int:
    try:
        return parse_file_mode(text)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e))


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """
    Run a cron job and record its outcome.

    Exit codes:
        0: Job succeeded and was recorded
        1: Job failed
        3: Job succeeded but could not be recorded
    """
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        args.parser.error("run: a command to run is required")

    if args.no_environment:
        settings = settings.with_overrides(capture_environment=False)

    result = record_run(
        settings,
        command,
        name=args.name,
        timeout=args.timeout,
        mode=args.mode,
    )
    return result.exit_code()


def cmd_influxdb(args: argparse.Namespace, settings: Settings) -> int:
    """
    Emit one metric line per recorded job.

    With --execd, waits for a newline on stdin before every further scan
    and exits when stdin closes.

    Exit codes:
        0: All lines emitted
        4: A record could not be read (with --strict)
    """
    reporter = InfluxReporter(
        StatusStore(settings.status_dir),
        measurement=args.measurement,
        strict=args.strict,
    )
    trigger = sys.stdin if args.execd else None
    try:
        for line in reporter.report(trigger):
            print(line, flush=True)
    except StatusReadError as e:
        logger.error(f"[Influx] {e}")
        return EXIT_READ_ERROR
    return EXIT_SUCCESS


def cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    """
    Print the last run of each named job (or status file path).

    Exit codes:
        0: Every identifier was shown
        4: At least one record was missing or unreadable
    """
    inspector = Inspector(
        StatusStore(settings.status_dir),
        verbose=args.verbose or settings.debug,
        strict=not args.keep_going,
    )
    try:
        for text in inspector.inspect(args.names):
            sys.stdout.write(text)
            sys.stdout.flush()
    except StatusReadError as e:
        logger.error(f"[Inspect] {e}")
        return EXIT_READ_ERROR
    return EXIT_READ_ERROR if inspector.failures else EXIT_SUCCESS


def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """Print key, job name and path of every record."""
    for entry in StatusStore(settings.status_dir).list(with_names=True):
        name = entry.name if entry.name is not None else "<unreadable>"
        print(f"{entry.key}\t{name}\t{entry.path}")
    return EXIT_SUCCESS


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Serve the read-only monitor API until interrupted."""
    from cronwrap.monitor import run_monitor_server

    run_monitor_server(settings, host=args.host, port=args.port)
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cronwrap",
        description="Wrap a cron job and record the outcome of its last run.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Run in verbose mode")
    parser.add_argument(
        "--status",
        type=Path,
        default=None,
        help="Directory in which to write status (default: $CRONWRAP_STATUS_DIR or /var/lib/cronwrap)",
    )

    subparsers = parser.add_subparsers(dest="command_name", metavar="<command>")
    subparsers.required = True

    run_parser = subparsers.add_parser(
        "run",
        help="Run a cron job",
        usage="%(prog)s [options] -- COMMAND [ARG ...]",
        description=(
            "Run a cron job and record its outcome. Put '--' before the command; "
            "it is required when the command itself starts with '-'."
        ),
    )
    run_parser.add_argument("--name", default=None, help="Name of this cron job. Must be unique.")
    run_parser.add_argument(
        "--timeout",
        type=_duration_arg,
        default=None,
        help="Maximum amount of time the job can run (e.g. 90, 30s, 1h30m)",
    )
    run_parser.add_argument(
        "--mode",
        type=_mode_arg,
        default=DEFAULT_FILE_MODE,
        help="File mode for the status file; prefix with 0 for octal (default: 0640)",
    )
    run_parser.add_argument(
        "--no-environment",
        action="store_true",
        help="Do not record the environment in the status file",
    )
    run_parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command (and arguments) to run, after '--'",
    )
    run_parser.set_defaults(handler=cmd_run, parser=run_parser)

    influx_parser = subparsers.add_parser(
        "influxdb",
        help="Emit influxdb metrics for telegraf's 'execd' STDIN collection",
    )
    influx_parser.add_argument(
        "--measurement",
        default=DEFAULT_MEASUREMENT,
        help=f"Name of the influxdb measurement (default: {DEFAULT_MEASUREMENT})",
    )
    influx_parser.add_argument(
        "--execd",
        action="store_true",
        help="Run under execd: re-emit after every newline read on stdin, until stdin closes",
    )
    influx_parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first unreadable status file instead of skipping it",
    )
    influx_parser.set_defaults(handler=cmd_influxdb, parser=influx_parser)

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Output information about cron jobs' last run",
    )
    inspect_parser.add_argument(
        "names",
        nargs="+",
        help="Names of cron jobs to inspect, or path names of their status files",
    )
    inspect_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Also print the recorded environment and output (implied by --debug)",
    )
    inspect_parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Skip missing or unreadable records instead of stopping at the first one",
    )
    inspect_parser.set_defaults(handler=cmd_inspect, parser=inspect_parser)

    list_parser = subparsers.add_parser("list", help="List every recorded cron job")
    list_parser.set_defaults(handler=cmd_list, parser=list_parser)

    serve_parser = subparsers.add_parser("serve", help="Serve the read-only monitor API")
    serve_parser.add_argument("--host", default=None, help="Host to bind (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=9877, help="Port to listen on (default: 9877)")
    serve_parser.set_defaults(handler=cmd_serve, parser=serve_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_environment().with_overrides(
            status_dir=args.status,
            debug=True if args.debug else None,
        )
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings.debug)
    return args.handler(args, settings)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
