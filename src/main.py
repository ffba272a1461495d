# src/main.py - v1
"""CLI entry point: create-pool, schedule, delete-pool commands.

Usage:
    batchocr create-pool        (alias: c)
    batchocr schedule [--timeout-minutes N]   (alias: s)
    batchocr delete-pool        (alias: d)
    batchocr                    prompt for c / s / d

Credentials, region, containers and pool shape come from .env (see
batchocr.config.settings).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from typing import TYPE_CHECKING

from batchocr.version import __version__

if TYPE_CHECKING:
    from batchocr.config.settings import Settings
    from batchocr.orchestrator.runner import BatchRunner, ScheduleResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TIMED_OUT = 2
EXIT_INTERRUPTED = 130

# Single-character selectors accepted at the interactive prompt.
ACTIONS = {"c": "create-pool", "s": "schedule", "d": "delete-pool"}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if getattr(args, "func", None) is None:
        command = _prompt_action()
        if command is None:
            parser.print_help()
            return EXIT_FAILED
        args = parser.parse_args([*_global_flags(args), command])

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        print(f"Error: {exc}")
        return EXIT_FAILED
    finally:
        _pause(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="batchocr",
        description=f"batchocr v{__version__} - distribute OCR jobs over a worker pool",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-pause", action="store_true",
        help="Do not wait for ENTER before exiting",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_create = subparsers.add_parser(
        "create-pool", aliases=["c"], help="Create the worker pool if missing",
    )
    p_create.set_defaults(func=_cmd_create_pool)

    p_schedule = subparsers.add_parser(
        "schedule", aliases=["s"], help="Run one OCR task per input image",
    )
    p_schedule.add_argument(
        "--timeout-minutes", type=float, default=None,
        help="Wait deadline (default: WAIT_TIMEOUT_MINUTES, 30)",
    )
    p_schedule.set_defaults(func=_cmd_schedule)

    p_delete = subparsers.add_parser(
        "delete-pool", aliases=["d"], help="Delete the worker pool if present",
    )
    p_delete.set_defaults(func=_cmd_delete_pool)

    return parser


def _build_runner() -> BatchRunner:
    """Load settings and wire the runner against the real backends."""
    from batchocr.config.settings import load_settings
    from batchocr.orchestrator.runner import BatchRunner
    from batchocr.scheduler.backend_factory import create_backend
    from batchocr.storage.store_factory import create_blob_store

    settings = load_settings()
    _configure_file_logging(settings)

    print("Creating batch client to access the batch service...")
    backend = create_backend(settings)
    print("Batch client created successfully!")
    store = create_blob_store(settings)
    return BatchRunner(settings, store, backend, echo=print)


async def _cmd_create_pool(args: argparse.Namespace) -> int:
    """Create the configured pool unless it exists."""
    runner = _build_runner()
    await runner.create_pool()
    return EXIT_OK


async def _cmd_delete_pool(args: argparse.Namespace) -> int:
    """Delete the configured pool if it exists."""
    runner = _build_runner()
    await runner.delete_pool()
    return EXIT_OK


async def _cmd_schedule(args: argparse.Namespace) -> int:
    """Dispatch, wait and print the per-task result table."""
    runner = _build_runner()
    timeout = (
        timedelta(minutes=args.timeout_minutes)
        if args.timeout_minutes is not None
        else None
    )
    result = await runner.schedule(timeout)
    _print_results(result)
    if result.wait_outcome == "timed_out":
        return EXIT_TIMED_OUT
    return EXIT_OK


def _print_results(result: ScheduleResult) -> None:
    """Print the final state / exit code line for every task."""
    print()
    for r in result.results:
        code = "n/a" if r.exit_code is None else r.exit_code
        print(f"- Task {r.task_id}: {r.state}, exit code {code}")


def _prompt_action() -> str | None:
    """Ask for a single-character action when no subcommand was given."""
    if not sys.stdin.isatty():
        return None
    print("What to do?\n(c)reatepool\n(s)cheduletasks\n(d)elete pool")
    try:
        choice = input().strip().lower()[:1]
    except EOFError:
        return None
    return ACTIONS.get(choice)


def _global_flags(args: argparse.Namespace) -> list[str]:
    flags = []
    if args.verbose:
        flags.append("--verbose")
    if args.no_pause:
        flags.append("--no-pause")
    return flags


def _pause(args: argparse.Namespace) -> None:
    """Block on ENTER like the console tool operators are used to."""
    if args.no_pause or not sys.stdin.isatty():
        return
    print()
    print("Press ENTER to quit!")
    try:
        input()
    except EOFError:
        return


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from batchocr.logging.logger import setup_logging

    setup_logging(level="DEBUG" if verbose else "INFO", log_format="text")


def _configure_file_logging(settings: Settings) -> None:
    """Re-apply logging with the level, format and file from settings."""
    from batchocr.logging.logger import setup_logging

    root = logging.getLogger("batchocr")
    level = "DEBUG" if root.level == logging.DEBUG else settings.log_level
    setup_logging(
        level=level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    sys.exit(main())
