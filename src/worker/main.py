# src/worker/main.py - v1
"""Worker CLI: the command every OCR task runs on a pool node.

Usage:
    batchocr-worker <source_uri> <output_name>

Exit codes:
    0           success
    <tool code> the OCR binary's own nonzero exit code
    -7777       download failed
    -8888       upload failed
    -9999       OCR binary could not be launched
    other < 0   unexpected fault, derived from the fault's identity
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import zlib
from pathlib import Path

from batchocr.version import __version__
from batchocr.worker.models import (
    DownloadFailure,
    LaunchFailure,
    Success,
    ToolFailure,
    UnexpectedFailure,
    UploadFailure,
    WrapperOutcome,
)

logger = logging.getLogger(__name__)

EXIT_DOWNLOAD_FAILED = -7777
EXIT_UPLOAD_FAILED = -8888
EXIT_LAUNCH_FAILED = -9999

_SENTINELS = {EXIT_DOWNLOAD_FAILED, EXIT_UPLOAD_FAILED, EXIT_LAUNCH_FAILED}


def fault_code(exc: BaseException) -> int:
    """Negative exit code identifying an unexpected fault.

    OS errors keep their errno; anything else is keyed on the exception's
    qualified type name so the same fault always yields the same code.
    """
    if isinstance(exc, OSError) and exc.errno:
        return -abs(exc.errno)
    name = f"{type(exc).__module__}.{type(exc).__qualname__}"
    code = -((zlib.crc32(name.encode("utf-8")) % 0x7FFF) + 1)
    if code in _SENTINELS:
        code -= 1
    return code


def exit_code_for(outcome: WrapperOutcome) -> int:
    """Map a wrapper outcome to the process exit code."""
    if isinstance(outcome, Success):
        return 0
    if isinstance(outcome, ToolFailure):
        return outcome.code
    if isinstance(outcome, DownloadFailure):
        return EXIT_DOWNLOAD_FAILED
    if isinstance(outcome, UploadFailure):
        return EXIT_UPLOAD_FAILED
    if isinstance(outcome, LaunchFailure):
        return EXIT_LAUNCH_FAILED
    if isinstance(outcome, UnexpectedFailure):
        return fault_code(outcome.cause)
    raise TypeError(f"Unknown wrapper outcome: {outcome!r}")


def default_base_dir() -> Path:
    """Directory the wrapper was launched from (binaries are staged beside it)."""
    return Path(sys.argv[0]).resolve().parent


def main(argv: list[str] | None = None) -> int:
    """Worker CLI entry point; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    print("Starting batchocr-worker...")
    try:
        outcome = _execute(args)
    except Exception as exc:
        print("Failed executing batchocr-worker with exception:")
        print(repr(exc))
        logger.debug("Unexpected failure", exc_info=True)
        outcome = UnexpectedFailure(exc)

    code = exit_code_for(outcome)
    if isinstance(outcome, Success):
        print("Completed successfully!")
    else:
        print(f"Finished with {type(outcome).__name__}, exit code {code}")
    return code


def _execute(args: argparse.Namespace) -> WrapperOutcome:
    from batchocr.config.settings import load_settings
    from batchocr.logging.logger import setup_logging
    from batchocr.storage.store_factory import create_blob_store
    from batchocr.worker.wrapper import WorkerWrapper

    settings = load_settings()
    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    base_dir = settings.worker_base_dir or default_base_dir()
    wrapper = WorkerWrapper(
        store=create_blob_store(settings),
        results_container=settings.results_container,
        tesseract_path=base_dir / settings.tesseract_relative_path,
        work_dir=args.work_dir or Path.cwd(),
        output_suffix=settings.ocr_output_suffix,
        download_timeout=settings.download_timeout_seconds,
    )

    print("Wrapping tesseract OCR to upload results back to blob storage!")
    print(f"- Input file: {args.source_uri.split('?', 1)[0]}")
    print(f"- Output file: {args.output_name}")
    return asyncio.run(wrapper.run(args.source_uri, args.output_name))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batchocr-worker",
        description="Download one image, run tesseract on it, upload the text.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--work-dir", type=Path, default=None,
        help="Scratch directory (default: current directory)",
    )
    parser.add_argument("source_uri", help="Signed URI of the input image")
    parser.add_argument("output_name", help="Output base name (no extension)")
    return parser


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
