# src/worker/models.py - v1
"""Worker wrapper outcomes and resolved paths.

Outcomes stay typed inside the wrapper; they become process exit codes
only in the worker CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WorkerPaths:
    """Local files used by one wrapper invocation."""

    tesseract: Path
    input_file: Path
    output_base: Path
    output_file: Path


@dataclass(frozen=True)
class Success:
    """OCR ran with exit code 0 and the result was uploaded."""


@dataclass(frozen=True)
class ToolFailure:
    """The OCR binary exited nonzero; its code is passed through verbatim."""

    code: int


@dataclass(frozen=True)
class DownloadFailure:
    """The input artifact could not be fetched."""

    reason: str


@dataclass(frozen=True)
class LaunchFailure:
    """The OCR binary could not be started at all."""

    reason: str


@dataclass(frozen=True)
class UploadFailure:
    """The OCR result could not be pushed to the result container."""

    reason: str


@dataclass(frozen=True)
class UnexpectedFailure:
    """Any fault outside the explicit stages above."""

    cause: BaseException


WrapperOutcome = (
    Success | ToolFailure | DownloadFailure | LaunchFailure | UploadFailure | UnexpectedFailure
)
