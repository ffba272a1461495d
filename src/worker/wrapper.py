# src/worker/wrapper.py - v1
"""Worker wrapper: fetch one input, run OCR on it, push the result.

Runs on a pool node once per task. The pipeline is linear with no
retries:

    resolve paths -> ensure result container -> download -> run OCR
    -> inspect exit code -> upload -> success

Each stage that can fail maps to its own outcome so the orchestrator can
tell a download problem from a tool failure from an upload problem by the
task's exit code alone.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx

from batchocr.logging.context import set_stage, set_task_context
from batchocr.storage.base_blob_store import BaseBlobStore
from batchocr.worker.models import (
    DownloadFailure,
    LaunchFailure,
    Success,
    ToolFailure,
    UnexpectedFailure,
    UploadFailure,
    WorkerPaths,
    WrapperOutcome,
)

logger = logging.getLogger(__name__)

DEFAULT_INPUT_SUFFIX = ".png"

Spawn = Callable[..., Awaitable[Any]]


def resolve_paths(
    source_uri: str,
    output_name: str,
    tesseract_path: Path,
    work_dir: Path,
    output_suffix: str = ".txt",
) -> WorkerPaths:
    """Compute the scratch input file and the expected OCR output file.

    The input keeps the suffix of the URI path so the OCR tool sees a
    familiar extension; tesseract appends output_suffix to the base name.
    """
    suffix = PurePosixPath(urlparse(source_uri).path).suffix or DEFAULT_INPUT_SUFFIX
    output_base = work_dir / output_name
    return WorkerPaths(
        tesseract=tesseract_path,
        input_file=work_dir / f"{output_name}_in{suffix}",
        output_base=output_base,
        output_file=work_dir / f"{output_name}{output_suffix}",
    )


class WorkerWrapper:
    """Run the download / OCR / upload pipeline for one task.

    Args:
        store: Blob store holding the result container.
        results_container: Container receiving the OCR text.
        tesseract_path: OCR binary staged on the node.
        work_dir: Scratch directory for input and output files.
        output_suffix: Extension the OCR tool appends to its output base.
        download_timeout: HTTP timeout in seconds for the input fetch.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        spawn: Process launcher, asyncio.create_subprocess_exec by default.
    """

    def __init__(
        self,
        store: BaseBlobStore,
        results_container: str,
        tesseract_path: Path,
        work_dir: Path,
        output_suffix: str = ".txt",
        download_timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
        spawn: Spawn | None = None,
    ) -> None:
        self._store = store
        self._results_container = results_container
        self._tesseract_path = tesseract_path
        self._work_dir = work_dir
        self._output_suffix = output_suffix
        self._download_timeout = download_timeout
        self._transport = transport
        self._spawn = spawn or asyncio.create_subprocess_exec

    async def run(self, source_uri: str, output_name: str) -> WrapperOutcome:
        """Execute the pipeline; never raises for ordinary exceptions."""
        set_task_context(output_name)
        try:
            return await self._run(source_uri, output_name)
        except Exception as exc:
            logger.exception("Failed executing worker wrapper")
            return UnexpectedFailure(exc)
        finally:
            set_stage(None)

    async def _run(self, source_uri: str, output_name: str) -> WrapperOutcome:
        set_stage("resolve-paths")
        paths = resolve_paths(
            source_uri, output_name, self._tesseract_path,
            self._work_dir, self._output_suffix,
        )
        logger.info("Input: %s", _redact(source_uri))
        logger.info("Output base: %s", output_name)

        set_stage("ensure-output-container")
        await self._store.ensure_container(self._results_container)

        set_stage("download")
        try:
            size = await self.download(source_uri, paths.input_file)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            logger.error("Error downloading file: %s", exc)
            return DownloadFailure(str(exc))
        logger.info("Local file written: %s (%d bytes)", paths.input_file, size)

        set_stage("invoke-ocr")
        try:
            process = await self._spawn(
                str(paths.tesseract), str(paths.input_file), str(paths.output_base),
            )
        except OSError as exc:
            logger.error("Unable to launch %s: %s", paths.tesseract, exc)
            return LaunchFailure(str(exc))
        exit_code = await process.wait()

        set_stage("inspect-exit")
        logger.info("OCR exit code: %d", exit_code)
        if exit_code != 0:
            return ToolFailure(exit_code)

        set_stage("upload")
        try:
            if not paths.output_file.is_file():
                raise FileNotFoundError(f"OCR output not found: {paths.output_file}")
            await self._store.upload_file(
                self._results_container, output_name, paths.output_file,
            )
        except Exception as exc:
            logger.error("Unable to upload result: %s", exc)
            return UploadFailure(str(exc))
        logger.info("Upload completed: %s/%s", self._results_container, output_name)

        return Success()

    async def download(self, source_uri: str, target: Path) -> int:
        """Stream the artifact into target; raises on transport or HTTP errors.

        Returns:
            Number of bytes written.
        """
        written = 0
        target.parent.mkdir(parents=True, exist_ok=True)
        async with httpx.AsyncClient(
            timeout=self._download_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            async with client.stream("GET", source_uri) as response:
                response.raise_for_status()
                with open(target, "wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
                        written += len(chunk)
        return written


def _redact(uri: str) -> str:
    """Drop the query string (the read grant) before logging a URI."""
    return uri.split("?", 1)[0]
