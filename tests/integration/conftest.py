# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests.

The scheduling backend here actually runs each committed task through the
worker wrapper in-process, so a schedule run exercises lister, dispatcher,
monitor and worker together against the in-memory blob store.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from batchocr.scheduler.models import TaskSpec
from batchocr.worker.main import exit_code_for
from batchocr.worker.wrapper import WorkerWrapper
from tests.conftest import FakeBatchBackend, FakeBlobStore

logger = logging.getLogger(__name__)


class FakeProcess:
    def __init__(self, code: int) -> None:
        self._code = code

    async def wait(self) -> int:
        return self._code


class ScriptedOcr:
    """OCR stand-in: echoes the input size, fails for configured output names."""

    def __init__(self, failures: dict[str, int] | None = None) -> None:
        self.failures = failures or {}
        self.invocations: list[str] = []

    async def __call__(self, tesseract: str, input_file: str, output_base: str) -> FakeProcess:
        name = Path(output_base).name
        self.invocations.append(name)
        if name in self.failures:
            return FakeProcess(self.failures[name])
        size = Path(input_file).stat().st_size
        Path(f"{output_base}.txt").write_text(f"{name}: {size} bytes", encoding="utf-8")
        return FakeProcess(0)


class ExecutingBackend(FakeBatchBackend):
    """Runs every task of a committed job through WorkerWrapper."""

    def __init__(self, store: FakeBlobStore, ocr: ScriptedOcr, work_root: Path) -> None:
        super().__init__()
        self._store = store
        self._ocr = ocr
        self._work_root = work_root

    async def commit_job(self, job_id: str) -> None:
        await super().commit_job(job_id)
        for task in self.jobs[job_id]["tasks"].values():
            code = await self._execute(task)
            logger.debug("%s exited with %d", task.task_id, code)
            self.schedule_completion(task.task_id, code, after_polls=task.sequence)

    async def _execute(self, task: TaskSpec) -> int:
        wrapper = WorkerWrapper(
            store=self._store,
            results_container="ocr-results",
            tesseract_path=self._work_root / "shared" / "tesseract",
            work_dir=self._work_root / task.task_id,
            transport=self._store.serve_transport(),
            spawn=self._ocr,
        )
        outcome = await wrapper.run(task.artifact.uri, task.output_name)
        return exit_code_for(outcome)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore({
        "tesseract": {"A.exe": b"exe", "B.dll": b"dll"},
        "ocr-source": {
            "x/1.png": b"one",
            "x/2.png": b"two-two",
            "y/3.png": b"three-three-three",
        },
    })
