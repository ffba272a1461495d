# tests/conftest.py - v1
"""Shared test fixtures for unit and integration tests.

Provides in-memory fakes for the scheduling backend and the blob store,
an httpx transport that serves the fake store's signed URLs, and settings
without a .env file. No external services are contacted.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
import pytest

from batchocr.config.settings import Settings
from batchocr.scheduler.base_backend import BackendError, BaseBatchBackend
from batchocr.scheduler.models import (
    PoolLookup,
    PoolSpec,
    TaskResult,
    TaskSpec,
    TaskState,
    WaitOutcome,
)
from batchocr.storage.base_blob_store import BaseBlobStore
from batchocr.storage.models import ArtifactReference

FAKE_BLOB_HOST = "https://fakestore.blob.test"


# =====================================================================
#  FAKE BLOB STORE
# =====================================================================


class FakeBlobStore(BaseBlobStore):
    """Dict-backed blob store; signed URLs resolve through serve_transport()."""

    def __init__(self, containers: dict[str, dict[str, bytes]] | None = None) -> None:
        self.containers: dict[str, dict[str, bytes]] = {
            name: dict(objects) for name, objects in (containers or {}).items()
        }
        self.ensured: list[str] = []
        self.uploads: list[tuple[str, str]] = []
        self.signed: list[tuple[str, str, datetime]] = []
        self.fail_listing = False
        self.fail_upload = False

    async def list_names(self, container: str) -> list[str]:
        if self.fail_listing:
            raise ConnectionError("listing failed")
        return list(self.containers.get(container, {}))

    async def sign_read_url(self, container: str, name: str, expires_at: datetime) -> str:
        self.signed.append((container, name, expires_at))
        return f"{FAKE_BLOB_HOST}/{container}/{name}?sp=r&se={int(expires_at.timestamp())}&sig=fake"

    async def ensure_container(self, container: str) -> None:
        self.ensured.append(container)
        self.containers.setdefault(container, {})

    async def upload_file(self, container: str, name: str, local_path: Path) -> None:
        if self.fail_upload:
            raise ConnectionError("upload refused")
        self.uploads.append((container, name))
        self.containers.setdefault(container, {})[name] = Path(local_path).read_bytes()

    def serve_transport(self) -> httpx.MockTransport:
        """Transport answering GETs on signed URLs from the stored bytes."""

        def handler(request: httpx.Request) -> httpx.Response:
            parts = unquote(urlparse(str(request.url)).path).lstrip("/").split("/", 1)
            if len(parts) == 2 and parts[1] in self.containers.get(parts[0], {}):
                return httpx.Response(200, content=self.containers[parts[0]][parts[1]])
            return httpx.Response(404, text="BlobNotFound")

        return httpx.MockTransport(handler)


# =====================================================================
#  FAKE SCHEDULING BACKEND
# =====================================================================


class FakeBatchBackend(BaseBatchBackend):
    """In-memory scheduling backend with simulated time for waits.

    Tasks start "pending". schedule_completion() arranges for a task to
    complete with an exit code after a number of wait polls; each poll
    advances the simulated clock by poll_interval.
    """

    def __init__(self, poll_interval: timedelta = timedelta(minutes=1)) -> None:
        self.pools: dict[str, PoolSpec] = {}
        self.failing_lookups: set[str] = set()
        self.jobs: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.poll_interval = poll_interval
        self.polls = 0
        self.fail_add_at: int | None = None
        self._planned: dict[str, list] = {}

    # --- Pools ---

    async def lookup_pool(self, name: str) -> PoolLookup:
        self.calls.append(("lookup_pool", name))
        if name in self.failing_lookups:
            return "lookup_failed"
        return "exists" if name in self.pools else "absent"

    async def create_pool(self, spec: PoolSpec) -> None:
        self.calls.append(("create_pool", spec.name))
        if spec.name in self.pools:
            raise BackendError(f"PoolExists: {spec.name}")
        self.pools[spec.name] = spec

    async def delete_pool(self, name: str) -> None:
        self.calls.append(("delete_pool", name))
        if name not in self.pools:
            raise BackendError(f"PoolNotFound: {name}")
        del self.pools[name]

    # --- Jobs and tasks ---

    async def create_job(self, job_id: str, pool_name: str) -> None:
        self.calls.append(("create_job", job_id, pool_name))
        self.jobs[job_id] = {
            "pool": pool_name, "tasks": {}, "results": {}, "committed": False,
        }

    async def add_task(self, job_id: str, task: TaskSpec) -> None:
        job = self.jobs[job_id]
        if self.fail_add_at is not None and len(job["tasks"]) == self.fail_add_at:
            raise BackendError("TaskAdd rejected")
        self.calls.append(("add_task", job_id, task.task_id))
        job["tasks"][task.task_id] = task
        job["results"][task.task_id] = TaskResult(task_id=task.task_id, state="pending")

    async def commit_job(self, job_id: str) -> None:
        self.calls.append(("commit_job", job_id))
        self.jobs[job_id]["committed"] = True

    async def get_task(self, job_id: str, task_id: str) -> TaskResult:
        self.calls.append(("get_task", job_id, task_id))
        return self.jobs[job_id]["results"][task_id]

    async def list_tasks(self, job_id: str) -> list[TaskResult]:
        return list(self.jobs[job_id]["results"].values())

    async def wait_for_tasks(
        self,
        job_id: str,
        task_ids: list[str],
        target_state: TaskState,
        timeout: timedelta,
    ) -> WaitOutcome:
        self.calls.append(("wait_for_tasks", job_id, tuple(task_ids), target_state, timeout))
        elapsed = timedelta(0)
        while True:
            self.polls += 1
            self._advance(job_id)
            results = self.jobs[job_id]["results"]
            if all(results[tid].state == target_state for tid in task_ids):
                return "all_terminal"
            elapsed += self.poll_interval
            if elapsed >= timeout:
                return "timed_out"

    # --- Test helpers ---

    def schedule_completion(self, task_id: str, exit_code: int, after_polls: int = 0) -> None:
        """Complete task_id with exit_code once after_polls polls have passed."""
        self._planned[task_id] = [after_polls, exit_code]

    def set_state(self, job_id: str, task_id: str, state: TaskState, exit_code: int | None = None) -> None:
        self.jobs[job_id]["results"][task_id] = TaskResult(
            task_id=task_id, state=state, exit_code=exit_code,
        )

    def _advance(self, job_id: str) -> None:
        results = self.jobs[job_id]["results"]
        for task_id, plan in list(self._planned.items()):
            if task_id not in results:
                continue
            if plan[0] <= 0:
                results[task_id] = TaskResult(
                    task_id=task_id, state="completed", exit_code=plan[1],
                )
                del self._planned[task_id]
            else:
                plan[0] -= 1
                results[task_id] = TaskResult(task_id=task_id, state="running")


# =====================================================================
#  FIXTURES
# =====================================================================


@pytest.fixture
def fake_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def fake_backend() -> FakeBatchBackend:
    return FakeBatchBackend()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file."""
    return Settings(_env_file=None)


def make_artifact(path: str, uri: str | None = None) -> ArtifactReference:
    """Build an ArtifactReference without going through a store."""
    return ArtifactReference(
        name=path,
        path=path,
        uri=uri or f"{FAKE_BLOB_HOST}/ocr-source/{path}?sig=fake",
        expires_at=datetime.now(timezone.utc) + timedelta(days=365),
    )


@pytest.fixture
def sample_artifacts() -> list[ArtifactReference]:
    """Three input images across two folders."""
    return [make_artifact(p) for p in ("x/1.png", "x/2.png", "y/3.png")]
