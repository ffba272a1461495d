# src/scheduler/base_backend.py - v1
"""Abstract scheduling backend interface.

The backend is the sole authority over pool and task state. Callers issue
each operation and await it to completion before the next dependent step.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from batchocr.scheduler.models import (
    PoolLookup,
    PoolSpec,
    TaskResult,
    TaskSpec,
    TaskState,
    WaitOutcome,
)


class BackendError(Exception):
    """A scheduling backend call failed."""


class BaseBatchBackend(ABC):
    """Unified interface for job scheduling backends."""

    # --- Pools ---

    @abstractmethod
    async def lookup_pool(self, name: str) -> PoolLookup:
        """Report whether the pool exists, is absent, or could not be looked up."""

    @abstractmethod
    async def create_pool(self, spec: PoolSpec) -> None:
        """Provision the pool; nodes run the start task before taking work."""

    @abstractmethod
    async def delete_pool(self, name: str) -> None:
        """Tear down the pool and all of its nodes."""

    # --- Jobs and tasks ---

    @abstractmethod
    async def create_job(self, job_id: str, pool_name: str) -> None:
        """Create an empty job bound to the pool."""

    @abstractmethod
    async def add_task(self, job_id: str, task: TaskSpec) -> None:
        """Append one task to the job."""

    @abstractmethod
    async def commit_job(self, job_id: str) -> None:
        """Seal the job once all tasks have been appended."""

    @abstractmethod
    async def get_task(self, job_id: str, task_id: str) -> TaskResult:
        """Read one task's current state and exit code."""

    @abstractmethod
    async def list_tasks(self, job_id: str) -> list[TaskResult]:
        """Read every task of the job."""

    @abstractmethod
    async def wait_for_tasks(
        self,
        job_id: str,
        task_ids: list[str],
        target_state: TaskState,
        timeout: timedelta,
    ) -> WaitOutcome:
        """Block until every listed task reaches target_state or timeout elapses."""
