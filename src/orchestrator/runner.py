# src/orchestrator/runner.py - v1
"""Sequential pipelines behind the CLI actions.

create-pool:  list binaries -> ensure pool
delete-pool:  ensure no pool
schedule:     list inputs -> dispatch -> wait -> report

Each step is awaited before the next starts; pool setup and dispatch never
overlap.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import timedelta

from pydantic import BaseModel, Field

from batchocr.config.settings import Settings
from batchocr.logging.context import set_stage
from batchocr.orchestrator.dispatcher import JobDispatcher
from batchocr.orchestrator.monitor import CompletionMonitor
from batchocr.orchestrator.pool_manager import PoolManager
from batchocr.scheduler.base_backend import BaseBatchBackend
from batchocr.scheduler.models import (
    JobHandle,
    PoolAction,
    PoolSpec,
    TaskResult,
    WaitOutcome,
)
from batchocr.storage.base_blob_store import BaseBlobStore
from batchocr.storage.lister import ArtifactLister

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


def _silent(_: str) -> None:
    return None


class ScheduleResult(BaseModel):
    """Outcome of one schedule run."""

    job: JobHandle
    wait_outcome: WaitOutcome
    results: list[TaskResult] = Field(default_factory=list)


class BatchRunner:
    """Wire lister, pool manager, dispatcher and monitor for one deployment.

    Args:
        settings: Application settings (pool name, containers, command template).
        store: Blob store holding binaries and inputs.
        backend: Scheduling backend.
        echo: Console narration sink (progress lines for the operator).
    """

    def __init__(
        self,
        settings: Settings,
        store: BaseBlobStore,
        backend: BaseBatchBackend,
        echo: Echo | None = None,
    ) -> None:
        self._settings = settings
        self._echo = echo or _silent
        self._lister = ArtifactLister(
            store,
            node_os=settings.node_os,
            grant_lifetime=timedelta(days=settings.grant_lifetime_days),
        )
        self.pools = PoolManager(backend)
        self.dispatcher = JobDispatcher(
            backend,
            task_shell=settings.task_shell,
            wrapper_command=settings.task_wrapper_command,
        )
        self.monitor = CompletionMonitor(backend)

    async def create_pool(self) -> PoolAction:
        """Stage the binaries container onto a new pool, unless it exists."""
        set_stage("pool")
        s = self._settings
        self._echo("Get list of 'resource files' required for execution from storage...")
        bootstrap_files = []
        async for ref in self._lister.iter_artifacts(s.binaries_container):
            self._echo(f"- {ref.path}")
            bootstrap_files.append(ref)

        spec = PoolSpec(
            name=s.pool_name,
            node_count=s.pool_node_count,
            vm_size=s.pool_vm_size,
            bootstrap_files=bootstrap_files,
            bootstrap_command=s.pool_start_command,
        )
        self._echo("Creating pool if needed...")
        action = await self.pools.create_pool(spec)
        if action == "created":
            self._echo(f"Pool {s.pool_name} created!")
        else:
            self._echo(
                "Action 'Create Pool' not executed since pool does exist, already!"
            )
        return action

    async def delete_pool(self) -> PoolAction:
        """Delete the configured pool, if present."""
        set_stage("pool")
        name = self._settings.pool_name
        self._echo("Deleting pool if needed...")
        action = await self.pools.delete_pool(name)
        if action == "deleted":
            self._echo(f"Pool {name} deleted!")
        else:
            self._echo(
                "Action 'Delete Pool' not executed since pool does not exist, anyway!"
            )
        return action

    async def schedule(self, timeout: timedelta | None = None) -> ScheduleResult:
        """List inputs, dispatch one task each, wait, then report."""
        s = self._settings
        if timeout is None:
            timeout = timedelta(minutes=s.wait_timeout_minutes)

        set_stage("list")
        self._echo("Get list of 'files' to be processed in tasks...")
        artifacts = []
        async for ref in self._lister.iter_artifacts(s.source_container):
            self._echo(f"- {ref.path}")
            artifacts.append(ref)

        set_stage("dispatch")
        self._echo("Creating a job with its tasks...")
        job = await self.dispatcher.dispatch(artifacts, s.pool_name)
        self._echo(f"- Created job {job.job_id}")
        for task in job.tasks:
            self._echo(f"  - {task.task_id} for file {task.artifact.path}")

        set_stage("wait")
        self._echo("Waiting for job to be completed...")
        outcome = await self.monitor.wait_all(job, "completed", timeout)
        if outcome == "all_terminal":
            self._echo("All tasks completed!")
        else:
            self._echo(f"Timed out after {timeout}; reporting current task states.")

        set_stage("report")
        results = await self.monitor.report_results(job)
        set_stage(None)
        return ScheduleResult(job=job, wait_outcome=outcome, results=results)
