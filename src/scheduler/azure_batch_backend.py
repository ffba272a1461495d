# src/scheduler/azure_batch_backend.py - v1
"""Azure Batch scheduling backend (requires 'azure-batch').

Pools are created with a start task that must succeed on every node before
the node is marked usable. Jobs are sealed on commit so that the service
terminates them once all tasks complete. The multi-task wait re-reads task
states on an interval until the deadline; callers see a single blocking
call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from batchocr.scheduler.base_backend import BackendError, BaseBatchBackend
from batchocr.scheduler.models import (
    PoolLookup,
    PoolSpec,
    TaskResult,
    TaskSpec,
    TaskState,
    WaitOutcome,
)

logger = logging.getLogger(__name__)

# Azure Batch task states folded into the three states tracked here.
_STATE_MAP: dict[str, TaskState] = {
    "active": "pending",
    "preparing": "pending",
    "running": "running",
    "completed": "completed",
}


@dataclass(frozen=True)
class PoolImage:
    """Marketplace image and node agent used for pool nodes."""

    publisher: str
    offer: str
    sku: str
    node_agent_sku: str
    version: str = "latest"


def _map_state(state: Any) -> TaskState:
    """Map an SDK TaskState (enum or str) to a tracked state."""
    raw = getattr(state, "value", state)
    return _STATE_MAP.get(str(raw).lower(), "pending")


class AzureBatchBackend(BaseBatchBackend):
    """Scheduling backend talking to an Azure Batch account."""

    def __init__(
        self,
        account_url: str,
        account_name: str,
        account_key: str,
        image: PoolImage,
        poll_interval: float = 5.0,
    ) -> None:
        """Open a Batch service client with shared-key credentials.

        Args:
            account_url: https://<account>.<region>.batch.azure.com
            account_name: Batch account name.
            account_key: Batch account shared key.
            image: Node image for new pools.
            poll_interval: Seconds between state reads while waiting.
        """
        from azure.batch import BatchServiceClient
        from azure.batch.batch_auth import SharedKeyCredentials

        credentials = SharedKeyCredentials(account_name, account_key)
        self._client = BatchServiceClient(credentials, batch_url=account_url)
        self._image = image
        self._poll_interval = poll_interval

    # --- Pools ---

    async def lookup_pool(self, name: str) -> PoolLookup:
        import azure.batch.models as batchmodels

        try:
            self._client.pool.get(name)
            return "exists"
        except batchmodels.BatchErrorException as exc:
            code = getattr(exc.error, "code", None)
            if code == "PoolNotFound":
                return "absent"
            logger.warning("Pool lookup for %s failed: %s", name, code or exc)
            return "lookup_failed"
        except Exception as exc:
            logger.warning("Pool lookup for %s failed: %s", name, exc)
            return "lookup_failed"

    async def create_pool(self, spec: PoolSpec) -> None:
        import azure.batch.models as batchmodels

        start_task = batchmodels.StartTask(
            command_line=spec.bootstrap_command,
            resource_files=[
                batchmodels.ResourceFile(http_url=ref.uri, file_path=ref.path)
                for ref in spec.bootstrap_files
            ],
            user_identity=batchmodels.UserIdentity(
                auto_user=batchmodels.AutoUserSpecification(
                    scope=batchmodels.AutoUserScope.pool,
                    elevation_level=batchmodels.ElevationLevel.admin,
                )
            ),
            wait_for_success=True,
        )
        pool = batchmodels.PoolAddParameter(
            id=spec.name,
            vm_size=spec.vm_size,
            target_dedicated_nodes=spec.node_count,
            virtual_machine_configuration=batchmodels.VirtualMachineConfiguration(
                image_reference=batchmodels.ImageReference(
                    publisher=self._image.publisher,
                    offer=self._image.offer,
                    sku=self._image.sku,
                    version=self._image.version,
                ),
                node_agent_sku_id=self._image.node_agent_sku,
            ),
            start_task=start_task,
        )
        self._call("create pool", self._client.pool.add, pool)

    async def delete_pool(self, name: str) -> None:
        self._call("delete pool", self._client.pool.delete, name)

    # --- Jobs and tasks ---

    async def create_job(self, job_id: str, pool_name: str) -> None:
        import azure.batch.models as batchmodels

        job = batchmodels.JobAddParameter(
            id=job_id,
            pool_info=batchmodels.PoolInformation(pool_id=pool_name),
        )
        self._call("create job", self._client.job.add, job)

    async def add_task(self, job_id: str, task: TaskSpec) -> None:
        import azure.batch.models as batchmodels

        params = batchmodels.TaskAddParameter(
            id=task.task_id,
            command_line=task.command_line,
        )
        self._call("add task", self._client.task.add, job_id=job_id, task=params)

    async def commit_job(self, job_id: str) -> None:
        import azure.batch.models as batchmodels

        patch = batchmodels.JobPatchParameter(
            on_all_tasks_complete=batchmodels.OnAllTasksComplete.terminate_job,
        )
        self._call("commit job", self._client.job.patch, job_id, patch)

    async def get_task(self, job_id: str, task_id: str) -> TaskResult:
        cloud_task = self._call("get task", self._client.task.get, job_id, task_id)
        return self._to_result(cloud_task)

    async def list_tasks(self, job_id: str) -> list[TaskResult]:
        tasks = self._call("list tasks", lambda: list(self._client.task.list(job_id)))
        return [self._to_result(t) for t in tasks]

    async def wait_for_tasks(
        self,
        job_id: str,
        task_ids: list[str],
        target_state: TaskState,
        timeout: timedelta,
    ) -> WaitOutcome:
        import azure.batch.models as batchmodels

        deadline = time.monotonic() + timeout.total_seconds()
        outstanding = set(task_ids)
        options = batchmodels.TaskListOptions(select="id,state")

        while True:
            listed = self._call(
                "list tasks",
                lambda: list(self._client.task.list(job_id, task_list_options=options)),
            )
            states = {t.id: _map_state(t.state) for t in listed}
            outstanding = {
                tid for tid in outstanding if states.get(tid) != target_state
            }
            if not outstanding:
                return "all_terminal"

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    "Wait on job %s timed out with %d task(s) not %s",
                    job_id, len(outstanding), target_state,
                )
                return "timed_out"
            await asyncio.sleep(min(self._poll_interval, remaining))

    # --- Helpers ---

    @staticmethod
    def _to_result(cloud_task: Any) -> TaskResult:
        info = getattr(cloud_task, "execution_info", None)
        return TaskResult(
            task_id=cloud_task.id,
            state=_map_state(cloud_task.state),
            exit_code=getattr(info, "exit_code", None),
        )

    @staticmethod
    def _call(operation: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        """Invoke an SDK call, wrapping failures in BackendError."""
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            raise BackendError(f"Azure Batch {operation} failed: {exc}") from exc
