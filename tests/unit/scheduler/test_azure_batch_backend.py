# tests/unit/scheduler/test_azure_batch_backend.py - v1
"""Tests for scheduler/azure_batch_backend.py - mocked BatchServiceClient."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import azure.batch.models as batchmodels
import pytest

from batchocr.scheduler.azure_batch_backend import AzureBatchBackend, PoolImage, _map_state
from batchocr.scheduler.base_backend import BackendError
from batchocr.scheduler.models import PoolSpec, TaskSpec
from tests.conftest import make_artifact

IMAGE = PoolImage(
    publisher="canonical",
    offer="0001-com-ubuntu-server-jammy",
    sku="22_04-lts",
    node_agent_sku="batch.node.ubuntu 22.04",
)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def backend(client) -> AzureBatchBackend:
    with patch(
        "batchocr.scheduler.azure_batch_backend.AzureBatchBackend.__init__",
        return_value=None,
    ):
        b = AzureBatchBackend.__new__(AzureBatchBackend)
        b._client = client
        b._image = IMAGE
        b._poll_interval = 0.0
    return b


def _batch_error(code: str) -> batchmodels.BatchErrorException:
    exc = batchmodels.BatchErrorException.__new__(batchmodels.BatchErrorException)
    exc.error = MagicMock(code=code)
    return exc


def _cloud_task(task_id: str, state, exit_code=None) -> MagicMock:
    task = MagicMock()
    task.id = task_id
    task.state = state
    task.execution_info = None if exit_code is None else MagicMock(exit_code=exit_code)
    return task


class TestMapState:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("active", "pending"),
            ("preparing", "pending"),
            ("running", "running"),
            ("completed", "completed"),
            (batchmodels.TaskState.completed, "completed"),
            (batchmodels.TaskState.running, "running"),
        ],
    )
    def test_mapping(self, raw, expected):
        assert _map_state(raw) == expected


class TestPools:
    @pytest.mark.asyncio
    async def test_lookup_exists(self, backend, client):
        assert await backend.lookup_pool("samplepool") == "exists"
        client.pool.get.assert_called_once_with("samplepool")

    @pytest.mark.asyncio
    async def test_lookup_absent(self, backend, client):
        client.pool.get.side_effect = _batch_error("PoolNotFound")
        assert await backend.lookup_pool("samplepool") == "absent"

    @pytest.mark.asyncio
    async def test_lookup_other_batch_error(self, backend, client):
        client.pool.get.side_effect = _batch_error("AuthenticationFailed")
        assert await backend.lookup_pool("samplepool") == "lookup_failed"

    @pytest.mark.asyncio
    async def test_lookup_transport_error(self, backend, client):
        client.pool.get.side_effect = ConnectionError("unreachable")
        assert await backend.lookup_pool("samplepool") == "lookup_failed"

    @pytest.mark.asyncio
    async def test_create_pool_with_start_task(self, backend, client):
        spec = PoolSpec(
            name="samplepool",
            node_count=5,
            vm_size="standard_d2s_v3",
            bootstrap_files=[
                make_artifact("A.exe", "https://blobs/tesseract/A.exe?sig=1"),
                make_artifact("B.dll", "https://blobs/tesseract/B.dll?sig=2"),
            ],
            bootstrap_command="/bin/sh -c 'cp -r . \"$AZ_BATCH_NODE_SHARED_DIR\"'",
        )
        await backend.create_pool(spec)

        pool = client.pool.add.call_args.args[0]
        assert pool.id == "samplepool"
        assert pool.target_dedicated_nodes == 5
        assert pool.vm_size == "standard_d2s_v3"
        assert pool.virtual_machine_configuration.node_agent_sku_id == "batch.node.ubuntu 22.04"
        start = pool.start_task
        assert start.wait_for_success is True
        assert start.command_line == spec.bootstrap_command
        assert [(r.http_url, r.file_path) for r in start.resource_files] == [
            ("https://blobs/tesseract/A.exe?sig=1", "A.exe"),
            ("https://blobs/tesseract/B.dll?sig=2", "B.dll"),
        ]

    @pytest.mark.asyncio
    async def test_delete_pool(self, backend, client):
        await backend.delete_pool("samplepool")
        client.pool.delete.assert_called_once_with("samplepool")

    @pytest.mark.asyncio
    async def test_sdk_failure_wrapped(self, backend, client):
        client.pool.add.side_effect = RuntimeError("quota exceeded")
        spec = PoolSpec(name="p", node_count=1, vm_size="small", bootstrap_command="true")
        with pytest.raises(BackendError, match="create pool failed: quota exceeded"):
            await backend.create_pool(spec)


class TestJobsAndTasks:
    @pytest.mark.asyncio
    async def test_create_job_bound_to_pool(self, backend, client):
        await backend.create_job("ocr-1", "samplepool")
        job = client.job.add.call_args.args[0]
        assert job.id == "ocr-1"
        assert job.pool_info.pool_id == "samplepool"

    @pytest.mark.asyncio
    async def test_add_task(self, backend, client):
        task = TaskSpec(
            task_id="task_no_0", sequence=0, command_line="run it",
            artifact=make_artifact("x/1.png"), output_name="1",
        )
        await backend.add_task("ocr-1", task)
        kwargs = client.task.add.call_args.kwargs
        assert kwargs["job_id"] == "ocr-1"
        assert kwargs["task"].id == "task_no_0"
        assert kwargs["task"].command_line == "run it"

    @pytest.mark.asyncio
    async def test_add_task_failure_wrapped(self, backend, client):
        client.task.add.side_effect = RuntimeError("TaskExists")
        task = TaskSpec(
            task_id="task_no_0", sequence=0, command_line="run",
            artifact=make_artifact("x/1.png"), output_name="1",
        )
        with pytest.raises(BackendError, match="add task"):
            await backend.add_task("ocr-1", task)

    @pytest.mark.asyncio
    async def test_commit_terminates_on_completion(self, backend, client):
        await backend.commit_job("ocr-1")
        job_id, patch_param = client.job.patch.call_args.args
        assert job_id == "ocr-1"
        assert patch_param.on_all_tasks_complete == batchmodels.OnAllTasksComplete.terminate_job

    @pytest.mark.asyncio
    async def test_get_task_reads_exit_code(self, backend, client):
        client.task.get.return_value = _cloud_task("task_no_2", "completed", exit_code=1)
        result = await backend.get_task("ocr-1", "task_no_2")
        assert result.as_tuple() == ("task_no_2", "completed", 1)

    @pytest.mark.asyncio
    async def test_get_task_without_execution_info(self, backend, client):
        client.task.get.return_value = _cloud_task("task_no_0", "active")
        result = await backend.get_task("ocr-1", "task_no_0")
        assert result.as_tuple() == ("task_no_0", "pending", None)

    @pytest.mark.asyncio
    async def test_list_tasks(self, backend, client):
        client.task.list.return_value = iter([
            _cloud_task("task_no_0", "completed", 0),
            _cloud_task("task_no_1", "running"),
        ])
        results = await backend.list_tasks("ocr-1")
        assert [r.state for r in results] == ["completed", "running"]


class TestWaitForTasks:
    @pytest.mark.asyncio
    async def test_all_terminal_after_polls(self, backend, client):
        client.task.list.side_effect = [
            [_cloud_task("task_no_0", "running"), _cloud_task("task_no_1", "active")],
            [_cloud_task("task_no_0", "completed", 0), _cloud_task("task_no_1", "running")],
            [_cloud_task("task_no_0", "completed", 0), _cloud_task("task_no_1", "completed", 2)],
        ]
        outcome = await backend.wait_for_tasks(
            "ocr-1", ["task_no_0", "task_no_1"], "completed", timedelta(minutes=30),
        )
        assert outcome == "all_terminal"
        assert client.task.list.call_count == 3

    @pytest.mark.asyncio
    async def test_timed_out(self, backend, client):
        backend._poll_interval = 0.01
        client.task.list.side_effect = lambda *a, **k: [_cloud_task("task_no_0", "running")]
        outcome = await backend.wait_for_tasks(
            "ocr-1", ["task_no_0"], "completed", timedelta(seconds=0.05),
        )
        assert outcome == "timed_out"

    @pytest.mark.asyncio
    async def test_missing_task_counts_as_outstanding(self, backend, client):
        backend._poll_interval = 0.01
        client.task.list.side_effect = lambda *a, **k: []
        outcome = await backend.wait_for_tasks(
            "ocr-1", ["task_no_0"], "completed", timedelta(seconds=0.03),
        )
        assert outcome == "timed_out"
