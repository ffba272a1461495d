# src/orchestrator/monitor.py - v1
"""Completion monitor: one blocking wait over a job's tasks, then a report."""

from __future__ import annotations

import logging
from datetime import timedelta

from batchocr.scheduler.base_backend import BaseBatchBackend
from batchocr.scheduler.models import JobHandle, TaskResult, TaskState, WaitOutcome

logger = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT = timedelta(minutes=30)


class CompletionMonitor:
    """Observe task state; never mutates it.

    Args:
        backend: Scheduling backend that reports task state.
    """

    def __init__(self, backend: BaseBatchBackend) -> None:
        self._backend = backend

    async def wait_all(
        self,
        job: JobHandle,
        target_state: TaskState = "completed",
        timeout: timedelta = DEFAULT_WAIT_TIMEOUT,
    ) -> WaitOutcome:
        """Block until every task of the job is in target_state or timeout elapses.

        A timeout is returned, not raised; after "timed_out" the caller must
        not assume any task finished.
        """
        if not job.tasks:
            return "all_terminal"

        logger.info(
            "Waiting up to %s for %d task(s) of job %s to be %s",
            timeout, len(job.tasks), job.job_id, target_state,
        )
        outcome = await self._backend.wait_for_tasks(
            job.job_id, job.task_ids, target_state, timeout,
        )
        logger.info("Wait on job %s ended: %s", job.job_id, outcome)
        return outcome

    async def report_results(self, job: JobHandle) -> list[TaskResult]:
        """Re-read every task; one result per task in dispatch order."""
        results = [
            await self._backend.get_task(job.job_id, task_id)
            for task_id in job.task_ids
        ]
        failed = sum(1 for r in results if r.exit_code not in (0, None))
        pending = sum(1 for r in results if r.state != "completed")
        logger.info(
            "Job %s: %d task(s), %d nonzero exit, %d not completed",
            job.job_id, len(results), failed, pending,
        )
        return results
