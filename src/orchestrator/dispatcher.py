# src/orchestrator/dispatcher.py - v1
"""Job dispatcher: one job per run, one task per input artifact.

Tasks are appended in listing order as task_no_0..task_no_{N-1}; each
command hands the worker wrapper the artifact's signed URI and the output
base name derived from the artifact's file name.
"""

from __future__ import annotations

import logging
import shlex
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone

from batchocr.logging.context import set_job_context
from batchocr.scheduler.base_backend import BaseBatchBackend
from batchocr.scheduler.models import JobHandle, TaskSpec
from batchocr.storage.models import ArtifactReference

logger = logging.getLogger(__name__)

TASK_ID_PREFIX = "task_no_"


class DuplicateOutputNameError(ValueError):
    """Two input artifacts would write the same output object."""

    def __init__(self, duplicates: dict[str, list[str]]) -> None:
        self.duplicates = duplicates
        listing = "; ".join(
            f"{name}: {', '.join(paths)}" for name, paths in duplicates.items()
        )
        super().__init__(f"Input artifacts share output base names ({listing})")


class DispatchError(Exception):
    """Appending tasks failed partway; the job is left partially populated."""

    def __init__(self, job_id: str, added: int, total: int, cause: Exception) -> None:
        self.job_id = job_id
        self.added = added
        self.total = total
        super().__init__(
            f"Job {job_id}: added {added}/{total} task(s) before failing: {cause}"
        )


def generate_job_id(timestamp: datetime | None = None) -> str:
    """Generate a job id: ocr-yyyymmddhhmmssffffff (UTC)."""
    ts = timestamp or datetime.now(timezone.utc)
    return f"ocr-{ts.strftime('%Y%m%d%H%M%S%f')}"


def task_id_for(sequence: int) -> str:
    return f"{TASK_ID_PREFIX}{sequence}"


def _is_cmd_shell(shell: str) -> bool:
    program = shell.split(None, 1)[0].replace("\\", "/").rsplit("/", 1)[-1]
    return program.lower() in ("cmd", "cmd.exe")


def build_command_line(shell: str, wrapper_command: str, uri: str, output_name: str) -> str:
    """Render the task command that invokes the worker wrapper.

    Under a POSIX shell the URI and output name are single-quoted and the
    whole inner command is quoted again as the -c argument, so names with
    $, quotes or spaces reach the worker verbatim. wrapper_command is left
    unquoted so variables such as $AZ_BATCH_NODE_SHARED_DIR still expand.
    With no shell or cmd, arguments are wrapped in plain double quotes.
    """
    if not shell or _is_cmd_shell(shell):
        inner = f'{wrapper_command} "{uri}" "{output_name}"'
        return f"{shell} {inner}" if shell else inner

    inner = f"{wrapper_command} {shlex.quote(uri)} {shlex.quote(output_name)}"
    return f"{shell} {shlex.quote(inner)}"


def find_output_collisions(artifacts: Sequence[ArtifactReference]) -> dict[str, list[str]]:
    """Map each output base name used more than once to the paths using it."""
    counts = Counter(a.output_base_name for a in artifacts)
    return {
        name: [a.path for a in artifacts if a.output_base_name == name]
        for name, n in counts.items()
        if n > 1
    }


class JobDispatcher:
    """Create a job and fan out one task per artifact.

    Args:
        backend: Scheduling backend that owns jobs and tasks.
        task_shell: Shell prefix for task commands (e.g. "/bin/sh -c").
        wrapper_command: Worker wrapper path as seen on the node.
    """

    def __init__(
        self,
        backend: BaseBatchBackend,
        task_shell: str,
        wrapper_command: str,
    ) -> None:
        self._backend = backend
        self._task_shell = task_shell
        self._wrapper_command = wrapper_command

    def plan_tasks(self, artifacts: Sequence[ArtifactReference]) -> list[TaskSpec]:
        """Build the task list without touching the backend.

        Raises:
            DuplicateOutputNameError: If two artifacts share an output base name.
        """
        collisions = find_output_collisions(artifacts)
        if collisions:
            raise DuplicateOutputNameError(collisions)

        tasks: list[TaskSpec] = []
        for sequence, artifact in enumerate(artifacts):
            output_name = artifact.output_base_name
            tasks.append(
                TaskSpec(
                    task_id=task_id_for(sequence),
                    sequence=sequence,
                    command_line=build_command_line(
                        self._task_shell, self._wrapper_command,
                        artifact.uri, output_name,
                    ),
                    artifact=artifact,
                    output_name=output_name,
                )
            )
        return tasks

    async def dispatch(
        self,
        artifacts: Sequence[ArtifactReference],
        pool_name: str,
        job_id: str | None = None,
    ) -> JobHandle:
        """Create the job, append every task in order, then commit.

        Args:
            artifacts: Input artifacts in listing order.
            pool_name: Pool the job is bound to.
            job_id: Explicit job id (default: derived from the current time).

        Returns:
            JobHandle listing the tasks in dispatch order.

        Raises:
            DuplicateOutputNameError: Before any backend call.
            DispatchError: If appending a task fails; no rollback is attempted.
        """
        tasks = self.plan_tasks(artifacts)
        job_id = job_id or generate_job_id()
        set_job_context(job_id)

        logger.info("Creating job %s on pool %s", job_id, pool_name)
        await self._backend.create_job(job_id, pool_name)

        job = JobHandle(job_id=job_id, pool_name=pool_name)
        for task in tasks:
            try:
                await self._backend.add_task(job_id, task)
            except Exception as exc:
                raise DispatchError(job_id, len(job.tasks), len(tasks), exc) from exc
            job.tasks.append(task)
            logger.debug("Added %s for %s", task.task_id, task.artifact.path)

        await self._backend.commit_job(job_id)
        logger.info("Job %s committed with %d task(s)", job_id, len(job.tasks))
        return job
