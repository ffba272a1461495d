# src/scheduler/models.py - v1
"""Scheduling domain models: PoolSpec, JobHandle, TaskSpec, TaskResult."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from batchocr.storage.models import ArtifactReference

# "completed" is terminal whatever the exit code; the exit code is the signal.
TaskState = Literal["pending", "running", "completed"]

PoolLookup = Literal["exists", "absent", "lookup_failed"]

PoolAction = Literal["created", "deleted", "skipped"]

WaitOutcome = Literal["all_terminal", "timed_out"]


class PoolSpec(BaseModel):
    """Everything needed to provision a pool with its start task."""

    name: str
    node_count: int = Field(ge=1)
    vm_size: str
    bootstrap_files: list[ArtifactReference] = Field(default_factory=list)
    bootstrap_command: str


class TaskSpec(BaseModel):
    """One OCR invocation over one input artifact."""

    task_id: str
    sequence: int
    command_line: str
    artifact: ArtifactReference
    output_name: str


class JobHandle(BaseModel):
    """A dispatched job and its tasks in dispatch order."""

    job_id: str
    pool_name: str
    tasks: list[TaskSpec] = Field(default_factory=list)

    @property
    def task_ids(self) -> list[str]:
        return [t.task_id for t in self.tasks]


class TaskResult(BaseModel):
    """State and exit code of a task as read from the backend."""

    task_id: str
    state: TaskState
    exit_code: int | None = None

    def as_tuple(self) -> tuple[str, TaskState, int | None]:
        return (self.task_id, self.state, self.exit_code)
