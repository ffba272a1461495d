# src/logging/context.py - v1
"""Contextual logging support: attach job_id, task_id and stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per dispatch on the orchestrator and per invocation on the worker.
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job_id: str | None = None
    task_id: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        job_id=_job_id.get(),
        task_id=_task_id.get(),
        stage=_stage.get(),
    )


def set_job_context(job_id: str) -> None:
    """Set job-level context (called once per dispatch)."""
    _job_id.set(job_id)


def set_task_context(task_id: str) -> None:
    """Set task-level context (worker side, output name as task id)."""
    _task_id.set(task_id)


def set_stage(stage: str | None) -> None:
    """Set the current pipeline stage (pool, dispatch, wait, download, ...)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _task_id.set(None)
    _stage.set(None)
