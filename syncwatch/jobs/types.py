from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SubTaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class MonitorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({MonitorState.COMPLETED, MonitorState.FAILED})

RUNNING_ALIASES = frozenset({"running", "in_progress", "in-progress", "pending", "queued", "processing"})
COMPLETED_ALIASES = frozenset({"completed", "complete", "success", "succeeded", "done"})
FAILED_ALIASES = frozenset({"failed", "error", "errored", "failure"})
SUBTASK_PENDING_ALIASES = frozenset({"pending", "queued"})


def _token(raw: object) -> str:
    if isinstance(raw, Enum):
        raw = raw.value
    return str(raw or "").strip().lower()


def normalize_job_status(raw: object) -> JobStatus:
    token = _token(raw)
    if token in RUNNING_ALIASES:
        return JobStatus.RUNNING
    if token in COMPLETED_ALIASES:
        return JobStatus.COMPLETED
    if token in FAILED_ALIASES:
        return JobStatus.FAILED
    raise ValueError(f"Unrecognized job status: {raw!r}")


def normalize_subtask_status(raw: object) -> SubTaskStatus:
    token = _token(raw)
    if token in SUBTASK_PENDING_ALIASES:
        return SubTaskStatus.PENDING
    if token in RUNNING_ALIASES:
        return SubTaskStatus.RUNNING
    if token in COMPLETED_ALIASES:
        return SubTaskStatus.COMPLETED
    if token in FAILED_ALIASES:
        return SubTaskStatus.FAILED
    return SubTaskStatus.PENDING


@dataclass(slots=True, frozen=True)
class SubTaskRecord:
    resource_id: str
    platform_tag: str
    status: SubTaskStatus
    current_step: str | None = None


@dataclass(slots=True, frozen=True)
class JobRecord:
    id: str
    status: JobStatus
    started_at: datetime | None
    finished_at: datetime | None = None
    error: str | None = None
    sub_tasks: tuple[SubTaskRecord, ...] = field(default_factory=tuple)

    @property
    def is_running(self) -> bool:
        return self.status is JobStatus.RUNNING
