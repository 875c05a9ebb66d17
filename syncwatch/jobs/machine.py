from __future__ import annotations

import logging
from dataclasses import dataclass

from syncwatch.jobs.progress import JobProgress, aggregate_progress
from syncwatch.jobs.types import TERMINAL_STATES, JobRecord, JobStatus, MonitorState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    pass


ALLOWED_TRANSITIONS: dict[MonitorState, set[MonitorState]] = {
    MonitorState.IDLE: {MonitorState.RUNNING, MonitorState.COMPLETED, MonitorState.FAILED},
    MonitorState.RUNNING: {MonitorState.RUNNING, MonitorState.COMPLETED, MonitorState.FAILED},
    MonitorState.COMPLETED: {MonitorState.IDLE},
    MonitorState.FAILED: {MonitorState.IDLE},
}

_STATE_FOR_STATUS: dict[JobStatus, MonitorState] = {
    JobStatus.RUNNING: MonitorState.RUNNING,
    JobStatus.COMPLETED: MonitorState.COMPLETED,
    JobStatus.FAILED: MonitorState.FAILED,
}


def state_for_status(status: JobStatus) -> MonitorState:
    return _STATE_FOR_STATUS[status]


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    state: MonitorState
    job: JobRecord | None
    progress: JobProgress
    error: str | None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class JobStateMachine:
    """In-memory lifecycle of the one job a monitor tracks."""

    def __init__(self) -> None:
        self._state = MonitorState.IDLE
        self._job: JobRecord | None = None
        self._error: str | None = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def job(self) -> JobRecord | None:
        return self._job

    @property
    def error(self) -> str | None:
        return self._error

    def _enforce_transition(self, to_state: MonitorState) -> None:
        if to_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidTransitionError(f"Illegal transition: {self._state.value} -> {to_state.value}")

    def apply(self, record: JobRecord) -> MonitorSnapshot:
        """Adopt a server snapshot; the monitor state follows the job status."""
        target = state_for_status(record.status)
        self._enforce_transition(target)
        if target is not self._state:
            logger.info("Sync job %s: %s -> %s", record.id, self._state.value, target.value)
        self._state = target
        self._job = record
        self._error = (record.error or "Sync failed") if target is MonitorState.FAILED else None
        return self.snapshot()

    def fail(self, message: str, record: JobRecord | None = None) -> MonitorSnapshot:
        self._enforce_transition(MonitorState.FAILED)
        logger.info("Sync job %s failed: %s", record.id if record else "-", message)
        self._state = MonitorState.FAILED
        self._job = record
        self._error = message
        return self.snapshot()

    def reset(self) -> MonitorSnapshot:
        if self._state is MonitorState.IDLE:
            return self.snapshot()
        self._enforce_transition(MonitorState.IDLE)
        self._state = MonitorState.IDLE
        self._job = None
        self._error = None
        return self.snapshot()

    def snapshot(self) -> MonitorSnapshot:
        sub_tasks = self._job.sub_tasks if self._job is not None else ()
        return MonitorSnapshot(
            state=self._state,
            job=self._job,
            progress=aggregate_progress(sub_tasks),
            error=self._error,
        )
