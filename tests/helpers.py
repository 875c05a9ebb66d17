from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

from syncwatch.api.transport import (
    LegacyOk,
    LegacyResult,
    PollResult,
    Started,
    StartResult,
)
from syncwatch.jobs.types import JobRecord, JobStatus, SubTaskRecord, SubTaskStatus

STARTED_AT = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def sub(resource_id: str, status: SubTaskStatus, *, platform: str = "meta", step: str | None = None) -> SubTaskRecord:
    return SubTaskRecord(resource_id=resource_id, platform_tag=platform, status=status, current_step=step)


def job(job_id: str = "j1", status: JobStatus = JobStatus.RUNNING, *sub_tasks: SubTaskRecord, error: str | None = None) -> JobRecord:
    finished_at = None if status is JobStatus.RUNNING else datetime(2026, 10, 19, 9, 45, tzinfo=timezone.utc)
    return JobRecord(
        id=job_id,
        status=status,
        started_at=STARTED_AT,
        finished_at=finished_at,
        error=error,
        sub_tasks=tuple(sub_tasks),
    )


class ScriptedTransport:
    """Replays canned transport results; the last poll result repeats.

    Exceptions in ``polls`` are raised instead of returned.
    """

    def __init__(
        self,
        *,
        start: StartResult | None = None,
        polls: list[PollResult | asyncio.Future | Exception] | None = None,
        legacy: LegacyResult | None = None,
    ):
        self.start_result = start or Started(job_id="j1")
        self.polls = list(polls or [])
        self.legacy_result = legacy or LegacyOk()
        self.start_delay = 0.0
        self.start_calls = 0
        self.legacy_calls = 0
        self.poll_calls: list[str] = []
        self.on_poll: Callable[[str], None] | None = None

    async def start_job(self) -> StartResult:
        self.start_calls += 1
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        return self.start_result

    async def poll_job(self, job_id: str) -> PollResult:
        self.poll_calls.append(job_id)
        if self.on_poll is not None:
            self.on_poll(job_id)
        if not self.polls:
            raise AssertionError("unexpected poll")
        item = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, asyncio.Future):
            return await item
        return item

    async def legacy_start(self) -> LegacyResult:
        self.legacy_calls += 1
        return self.legacy_result
