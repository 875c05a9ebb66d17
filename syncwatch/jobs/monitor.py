from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Union

import httpx

from syncwatch.api.client import HttpJobTransport, build_http_client
from syncwatch.api.transport import (
    JobTransport,
    LegacyOk,
    NotFound,
    NotSupported,
    Snapshot,
    Started,
    TransportError,
    TransportErrorKind,
)
from syncwatch.core.config import Settings, get_settings
from syncwatch.db.init_db import initialize_database
from syncwatch.db.session import get_session_factory
from syncwatch.jobs.machine import InvalidTransitionError, JobStateMachine, MonitorSnapshot
from syncwatch.jobs.poller import Poller, PollerHandle
from syncwatch.jobs.store import JobStore, SqlJobStore
from syncwatch.jobs.types import TERMINAL_STATES, JobRecord, JobStatus, MonitorState

logger = logging.getLogger(__name__)

LEGACY_JOB_ID = "legacy"

ProgressListener = Callable[[MonitorSnapshot], None]
TerminalListener = Callable[[MonitorSnapshot], Union[None, Awaitable[None]]]


class SyncJobMonitor:
    """Client-side tracker for the server's campaign sync job.

    Owns the state machine and the poller; the store is the only thing shared
    with other processes. Construct, then ``await bootstrap()`` to pick up a job
    that was still running when the previous process went away.
    """

    def __init__(
        self,
        transport: JobTransport,
        store: JobStore,
        *,
        poll_interval_seconds: float = 1.0,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self._transport = transport
        self._store = store
        self._machine = JobStateMachine()
        self._poller = Poller(self._poll_tick, poll_interval_seconds)
        self._generation = 0
        self._starting: asyncio.Task[MonitorSnapshot] | None = None
        self._progress_listeners: list[ProgressListener] = []
        self._terminal_listeners: list[TerminalListener] = []
        self._on_close = on_close

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    @property
    def poller(self) -> Poller:
        return self._poller

    def current_snapshot(self) -> MonitorSnapshot:
        return self._machine.snapshot()

    def on_progress(self, listener: ProgressListener) -> Callable[[], None]:
        self._progress_listeners.append(listener)
        return lambda: self._discard(self._progress_listeners, listener)

    def on_terminal(self, listener: TerminalListener) -> Callable[[], None]:
        self._terminal_listeners.append(listener)
        return lambda: self._discard(self._terminal_listeners, listener)

    @staticmethod
    def _discard(listeners: list[Any], listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _emit(self, snapshot: MonitorSnapshot) -> None:
        for listener in list(self._progress_listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Progress listener failed")

    async def _fire_terminal(self, snapshot: MonitorSnapshot) -> None:
        for listener in list(self._terminal_listeners):
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Terminal listener failed")

    async def bootstrap(self) -> MonitorSnapshot:
        record = await self._store.load()
        if record is None:
            return self.current_snapshot()
        if record.status is not JobStatus.RUNNING:
            logger.info("Clearing stale %s sync job %s left in storage", record.status.value, record.id)
            await self._store.clear()
            return self.current_snapshot()

        logger.info("Resuming sync job %s", record.id)
        self._emit(self._machine.apply(record))
        await self._poller.start(record.id)
        return self.current_snapshot()

    async def begin(self) -> MonitorSnapshot:
        starting = self._starting
        if starting is not None:
            logger.info("Sync start already in flight; joining it")
            return await asyncio.shield(starting)

        current = self._machine.job
        if self._machine.state is MonitorState.RUNNING and current is not None:
            if self._poller.handle is None:
                # polling was detached by cancel(); reattach to the same job
                logger.info("Reattaching to running sync job %s", current.id)
                await self._poller.start(current.id)
            else:
                logger.info("Sync job %s already running", current.id)
            return self.current_snapshot()

        # claimed before the first await so a concurrent begin() joins this start
        starting = asyncio.create_task(self._start(self._generation), name="syncwatch-start")
        self._starting = starting
        starting.add_done_callback(self._start_done)
        return await starting

    def _start_done(self, task: asyncio.Task[MonitorSnapshot]) -> None:
        if task is self._starting:
            self._starting = None

    async def _start(self, generation: int) -> MonitorSnapshot:
        if self._machine.state in TERMINAL_STATES:
            await self.dismiss()

        result = await self._transport.start_job()
        if generation != self._generation:
            logger.debug("Discarding start result after cancel")
            return self.current_snapshot()

        if isinstance(result, Started):
            record = JobRecord(id=result.job_id, status=JobStatus.RUNNING, started_at=self._now())
            self._emit(self._machine.apply(record))
            await self._store.save(record)
            if generation == self._generation:
                await self._poller.start(result.job_id)
        elif isinstance(result, NotSupported):
            await self._begin_legacy(generation)
        else:
            await self._finish_failed(result.message, None, persist=False)
        return self.current_snapshot()

    async def _begin_legacy(self, generation: int) -> None:
        result = await self._transport.legacy_start()
        if generation != self._generation:
            logger.debug("Discarding legacy sync result after cancel")
            return
        if isinstance(result, LegacyOk):
            now = self._now()
            record = JobRecord(id=LEGACY_JOB_ID, status=JobStatus.COMPLETED, started_at=now, finished_at=now)
            await self._finish(record)
        else:
            await self._finish_failed(result.message, None, persist=False)

    async def _poll_tick(self, job_id: str, handle: PollerHandle) -> bool:
        try:
            result = await self._transport.poll_job(job_id)
        except Exception as exc:
            logger.exception("Polling sync job %s raised", job_id)
            result = TransportError(TransportErrorKind.OTHER, str(exc) or type(exc).__name__)
        if not handle.active:
            logger.debug("Discarding stale poll result for %s (epoch %s)", job_id, handle.epoch)
            return False

        if isinstance(result, Snapshot):
            record = result.record
            if record.status is JobStatus.RUNNING:
                self._emit(self._machine.apply(record))
                await self._store.save(record)
                return True
            await self._finish(record)
            return False

        if isinstance(result, NotFound):
            previous = self._machine.job
            record = JobRecord(
                id=job_id,
                status=JobStatus.COMPLETED,
                started_at=previous.started_at if previous is not None else None,
                finished_at=self._now(),
            )
            logger.info("Sync job %s no longer known to the server; assuming completed", job_id)
            await self._finish(record, persist=False)
            return False

        previous = self._machine.job
        await self._finish_failed(result.message, self._failed_record(job_id, previous, result))
        return False

    def _failed_record(self, job_id: str, previous: JobRecord | None, error: TransportError) -> JobRecord:
        if previous is None or previous.id != job_id:
            return JobRecord(id=job_id, status=JobStatus.FAILED, started_at=None, error=error.message)
        return JobRecord(
            id=previous.id,
            status=JobStatus.FAILED,
            started_at=previous.started_at,
            finished_at=previous.finished_at,
            error=error.message,
            sub_tasks=previous.sub_tasks,
        )

    async def _finish(self, record: JobRecord, *, persist: bool = True) -> None:
        snapshot = self._machine.apply(record)
        self._emit(snapshot)
        if persist:
            await self._store.save(record)
        await self._store.clear()
        await self._fire_terminal(snapshot)

    async def _finish_failed(self, message: str, record: JobRecord | None, *, persist: bool = True) -> None:
        snapshot = self._machine.fail(message, record)
        self._emit(snapshot)
        if persist and record is not None:
            await self._store.save(record)
        await self._fire_terminal(snapshot)

    async def cancel(self) -> None:
        self._generation += 1
        self._poller.stop()

    async def dismiss(self) -> MonitorSnapshot:
        state = self._machine.state
        if state is MonitorState.IDLE:
            return self.current_snapshot()
        if state is MonitorState.RUNNING:
            raise InvalidTransitionError("Cannot dismiss a running sync job")
        snapshot = self._machine.reset()
        await self._store.clear()
        self._emit(snapshot)
        return snapshot

    async def wait_until_settled(self) -> MonitorSnapshot:
        await self._poller.wait()
        return self.current_snapshot()

    async def aclose(self) -> None:
        await self.cancel()
        if self._starting is not None:
            await asyncio.wait({self._starting})
        await self._poller.wait()
        if self._on_close is not None:
            await self._on_close()


def build_monitor(
    settings: Settings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    store: JobStore | None = None,
) -> SyncJobMonitor:
    settings = settings or get_settings()
    owns_client = client is None
    http_client = client or build_http_client(settings)
    if store is None:
        initialize_database()
        store = SqlJobStore(get_session_factory(), key=settings.store_key)
    return SyncJobMonitor(
        HttpJobTransport(http_client, route_prefix=settings.sync_route_prefix),
        store,
        poll_interval_seconds=settings.poll_interval_seconds,
        on_close=http_client.aclose if owns_client else None,
    )


async def open_monitor(
    settings: Settings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    store: JobStore | None = None,
) -> SyncJobMonitor:
    monitor = build_monitor(settings, client=client, store=store)
    await monitor.bootstrap()
    return monitor
