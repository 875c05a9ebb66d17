from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollerHandle:
    epoch: int
    job_id: str
    cancelled: bool = False
    in_tick: bool = False

    @property
    def active(self) -> bool:
        return not self.cancelled


TickFn = Callable[[str, PollerHandle], Awaitable[bool]]


class Poller:
    """Repeating status poll with at most one live loop.

    ``tick`` returns True while the job should keep being polled. Ticks are
    strictly sequential: the next sleep starts only after a tick returns.
    """

    def __init__(self, tick: TickFn, interval_seconds: float):
        self._tick = tick
        self._interval = interval_seconds
        self._epoch = 0
        self._handle: PollerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._draining: set[asyncio.Task[None]] = set()

    @property
    def handle(self) -> PollerHandle | None:
        return self._handle

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, job_id: str) -> PollerHandle:
        self.stop()
        self._epoch += 1
        handle = PollerHandle(epoch=self._epoch, job_id=job_id)
        self._handle = handle
        keep_polling = await self._run_tick(handle)
        if keep_polling and handle.active:
            self._task = asyncio.create_task(self._loop(handle), name=f"syncwatch-poll-{job_id}-{handle.epoch}")
            self._task.add_done_callback(self._log_task_failure)
        elif handle is self._handle:
            self._handle = None
        return handle

    def stop(self) -> None:
        handle = self._handle
        self._handle = None
        task = self._task
        self._task = None
        if handle is not None:
            handle.cancelled = True
            logger.debug("Poller stopped for %s (epoch %s)", handle.job_id, handle.epoch)
        if task is None or task.done():
            return
        self._draining.add(task)
        task.add_done_callback(self._draining.discard)
        # an in-flight tick is left to finish; it sees its handle cancelled
        if not (handle is not None and handle.in_tick) and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        pending = set(self._draining)
        if self._task is not None:
            pending.add(self._task)
        if pending:
            await asyncio.wait(pending)

    async def _run_tick(self, handle: PollerHandle) -> bool:
        handle.in_tick = True
        try:
            return await self._tick(handle.job_id, handle)
        except Exception:
            logger.exception("Poll tick for %s failed; polling stopped", handle.job_id)
            return False
        finally:
            handle.in_tick = False

    async def _loop(self, handle: PollerHandle) -> None:
        try:
            while handle.active:
                await asyncio.sleep(self._interval)
                if not handle.active:
                    return
                if not await self._run_tick(handle):
                    break
        finally:
            if handle is self._handle:
                self._handle = None
                self._task = None

    @staticmethod
    def _log_task_failure(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Poll loop %s crashed", task.get_name(), exc_info=exc)
