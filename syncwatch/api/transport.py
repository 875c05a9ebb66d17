from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

from syncwatch.jobs.types import JobRecord


class TransportErrorKind(str, Enum):
    NETWORK = "network"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Started:
    job_id: str


@dataclass(frozen=True, slots=True)
class NotSupported:
    pass


@dataclass(frozen=True, slots=True)
class Snapshot:
    record: JobRecord


@dataclass(frozen=True, slots=True)
class NotFound:
    job_id: str


@dataclass(frozen=True, slots=True)
class LegacyOk:
    pass


@dataclass(frozen=True, slots=True)
class TransportError:
    kind: TransportErrorKind
    message: str


StartResult = Union[Started, NotSupported, TransportError]
PollResult = Union[Snapshot, NotFound, TransportError]
LegacyResult = Union[LegacyOk, TransportError]


class JobTransport(Protocol):
    async def start_job(self) -> StartResult: ...

    async def poll_job(self, job_id: str) -> PollResult: ...

    async def legacy_start(self) -> LegacyResult: ...
