from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from syncwatch.api.schemas.sync import record_from_json, record_to_json
from syncwatch.db.models import StoredBlob
from syncwatch.jobs.types import JobRecord

logger = logging.getLogger(__name__)

DEFAULT_STORE_KEY = "campaigns_sync_job"


class JobStore(Protocol):
    async def save(self, record: JobRecord | None) -> None: ...

    async def load(self) -> JobRecord | None: ...

    async def clear(self) -> None: ...


def _decode(key: str, raw: str | None) -> JobRecord | None:
    if raw is None or raw.strip() in {"", "null"}:
        return None
    try:
        return record_from_json(raw)
    except (ValidationError, ValueError) as exc:
        logger.warning("Discarding unreadable job blob under %s: %s", key, exc)
        return None


class SqlJobStore:
    """Single-slot job blob kept in the ``stored_blobs`` table."""

    def __init__(self, session_factory: sessionmaker[Session], key: str = DEFAULT_STORE_KEY):
        self._session_factory = session_factory
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _write(self, value: str | None) -> None:
        with self._session_factory() as session:
            row = session.get(StoredBlob, self._key)
            if value is None:
                if row is not None:
                    session.delete(row)
            elif row is None:
                session.add(StoredBlob(key=self._key, value=value, updated_at=self._now()))
            else:
                row.value = value
                row.updated_at = self._now()
            session.commit()

    def _read(self) -> str | None:
        with self._session_factory() as session:
            row = session.get(StoredBlob, self._key)
            return None if row is None else row.value

    async def save(self, record: JobRecord | None) -> None:
        value = None if record is None else record_to_json(record)
        try:
            await asyncio.to_thread(self._write, value)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Failed to persist job blob under %s: %s", self._key, exc)

    async def load(self) -> JobRecord | None:
        try:
            raw = await asyncio.to_thread(self._read)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Failed to read job blob under %s: %s", self._key, exc)
            return None
        record = _decode(self._key, raw)
        if record is None and raw is not None:
            await self.clear()
        return record

    async def clear(self) -> None:
        await self.save(None)


class MemoryJobStore:
    """In-process store holding the same JSON blob the SQL store would."""

    def __init__(self, initial: JobRecord | None = None, key: str = DEFAULT_STORE_KEY):
        self._key = key
        self._raw: str | None = None if initial is None else record_to_json(initial)
        self.history: list[JobRecord | None] = []

    @property
    def raw(self) -> str | None:
        return self._raw

    @property
    def record(self) -> JobRecord | None:
        return _decode(self._key, self._raw)

    async def save(self, record: JobRecord | None) -> None:
        self.history.append(record)
        self._raw = None if record is None else record_to_json(record)

    async def load(self) -> JobRecord | None:
        record = _decode(self._key, self._raw)
        if record is None and self._raw is not None:
            await self.clear()
        return record

    async def clear(self) -> None:
        await self.save(None)
