from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from syncwatch.api.schemas.sync import JobRecordPayload, StartJobResponse
from syncwatch.api.transport import (
    LegacyOk,
    LegacyResult,
    NotFound,
    NotSupported,
    PollResult,
    Snapshot,
    Started,
    StartResult,
    TransportError,
    TransportErrorKind,
)
from syncwatch.core.config import Settings

logger = logging.getLogger(__name__)


def build_http_client(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if settings.api_token is not None:
        headers["Authorization"] = f"Bearer {settings.api_token.get_secret_value()}"
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        headers=headers,
        timeout=settings.request_timeout_seconds,
        transport=transport,
    )


def _classify(exc: Exception) -> TransportError:
    if isinstance(exc, httpx.HTTPStatusError):
        return TransportError(
            TransportErrorKind.OTHER,
            f"Request failed with status code {exc.response.status_code}",
        )
    if isinstance(exc, httpx.TransportError):
        return TransportError(TransportErrorKind.NETWORK, str(exc) or "Network Error")
    return TransportError(TransportErrorKind.OTHER, str(exc) or exc.__class__.__name__)


class HttpJobTransport:
    """Campaign sync endpoints over an injected ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, *, route_prefix: str = "/campaigns"):
        self._client = client
        self._prefix = route_prefix

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def _path(self, suffix: str) -> str:
        return f"{self._prefix}{suffix}"

    async def start_job(self) -> StartResult:
        try:
            response = await self._client.post(self._path("/sync/start"))
            if response.status_code == httpx.codes.NOT_FOUND:
                logger.info("Server does not support job-based sync; falling back to legacy sync")
                return NotSupported()
            response.raise_for_status()
            body = StartJobResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning("Sync start failed: %s", exc)
            return _classify(exc)

        if not body.sync_id:
            return TransportError(TransportErrorKind.OTHER, "Sync ID missing from start response")
        return Started(job_id=body.sync_id)

    async def poll_job(self, job_id: str) -> PollResult:
        try:
            response = await self._client.get(self._path("/sync/status"), params={"syncId": job_id})
            if response.status_code == httpx.codes.NOT_FOUND:
                return NotFound(job_id=job_id)
            response.raise_for_status()
            payload = JobRecordPayload.model_validate(response.json())
            record = payload.to_record(fallback_id=job_id)
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning("Sync status poll failed for %s: %s", job_id, exc)
            return _classify(exc)
        return Snapshot(record=record)

    async def legacy_start(self) -> LegacyResult:
        try:
            response = await self._client.post(self._path("/sync"))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Legacy sync failed: %s", exc)
            return _classify(exc)
        return LegacyOk()
