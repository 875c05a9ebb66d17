from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, AliasPath, BaseModel, ConfigDict, Field, field_validator

from syncwatch.jobs.types import (
    JobRecord,
    JobStatus,
    SubTaskRecord,
    SubTaskStatus,
    normalize_job_status,
    normalize_subtask_status,
)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _coerce_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class StartJobResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sync_id: str = Field(
        default="",
        validation_alias=AliasChoices("syncId", "id", "jobId", AliasPath("job", "id")),
    )

    @field_validator("sync_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _coerce_text(value)


class SubTaskPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resource_id: str = Field(
        default="",
        validation_alias=AliasChoices("resourceId", "accountId", "id", "resource_id"),
        serialization_alias="resourceId",
    )
    platform_tag: str = Field(
        default="",
        validation_alias=AliasChoices("platformTag", "platform", "platform_tag"),
        serialization_alias="platformTag",
    )
    status: SubTaskStatus = Field(
        default=SubTaskStatus.PENDING,
        validation_alias=AliasChoices("status", "state"),
        serialization_alias="status",
    )
    current_step: str | None = Field(
        default=None,
        validation_alias=AliasChoices("currentStep", "step", "current_step"),
        serialization_alias="currentStep",
    )

    @field_validator("resource_id", "platform_tag", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> SubTaskStatus:
        return normalize_subtask_status(value)

    @field_validator("current_step", mode="before")
    @classmethod
    def _normalize_step(cls, value: Any) -> str | None:
        return _coerce_optional_text(value)

    def to_record(self) -> SubTaskRecord:
        return SubTaskRecord(
            resource_id=self.resource_id,
            platform_tag=self.platform_tag,
            status=self.status,
            current_step=self.current_step,
        )

    @classmethod
    def from_record(cls, record: SubTaskRecord) -> "SubTaskPayload":
        return cls.model_validate(
            {
                "resourceId": record.resource_id,
                "platformTag": record.platform_tag,
                "status": record.status.value,
                "currentStep": record.current_step,
            }
        )


class JobRecordPayload(BaseModel):
    """Server-side job snapshot; also the persisted blob layout."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default="", validation_alias=AliasChoices("id", "syncId", "jobId"), serialization_alias="id")
    status: JobStatus = Field(validation_alias=AliasChoices("status", "state"), serialization_alias="status")
    started_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("startedAt", "started_at"),
        serialization_alias="startedAt",
    )
    finished_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("finishedAt", "finished_at"),
        serialization_alias="finishedAt",
    )
    error: str | None = Field(default=None, validation_alias=AliasChoices("error"), serialization_alias="error")
    sub_tasks: list[SubTaskPayload] = Field(
        default_factory=list,
        validation_alias=AliasChoices("subTasks", "accounts", "sub_tasks"),
        serialization_alias="subTasks",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _coerce_text(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> JobStatus:
        return normalize_job_status(value)

    @field_validator("started_at", "finished_at", mode="before")
    @classmethod
    def _blank_datetime_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("error", mode="before")
    @classmethod
    def _normalize_error(cls, value: Any) -> str | None:
        return _coerce_optional_text(value)

    @field_validator("sub_tasks", mode="before")
    @classmethod
    def _missing_sub_tasks(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_record(self, *, fallback_id: str | None = None) -> JobRecord:
        job_id = self.id or (fallback_id or "")
        if not job_id:
            raise ValueError("Job snapshot has no id")
        return JobRecord(
            id=job_id,
            status=self.status,
            started_at=self.started_at,
            finished_at=self.finished_at,
            error=self.error,
            sub_tasks=tuple(item.to_record() for item in self.sub_tasks),
        )

    @classmethod
    def from_record(cls, record: JobRecord) -> "JobRecordPayload":
        return cls.model_validate(
            {
                "id": record.id,
                "status": record.status.value,
                "startedAt": record.started_at,
                "finishedAt": record.finished_at,
                "error": record.error,
                "subTasks": [SubTaskPayload.from_record(item).model_dump(by_alias=True) for item in record.sub_tasks],
            }
        )


def record_to_json(record: JobRecord) -> str:
    return JobRecordPayload.from_record(record).model_dump_json(by_alias=True)


def record_from_json(raw: str | bytes) -> JobRecord:
    return JobRecordPayload.model_validate_json(raw).to_record()
