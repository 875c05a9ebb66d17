from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveFloat, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _default_state_root() -> Path:
    return Path.home() / ".syncwatch"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SYNCWATCH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "syncwatch"
    environment: str = "production"
    log_level: str = "INFO"

    api_base_url: str = "https://api.zigran.com/api"
    api_token: SecretStr | None = None
    request_timeout_seconds: PositiveFloat = 10.0
    sync_route_prefix: str = "/campaigns"

    poll_interval_seconds: PositiveFloat = 1.0

    state_root: Path = Field(default_factory=_default_state_root)
    database_url: str | None = None
    store_key: str = Field(default="campaigns_sync_job", min_length=1, max_length=128)

    @field_validator("state_root", mode="before")
    @classmethod
    def _normalize_path(cls, value: str | Path) -> Path:
        raw = str(value)
        if "~" in raw:
            raise ValueError("Home expansion syntax is not allowed in paths")
        if "$" in raw:
            raise ValueError("Environment variable syntax is not allowed in paths")
        path = Path(raw)
        if not path.is_absolute():
            raise ValueError("Path settings must be absolute")
        return path

    @field_validator("api_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return normalized

    @model_validator(mode="after")
    def _validate_runtime_constraints(self) -> "Settings":
        self.state_root = self.state_root.resolve(strict=False)
        self.state_root.mkdir(parents=True, exist_ok=True)

        normalized_level = self.log_level.upper().strip()
        if normalized_level not in SUPPORTED_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(SUPPORTED_LOG_LEVELS)}")
        self.log_level = normalized_level

        prefix = self.sync_route_prefix.strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = f"/{prefix}"
        self.sync_route_prefix = prefix

        return self

    @property
    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_path = self.state_root / "syncwatch.sqlite3"
        return f"sqlite:///{db_path.as_posix()}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
