from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from syncwatch.core.config import Settings


def test_defaults_and_normalization(tmp_path: Path) -> None:
    settings = Settings(
        state_root=tmp_path / "state",
        api_base_url="https://api.example.com/api/",
        sync_route_prefix="campaigns/",
        log_level="debug",
    )

    assert settings.api_base_url == "https://api.example.com/api"
    assert settings.sync_route_prefix == "/campaigns"
    assert settings.log_level == "DEBUG"
    assert settings.poll_interval_seconds == 1.0
    assert settings.store_key == "campaigns_sync_job"
    assert settings.state_root.is_dir()
    assert settings.effective_database_url.endswith("/state/syncwatch.sqlite3")


def test_explicit_database_url_wins(tmp_path: Path) -> None:
    settings = Settings(state_root=tmp_path, database_url="sqlite:///:memory:")
    assert settings.effective_database_url == "sqlite:///:memory:"


@pytest.mark.parametrize("raw", ["~/state", "$HOME/state", "relative/state"])
def test_unsafe_state_roots_are_rejected(raw: str) -> None:
    with pytest.raises(ValidationError):
        Settings(state_root=raw)


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Settings(state_root=tmp_path, log_level="chatty")
    with pytest.raises(ValidationError):
        Settings(state_root=tmp_path, api_base_url="ftp://example.com")
    with pytest.raises(ValidationError):
        Settings(state_root=tmp_path, poll_interval_seconds=0)
