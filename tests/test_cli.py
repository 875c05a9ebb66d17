from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

import syncwatch.db.session as db_session_module
from helpers import job, sub
from syncwatch.cli import format_snapshot, main
from syncwatch.core.config import get_settings
from syncwatch.db.init_db import initialize_database
from syncwatch.jobs.machine import JobStateMachine
from syncwatch.jobs.store import SqlJobStore
from syncwatch.jobs.types import JobStatus, SubTaskStatus


def _prepare_env(tmp_path: Path) -> SqlJobStore:
    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["SYNCWATCH_STATE_ROOT"] = state_root.as_posix()
    os.environ.pop("SYNCWATCH_DATABASE_URL", None)

    get_settings.cache_clear()
    db_session_module.reset_engine()
    initialize_database()
    return SqlJobStore(db_session_module.get_session_factory(), key=get_settings().store_key)


def test_format_snapshot_shows_progress_and_active_sub_task() -> None:
    machine = JobStateMachine()
    snapshot = machine.apply(
        job(
            "j1",
            JobStatus.RUNNING,
            sub("A", SubTaskStatus.COMPLETED),
            sub("B", SubTaskStatus.RUNNING, platform="linkedin", step="fetch_campaigns"),
        )
    )

    assert format_snapshot(snapshot) == "[running] job=j1 1/2 (50%) LinkedIn Ads • Fetching campaigns"


def test_format_snapshot_shows_error() -> None:
    machine = JobStateMachine()
    snapshot = machine.fail("Network Error")

    assert format_snapshot(snapshot) == "[failed] job=- error=Network Error"


def test_status_and_clear_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = _prepare_env(tmp_path)

    with pytest.raises(SystemExit) as exc_info:
        main(["status"])
    assert exc_info.value.code == 0
    assert capsys.readouterr().out.strip() == "idle"

    asyncio.run(store.save(job("j1", JobStatus.RUNNING, sub("A", SubTaskStatus.RUNNING))))
    with pytest.raises(SystemExit):
        main(["status"])
    printed = json.loads(capsys.readouterr().out)
    assert printed["id"] == "j1"
    assert printed["subTasks"][0]["resourceId"] == "A"

    with pytest.raises(SystemExit) as exc_info:
        main(["clear"])
    assert exc_info.value.code == 0
    assert asyncio.run(store.load()) is None
