from __future__ import annotations

import argparse
import asyncio
import sys

from syncwatch.api.schemas.sync import record_to_json
from syncwatch.core.config import get_settings
from syncwatch.core.logging import configure_logging
from syncwatch.db.init_db import initialize_database
from syncwatch.db.session import get_session_factory
from syncwatch.jobs.machine import MonitorSnapshot
from syncwatch.jobs.monitor import build_monitor
from syncwatch.jobs.progress import describe_active
from syncwatch.jobs.store import SqlJobStore
from syncwatch.jobs.types import MonitorState


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="syncwatch", description="Start and follow the campaign sync job")
    parser.add_argument("--log-level", default=None, help="Override SYNCWATCH_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Resume a stored job or start a new one, then follow it")
    sub.add_parser("resume", help="Follow a stored running job without starting a new one")
    sub.add_parser("status", help="Print the stored job snapshot")
    sub.add_parser("clear", help="Forget the stored job snapshot")
    return parser.parse_args(argv)


def format_snapshot(snapshot: MonitorSnapshot) -> str:
    job_id = snapshot.job.id if snapshot.job is not None else "-"
    line = f"[{snapshot.state.value}] job={job_id}"
    progress = snapshot.progress
    if progress.total_count:
        line += f" {progress.completed_count}/{progress.total_count} ({progress.percent}%)"
    if snapshot.state is MonitorState.RUNNING:
        line += f" {describe_active(progress)}"
    if snapshot.error:
        line += f" error={snapshot.error}"
    return line


async def follow(command: str) -> int:
    settings = get_settings()
    monitor = build_monitor(settings)
    monitor.on_progress(lambda snapshot: print(format_snapshot(snapshot), flush=True))
    try:
        snapshot = await monitor.bootstrap()
        if command == "run" and snapshot.state is MonitorState.IDLE:
            snapshot = await monitor.begin()
        elif snapshot.state is MonitorState.IDLE:
            print("idle")
            return 0
        snapshot = await monitor.wait_until_settled()
    finally:
        await monitor.aclose()
    return 1 if snapshot.state is MonitorState.FAILED else 0


async def show_status() -> int:
    settings = get_settings()
    initialize_database()
    record = await SqlJobStore(get_session_factory(), key=settings.store_key).load()
    print("idle" if record is None else record_to_json(record))
    return 0


async def clear_stored() -> int:
    settings = get_settings()
    initialize_database()
    await SqlJobStore(get_session_factory(), key=settings.store_key).clear()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.command in {"run", "resume"}:
        code = asyncio.run(follow(args.command))
    elif args.command == "status":
        code = asyncio.run(show_status())
    else:
        code = asyncio.run(clear_stored())
    sys.exit(code)


if __name__ == "__main__":
    main()
