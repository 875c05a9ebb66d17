from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from syncwatch.jobs.types import SubTaskRecord, SubTaskStatus

STEP_LABELS: dict[str, str] = {
    "starting": "Starting",
    "fetch_campaigns": "Fetching campaigns",
    "save_campaigns": "Saving campaigns",
    "fetch_ad_groups": "Fetching ad groups",
    "save_ad_groups": "Saving ad groups",
    "fetch_ads": "Fetching ads",
    "save_ads": "Saving ads",
    "completed": "Completed",
    "failed": "Error",
}

PLATFORM_LABELS: dict[str, str] = {
    "meta": "Meta",
    "facebook": "Meta",
    "instagram": "Meta",
    "google": "Google Ads",
    "linkedin": "LinkedIn Ads",
    "ga4": "Google Analytics 4",
    "search_console": "Google Search Console",
    "search-console": "Google Search Console",
    "youtube": "YouTube",
}


@dataclass(frozen=True, slots=True)
class JobProgress:
    completed_count: int
    total_count: int
    percent: int
    active_sub_task: SubTaskRecord | None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aggregate_progress(sub_tasks: Iterable[SubTaskRecord]) -> JobProgress:
    items = list(sub_tasks)
    total = len(items)
    completed = sum(1 for item in items if item.status is SubTaskStatus.COMPLETED)
    active = next((item for item in items if item.status is SubTaskStatus.RUNNING), None)
    percent = _round_half_up(100 * completed / total) if total > 0 else 0
    return JobProgress(completed_count=completed, total_count=total, percent=percent, active_sub_task=active)


def describe_step(step: str | None) -> str:
    if not step:
        return "Waiting"
    return STEP_LABELS.get(step, step)


def platform_label(tag: str | None) -> str:
    token = (tag or "").strip().lower()
    return PLATFORM_LABELS.get(token, tag or "")


def describe_active(progress: JobProgress) -> str:
    active = progress.active_sub_task
    if active is None:
        return "In progress"
    return f"{platform_label(active.platform_tag)} • {describe_step(active.current_step)}"
