from __future__ import annotations

from helpers import sub
from syncwatch.jobs.progress import aggregate_progress, describe_active, describe_step, platform_label
from syncwatch.jobs.types import SubTaskStatus


def test_empty_sub_tasks_report_zero_percent() -> None:
    progress = aggregate_progress([])
    assert progress.completed_count == 0
    assert progress.total_count == 0
    assert progress.percent == 0
    assert progress.active_sub_task is None


def test_percent_counts_only_completed_and_picks_first_running() -> None:
    progress = aggregate_progress(
        [
            sub("A", SubTaskStatus.COMPLETED),
            sub("B", SubTaskStatus.FAILED),
            sub("C", SubTaskStatus.RUNNING),
            sub("D", SubTaskStatus.RUNNING),
        ]
    )
    assert progress.completed_count == 1
    assert progress.total_count == 4
    assert progress.percent == 25
    assert progress.active_sub_task is not None
    assert progress.active_sub_task.resource_id == "C"


def test_percent_rounds_half_up() -> None:
    items = [sub("A", SubTaskStatus.COMPLETED)] + [sub(f"p{i}", SubTaskStatus.PENDING) for i in range(7)]
    assert aggregate_progress(items).percent == 13
    assert aggregate_progress([sub("A", SubTaskStatus.COMPLETED), sub("B", SubTaskStatus.PENDING), sub("C", SubTaskStatus.PENDING)]).percent == 33


def test_step_and_platform_labels() -> None:
    assert describe_step(None) == "Waiting"
    assert describe_step("fetch_ad_groups") == "Fetching ad groups"
    assert describe_step("custom_step") == "custom_step"
    assert platform_label("instagram") == "Meta"
    assert platform_label("GA4") == "Google Analytics 4"
    assert platform_label("tiktok") == "tiktok"


def test_describe_active() -> None:
    idle = aggregate_progress([sub("A", SubTaskStatus.PENDING)])
    assert describe_active(idle) == "In progress"

    busy = aggregate_progress([sub("A", SubTaskStatus.RUNNING, platform="google", step="save_ads")])
    assert describe_active(busy) == "Google Ads • Saving ads"
