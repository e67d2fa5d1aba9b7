from datetime import datetime, timedelta, timezone

import pytest

from kanboard_analytics.config import CompletedColumns
from kanboard_analytics.metrics import (
    burndown_chart,
    completion_trends,
    cycle_time_metrics,
    period_key,
    project_health,
    task_aging,
    velocity_metrics,
)
from kanboard_analytics.schema import ProjectInfo, TaskDates, TaskDetail, TaskStatus, TimeTracking
from kanboard_analytics.timeutils import due_date_info

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
DONE = CompletedColumns(case_sensitive=True)
WEBSITE = ProjectInfo(id="1", name="Website")
MOBILE = ProjectInfo(id="2", name="Mobile")


def day(offset):
    return NOW + timedelta(days=offset) if offset is not None else None


def make_task(task_id, column="Backlog", created=-5, modified=None, started=None, due=None,
              estimated=None, spent=0.0, project=WEBSITE):
    is_overdue, days_until_due = due_date_info(day(due), NOW)
    return TaskDetail(
        id=task_id,
        title=f"Task {task_id}",
        project=project,
        status=TaskStatus(column=column),
        dates=TaskDates(created=day(created), modified=day(modified), started=day(started), due=day(due)),
        time_tracking=TimeTracking(estimated, spent) if estimated is not None else None,
        is_overdue=is_overdue,
        days_until_due=days_until_due,
    )


def test_period_keys():
    assert period_key(NOW, "7_days") == "2025-06-02"
    assert period_key(NOW, "30_days") == "2025-W23"
    assert period_key(datetime(2024, 12, 30, tzinfo=timezone.utc), "90_days") == "2025-W01"
    assert period_key(NOW, "1_year") == "2025-06"


def test_completion_rate():
    tasks = [make_task(str(i), column="Done" if i < 4 else "Backlog", created=-1) for i in range(10)]
    tasks.append(make_task("x", column="done", created=-1))
    trends = completion_trends(tasks, "7_days", DONE)
    assert trends == [{"period": "2025-06-01", "tasks_completed": 4, "tasks_created": 11, "completion_rate": 4 * 100.0 / 11}]

    exact = completion_trends(tasks[:10], "7_days", DONE)
    assert exact[0]["completion_rate"] == 40.0
    assert completion_trends([], "7_days", DONE) == []
    assert completion_trends([make_task("y", created=None)], "7_days", DONE) == []


def test_cycle_time_by_project_and_column():
    tasks = [
        make_task("a", column="Done", created=-12, started=-10, modified=-2),
        make_task("b", column="Done", created=-20, modified=-5),
        make_task("c", column="Done", created=-3, modified=-3),
        make_task("d", column="Done", created=-4, modified=-1, project=MOBILE),
        make_task("e", column="In progress", created=-30, modified=-1),
    ]
    metrics = cycle_time_metrics(tasks, DONE)

    assert [(item["project"], item["column"]) for item in metrics] == [("Website", "Done"), ("Mobile", "Done")]
    website, mobile = metrics
    assert website["avg_days"] == 11.5
    assert website["min_days"] == 8.0
    assert website["max_days"] == 15.0
    assert website["task_count"] == 2
    assert website["efficiency"] == "Average"
    assert mobile["efficiency"] == "Good"


def test_velocity_per_completion_period():
    tasks = [
        make_task("a", column="Done", modified=-1, estimated=4.0, spent=5.0),
        make_task("b", column="Done", modified=-1, estimated=4.0, spent=5.0),
        make_task("c", column="Done", modified=-3),
        make_task("d", column="Backlog", modified=-1, estimated=8.0),
    ]
    metrics = velocity_metrics(tasks, "7_days", DONE)

    assert [item["period"] for item in metrics] == ["2025-05-30", "2025-06-01"]
    untracked, tracked = metrics
    assert untracked["tasks_completed"] == 1
    assert untracked["efficiency_rating"] == ""
    assert tracked["story_points"] == 2
    assert tracked["velocity_score"] == 2.0
    assert tracked["estimated_hours"] == 8.0
    assert tracked["actual_hours"] == 10.0
    assert tracked["efficiency_rating"] == "Good"


def test_task_aging_bands():
    tasks = [
        make_task("a3", created=-3),
        make_task("a10", created=-10),
        make_task("a40", created=-40),
        make_task("a90", created=-90),
        make_task("a100", created=-100),
        make_task("closed", column="Done", created=-50),
    ]
    aging = task_aging(tasks, NOW, DONE)

    assert [band["age_group"] for band in aging] == ["0-7 days", "8-14 days", "31-60 days", "60+ days"]
    assert [band["task_count"] for band in aging] == [1, 1, 1, 2]
    assert [band["percentage"] for band in aging] == pytest.approx([20.0, 20.0, 20.0, 40.0])
    assert aging[-1]["avg_age_days"] == pytest.approx(95.0)
    assert aging[-1]["oldest_task"] == "Task a100"
    assert "oldest_task" not in aging[0]


def test_burndown_series():
    tasks = [
        make_task("a", created=-10),
        make_task("b", created=-10),
        make_task("c", column="Done", created=-10, modified=-5),
        make_task("d", column="Done", created=-10, modified=-2),
        make_task("e", created=-3),
    ]
    chart = burndown_chart(tasks, "7_days", NOW - timedelta(days=7), NOW, DONE)

    assert chart[0]["date"] == "2025-05-26"
    assert chart[-1]["date"] == "2025-06-02"
    assert [point["remaining_tasks"] for point in chart] == [4, 4, 3, 3, 4, 3, 3, 3]
    assert [point["completed_tasks"] for point in chart] == [0, 0, 1, 1, 1, 2, 2, 2]
    assert [point["ideal_remaining"] for point in chart] == [4, 3, 2, 2, 1, 1, 0, 0]
    assert [point["trend_projection"] for point in chart] == [4, 4, 0, 3, 7, 1, 3, 3]


def test_burndown_single_sample_and_weekly_interval():
    chart = burndown_chart([make_task("a", created=-1)], "7_days", NOW, NOW, DONE)
    assert chart == [
        {"date": "2025-06-02", "remaining_tasks": 1, "completed_tasks": 0, "ideal_remaining": 1, "trend_projection": 1}
    ]
    weekly = burndown_chart([], "90_days", NOW - timedelta(days=90), NOW, DONE)
    assert len(weekly) == 13


def test_project_health():
    tasks = [
        make_task("w1", column="Done", modified=-3, due=-1, estimated=4.0, spent=2.0),
        make_task("w2", column="Done", modified=-1, due=-3, estimated=6.0, spent=3.0),
        make_task("w3", due=-2),
        make_task("w4"),
        make_task("m1", column="Done", modified=-2, due=1, estimated=2.0, spent=4.0, project=MOBILE),
    ]
    health = project_health(tasks, DONE)

    assert [item["project_name"] for item in health] == ["Mobile", "Website"]
    mobile, website = health
    assert mobile["health_score"] == pytest.approx(100.0)
    assert mobile["team_utilisation"] == 100.0
    assert mobile["quality_indicator"] == "Excellent"
    assert mobile["risk_level"] == "Low"

    assert website["completion_rate"] == 50.0
    assert website["on_time_delivery"] == 50.0
    assert website["team_utilisation"] == 50.0
    assert website["health_score"] == pytest.approx(50.0)
    assert website["quality_indicator"] == "Poor"
    assert website["risk_level"] == "High"


def test_burndown_baseline_excludes_work_done_before_the_window():
    tasks = [
        make_task("a", created=-20),
        make_task("b", column="Done", created=-20, modified=-10),
        make_task("c", column="Done", created=-20, modified=-1),
    ]
    chart = burndown_chart(tasks, "7_days", NOW - timedelta(days=7), NOW, DONE)

    assert chart[0]["remaining_tasks"] == 2
    assert chart[0]["ideal_remaining"] == 2
    assert chart[-1]["remaining_tasks"] == 1
    assert chart[-1]["completed_tasks"] == 1
