"""Historical trend metrics over collected board tasks."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

import numpy as np

from kanboard_analytics.config import CompletedColumns
from kanboard_analytics.schema import TaskDetail
from kanboard_analytics.timeutils import DATE_FORMAT, days_between

DAILY_RANGES = ("7_days", "14_days")
WEEKLY_RANGES = ("30_days", "60_days", "90_days")
DAILY_BURNDOWN_RANGES = ("7_days", "14_days", "30_days", "60_days")

AGE_BANDS = (
    ("0-7 days", 7),
    ("8-14 days", 14),
    ("15-30 days", 30),
    ("31-60 days", 60),
    ("60+ days", None),
)
OLDEST_BAND = "60+ days"


def period_key(moment: datetime, time_range: str) -> str:
    """Bucket a timestamp by day, ISO week or month depending on the range."""

    if time_range in DAILY_RANGES:
        return moment.strftime(DATE_FORMAT)
    if time_range in WEEKLY_RANGES:
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    return moment.strftime("%Y-%m")


def cycle_time_days(task: TaskDetail) -> Optional[float]:
    """Days from start (or creation) to last modification, if both are known."""

    start = task.dates.started or task.dates.created
    if start is None or task.dates.modified is None:
        return None
    return days_between(start, task.dates.modified)


def completion_trends(tasks: Iterable[TaskDetail], time_range: str, completion: CompletedColumns) -> list[dict]:
    """Created vs completed counts per period, by creation date."""

    created = defaultdict(int)
    completed = defaultdict(int)
    for task in tasks:
        if task.dates.created is None:
            continue
        period = period_key(task.dates.created, time_range)
        created[period] += 1
        if completion.matches(task.status.column):
            completed[period] += 1

    trends = []
    for period in sorted(created):
        total = created[period]
        done = completed[period]
        trends.append(
            {
                "period": period,
                "tasks_completed": done,
                "tasks_created": total,
                "completion_rate": done * 100.0 / total if total else 0.0,
            }
        )
    return trends


def cycle_efficiency(avg_days: float) -> str:
    if avg_days > 14:
        return "Poor"
    if avg_days > 7:
        return "Average"
    return "Good"


def cycle_time_metrics(tasks: Iterable[TaskDetail], completion: CompletedColumns) -> list[dict]:
    """Cycle-time statistics of completed tasks per (project, column)."""

    by_column: dict[tuple[str, str], list[float]] = defaultdict(list)
    for task in tasks:
        if not completion.matches(task.status.column):
            continue
        days = cycle_time_days(task)
        if days is not None and days > 0:
            by_column[(task.project.name, task.status.column)].append(days)

    metrics = []
    for (project, column), durations in by_column.items():
        values = np.asarray(durations, dtype=float)
        avg = float(np.mean(values))
        metrics.append(
            {
                "column": column,
                "project": project,
                "avg_days": avg,
                "min_days": float(np.min(values)),
                "max_days": float(np.max(values)),
                "task_count": int(values.size),
                "efficiency": cycle_efficiency(avg),
            }
        )
    return sorted(metrics, key=lambda item: item["avg_days"], reverse=True)


def efficiency_rating(actual_hours: float, estimated_hours: float) -> str:
    ratio = actual_hours / estimated_hours
    if ratio <= 1.1:
        return "Excellent"
    if ratio <= 1.3:
        return "Good"
    if ratio <= 1.5:
        return "Average"
    return "Poor"


def velocity_metrics(tasks: Iterable[TaskDetail], time_range: str, completion: CompletedColumns) -> list[dict]:
    """Throughput per completion period, using one story point per task."""

    periods: dict[str, dict] = {}
    for task in tasks:
        if not completion.matches(task.status.column) or task.dates.modified is None:
            continue
        period = period_key(task.dates.modified, time_range)
        metric = periods.setdefault(
            period,
            {"period": period, "tasks_completed": 0, "story_points": 0, "estimated_hours": 0.0, "actual_hours": 0.0},
        )
        metric["tasks_completed"] += 1
        metric["story_points"] += 1
        if task.time_tracking is not None:
            metric["estimated_hours"] += task.time_tracking.estimated_hours
            metric["actual_hours"] += task.time_tracking.spent_hours

    metrics = []
    for period in sorted(periods):
        metric = periods[period]
        metric["velocity_score"] = float(metric["tasks_completed"])
        metric["efficiency_rating"] = (
            efficiency_rating(metric["actual_hours"], metric["estimated_hours"]) if metric["estimated_hours"] > 0 else ""
        )
        metrics.append(metric)
    return metrics


def _age_band(age_days: float) -> str:
    for label, upper in AGE_BANDS:
        if upper is None or age_days <= upper:
            return label
    return OLDEST_BAND


def task_aging(tasks: Iterable[TaskDetail], now: datetime, completion: CompletedColumns) -> list[dict]:
    """Distribution of open tasks across fixed age bands."""

    bands = {label: {"age_group": label, "task_count": 0, "percentage": 0.0, "avg_age_days": 0.0} for label, _ in AGE_BANDS}
    active = 0
    oldest_title = ""
    max_age = 0.0

    for task in tasks:
        if completion.matches(task.status.column):
            continue
        active += 1
        if task.dates.created is None:
            continue

        age = days_between(task.dates.created, now)
        if age > max_age:
            max_age = age
            oldest_title = task.title

        band = bands[_age_band(age)]
        band["task_count"] += 1
        band["avg_age_days"] += (age - band["avg_age_days"]) / band["task_count"]

    analysis = []
    for band in bands.values():
        if band["task_count"] == 0:
            continue
        band["percentage"] = band["task_count"] / active * 100.0
        if band["age_group"] == OLDEST_BAND and oldest_title:
            band["oldest_task"] = oldest_title
        analysis.append(band)
    return sorted(analysis, key=lambda item: item["avg_age_days"])


def burndown_dates(start: datetime, now: datetime, time_range: str) -> list[datetime]:
    interval = timedelta(days=1) if time_range in DAILY_BURNDOWN_RANGES else timedelta(days=7)
    dates = []
    current = start
    while current <= now:
        dates.append(current)
        current += interval
    return dates


def burndown_chart(
    tasks: Sequence[TaskDetail],
    time_range: str,
    start: datetime,
    now: datetime,
    completion: CompletedColumns,
) -> list[dict]:
    """Remaining work sampled across the window with ideal and trend lines.

    ``tasks`` should include work created before ``start``; whatever is still
    open at ``start`` forms the baseline the ideal line burns down from.
    """

    dates = burndown_dates(start, now, time_range)
    if not dates:
        return []

    created: list[datetime] = []
    completed: list[datetime] = []
    for task in tasks:
        if task.dates.created is None:
            continue
        created.append(task.dates.created)
        if completion.matches(task.status.column) and task.dates.modified is not None:
            completed.append(task.dates.modified)
    created_by_start = sum(1 for moment in created if moment <= start)
    baseline = created_by_start - sum(1 for moment in completed if moment <= start)

    chart: list[dict] = []
    for index, sample in enumerate(dates):
        completed_by_date = sum(1 for moment in completed if start < moment <= sample)
        created_by_date = sum(1 for moment in created if start < moment <= sample)
        remaining = baseline + created_by_date - completed_by_date

        progress = index / (len(dates) - 1) if len(dates) > 1 else 0.0
        ideal = int(baseline * (1.0 - progress))

        projection = remaining
        if chart:
            velocity = chart[-1]["remaining_tasks"] - remaining
            samples_left = len(dates) - index - 1
            projection = max(0, remaining - velocity * samples_left)

        chart.append(
            {
                "date": sample.strftime(DATE_FORMAT),
                "remaining_tasks": remaining,
                "completed_tasks": completed_by_date,
                "ideal_remaining": ideal,
                "trend_projection": projection,
            }
        )
    return chart


def quality_indicator(health_score: float) -> str:
    if health_score >= 90:
        return "Excellent"
    if health_score >= 75:
        return "Good"
    if health_score >= 60:
        return "Fair"
    return "Poor"


def risk_level(overdue_pct: float, health_score: float) -> str:
    if overdue_pct > 30 or health_score < 50:
        return "High"
    if overdue_pct > 15 or health_score < 70:
        return "Medium"
    return "Low"


def project_health(tasks: Iterable[TaskDetail], completion: CompletedColumns) -> list[dict]:
    """Weighted health score per project from completion, punctuality and hours."""

    stats: dict[str, dict] = {}
    for task in tasks:
        entry = stats.setdefault(
            task.project.id,
            {
                "name": task.project.name,
                "total": 0,
                "completed": 0,
                "on_time": 0,
                "overdue": 0,
                "estimated_hours": 0.0,
                "spent_hours": 0.0,
            },
        )
        entry["total"] += 1

        if completion.matches(task.status.column):
            entry["completed"] += 1
            due, modified = task.dates.due, task.dates.modified
            if due is not None and modified is not None and modified <= due:
                entry["on_time"] += 1

        if task.is_overdue:
            entry["overdue"] += 1

        if task.time_tracking is not None:
            entry["estimated_hours"] += task.time_tracking.estimated_hours
            entry["spent_hours"] += task.time_tracking.spent_hours

    health = []
    for project_id, entry in stats.items():
        completion_rate = entry["completed"] / entry["total"] * 100.0 if entry["total"] else 0.0
        on_time = entry["on_time"] / entry["completed"] * 100.0 if entry["completed"] else 0.0
        utilisation = 0.0
        if entry["estimated_hours"] > 0:
            utilisation = min(100.0, entry["spent_hours"] / entry["estimated_hours"] * 100.0)

        score = completion_rate * 0.4 + on_time * 0.3 + utilisation * 0.3
        overdue_pct = entry["overdue"] / entry["total"] * 100.0 if entry["total"] else 0.0

        health.append(
            {
                "project_id": project_id,
                "project_name": entry["name"],
                "health_score": score,
                "completion_rate": completion_rate,
                "on_time_delivery": on_time,
                "team_utilisation": utilisation,
                "quality_indicator": quality_indicator(score),
                "risk_level": risk_level(overdue_pct, score),
            }
        )
    return sorted(health, key=lambda item: item["health_score"], reverse=True)
