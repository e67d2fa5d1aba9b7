"""Deadline-based urgency scoring for board tasks."""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from kanboard_analytics.schema import TaskDetail
from kanboard_analytics.timeutils import days_between

TIME_HORIZONS = ("today", "week", "month")
DEFAULT_TIME_HORIZON = "week"

HAS_DUE_DATE_POINTS = 20
OVERDUE_POINTS = 40
PRIORITY_POINTS = {"urgent": 25, "high": 15, "normal": 5, "low": 0}
UNASSIGNED_POINTS = 15


def horizon_limit(horizon: str, now: datetime) -> datetime:
    """Return the instant a time horizon reaches to (unknown horizons mean a week)."""

    if horizon == "today":
        return now + timedelta(days=1)
    if horizon == "month":
        return now + relativedelta(months=1)
    return now + timedelta(days=7)


def overdue_bonus(days_overdue: int) -> int:
    if days_overdue > 7:
        return 30
    if days_overdue > 3:
        return 20
    return 10


def due_soon_bonus(days_until: int) -> int:
    if days_until <= 1:
        return 25
    if days_until <= 3:
        return 15
    if days_until <= 7:
        return 10
    return 0


def urgency_score(task: TaskDetail, now: datetime, time_limit: datetime, return_components: bool = False):
    """Score how much attention a task needs; higher is more urgent."""

    due = task.dates.due
    has_due = HAS_DUE_DATE_POINTS if due is not None else 0

    overdue = 0
    if task.is_overdue:
        overdue = OVERDUE_POINTS
        if task.days_until_due is not None:
            overdue += overdue_bonus(-task.days_until_due)

    due_soon = 0
    if not task.is_overdue and due is not None and due < time_limit:
        due_soon = due_soon_bonus(int(days_between(now, due)))

    priority = PRIORITY_POINTS.get(task.priority, 0)
    unassigned = UNASSIGNED_POINTS if task.assignee is None else 0

    score = has_due + overdue + due_soon + priority + unassigned

    if return_components:
        return {
            "score": score,
            "has_due_date": has_due,
            "overdue": overdue,
            "due_soon": due_soon,
            "priority": priority,
            "unassigned": unassigned,
        }

    return score


def urgency_reason(task: TaskDetail, now: datetime) -> str:
    """Short human-readable explanation of the dominant urgency factor."""

    if task.is_overdue:
        if task.days_until_due is None:
            return "Task is overdue"
        days_overdue = -task.days_until_due
        if days_overdue == 1:
            return "Overdue by 1 day"
        return f"Overdue by {days_overdue} days"

    if task.dates.due is not None:
        days_until = int(days_between(now, task.dates.due))
        if days_until == 0:
            return "Due today"
        if days_until == 1:
            return "Due tomorrow"
        if days_until <= 3:
            return f"Due in {days_until} days"

    if task.priority == "urgent":
        return "marked as urgent priority"
    if task.priority == "high":
        return "marked as high priority"
    if task.assignee is None:
        return "unassigned task needs attention"
    return "High priority task"
