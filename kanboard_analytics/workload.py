"""Per-user workload aggregation and capacity classification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from kanboard_analytics.schema import TaskDetail

OVERLOADED_STATUSES = ("overloaded", "severely_overloaded")
SPARE_CAPACITY_STATUSES = ("underutilized", "normal")


@dataclass
class UserWorkload:
    user_id: str
    username: str
    name: str
    assigned_tasks: int = 0
    overdue_tasks: int = 0
    total_estimated_hours: float = 0.0
    capacity_utilization: float = 0.0
    status: str = "underutilized"

    @property
    def utilization_label(self) -> str:
        return f"{self.capacity_utilization:.0f}%"

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "name": self.name,
            "assigned_tasks": self.assigned_tasks,
            "overdue_tasks": self.overdue_tasks,
            "total_estimated_hours": self.total_estimated_hours,
            "capacity_utilization": self.utilization_label,
            "capacity_utilization_pct": self.capacity_utilization,
            "status": self.status,
        }


def classify_utilization(utilization: float) -> str:
    """Map a utilization percentage onto a workload status tier."""

    if utilization > 120:
        return "severely_overloaded"
    if utilization > 100:
        return "overloaded"
    if utilization > 80:
        return "at_capacity"
    if utilization > 50:
        return "normal"
    return "underutilized"


def matches_user_id(assignee_id: Any, target_id: Any) -> bool:
    """Compare user IDs that may arrive as ``"7"``, ``7`` or ``" 07"``."""

    if str(assignee_id) == str(target_id):
        return True
    try:
        return int(str(assignee_id).strip()) == int(str(target_id).strip())
    except ValueError:
        return False


def analyse_team_workloads(tasks: Iterable[TaskDetail], weekly_capacity_hours: float = 40.0) -> list[UserWorkload]:
    """Aggregate assigned tasks per user, heaviest estimated load first."""

    if weekly_capacity_hours <= 0:
        raise ValueError(f"weekly_capacity_hours must be positive, got {weekly_capacity_hours}")

    by_user: dict[str, UserWorkload] = {}
    for task in tasks:
        if task.assignee is None:
            continue

        workload = by_user.get(task.assignee.id)
        if workload is None:
            workload = UserWorkload(
                user_id=task.assignee.id,
                username=task.assignee.username,
                name=task.assignee.name,
            )
            by_user[task.assignee.id] = workload

        workload.assigned_tasks += 1
        workload.overdue_tasks += 1 if task.is_overdue else 0
        if task.time_tracking is not None:
            workload.total_estimated_hours += task.time_tracking.estimated_hours

    for workload in by_user.values():
        workload.capacity_utilization = workload.total_estimated_hours / weekly_capacity_hours * 100
        workload.status = classify_utilization(workload.capacity_utilization)

    return sorted(by_user.values(), key=lambda item: item.total_estimated_hours, reverse=True)


def find_workload(workloads: Iterable[UserWorkload], user_id: Any) -> UserWorkload | None:
    for workload in workloads:
        if matches_user_id(workload.user_id, user_id):
            return workload
    return None
