"""Core data schema for board records and canonical tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from kanboard_analytics.timeutils import format_timestamp

PRIORITY_TIERS = ("low", "normal", "high", "urgent")
DEFAULT_PRIORITY = "normal"


@dataclass(frozen=True)
class RawTask:
    """Task record as returned by the upstream board, with decoded values."""

    id: int
    title: str
    project_id: int
    column_id: int
    swimlane_id: int = 0
    owner_id: int = 0
    description: str = ""
    date_creation: Optional[datetime] = None
    date_due: Optional[datetime] = None
    date_modification: Optional[datetime] = None
    date_started: Optional[datetime] = None
    time_estimated: float = 0.0
    time_spent: float = 0.0
    priority: str = DEFAULT_PRIORITY
    category: str = ""
    tags: tuple[str, ...] = ()
    is_active: bool = True


@dataclass(frozen=True)
class RawColumn:
    id: int
    title: str
    position: int = 0
    task_limit: int = 0


@dataclass(frozen=True)
class RawSwimlane:
    id: int
    name: str
    position: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class BoardUser:
    id: int
    username: str
    name: str = ""
    role: str = ""


@dataclass(frozen=True)
class RawProject:
    id: int
    name: str
    description: str = ""
    owner: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class ProjectInfo:
    id: str
    name: str


@dataclass(frozen=True)
class UserInfo:
    id: str
    username: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "name": self.name}


@dataclass(frozen=True)
class TaskStatus:
    column: str
    swimlane: str = ""


@dataclass(frozen=True)
class TaskDates:
    created: Optional[datetime] = None
    due: Optional[datetime] = None
    modified: Optional[datetime] = None
    started: Optional[datetime] = None


@dataclass(frozen=True)
class TimeTracking:
    estimated_hours: float
    spent_hours: float

    @property
    def remaining_hours(self) -> float:
        # Not clamped: overspent tasks report a negative remainder.
        return self.estimated_hours - self.spent_hours


@dataclass(frozen=True)
class TaskDetail:
    """Canonical, immutable task record produced by the collector."""

    id: str
    title: str
    project: ProjectInfo
    status: TaskStatus
    dates: TaskDates = field(default_factory=TaskDates)
    description: str = ""
    assignee: Optional[UserInfo] = None
    time_tracking: Optional[TimeTracking] = None
    priority: str = DEFAULT_PRIORITY
    category: str = ""
    tags: tuple[str, ...] = ()
    url: str = ""
    is_overdue: bool = False
    days_until_due: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "project": {"id": self.project.id, "name": self.project.name},
            "assignee": self.assignee.to_dict() if self.assignee else None,
            "status": {"column": self.status.column, "swimlane": self.status.swimlane},
            "dates": {
                "created": format_timestamp(self.dates.created),
                "due": format_timestamp(self.dates.due),
                "modified": format_timestamp(self.dates.modified),
                "started": format_timestamp(self.dates.started),
            },
            "priority": self.priority,
            "category": self.category,
            "tags": list(self.tags),
            "url": self.url,
            "is_overdue": self.is_overdue,
            "days_until_due": self.days_until_due,
        }
        if self.time_tracking is not None:
            payload["time_tracking"] = {
                "estimated_hours": self.time_tracking.estimated_hours,
                "spent_hours": self.time_tracking.spent_hours,
                "remaining_hours": self.time_tracking.remaining_hours,
            }
        return payload


@dataclass(frozen=True)
class TaskSummary:
    """Reduced-field projection of a task for summary listings."""

    id: str
    title: str
    project: ProjectInfo
    status: str
    assignee: Optional[UserInfo] = None
    due_date: Optional[datetime] = None
    is_overdue: bool = False
    days_until_due: Optional[int] = None

    @classmethod
    def from_detail(cls, task: TaskDetail) -> "TaskSummary":
        return cls(
            id=task.id,
            title=task.title,
            project=task.project,
            status=task.status.column,
            assignee=task.assignee,
            due_date=task.dates.due,
            is_overdue=task.is_overdue,
            days_until_due=task.days_until_due,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "project": {"id": self.project.id, "name": self.project.name},
            "status": self.status,
            "is_overdue": self.is_overdue,
        }
        if self.assignee is not None:
            payload["assignee"] = self.assignee.to_dict()
        if self.due_date is not None:
            payload["due_date"] = format_timestamp(self.due_date)
        if self.days_until_due is not None:
            payload["days_until_due"] = self.days_until_due
        return payload
