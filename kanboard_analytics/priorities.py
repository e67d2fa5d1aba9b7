"""Workload, urgency and bottleneck analysis with recommendations."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from kanboard_analytics.collector import TaskCollector, TaskQuery, param_bool, parse_id_list
from kanboard_analytics.config import AnalyticsConfig
from kanboard_analytics.schema import TaskDetail
from kanboard_analytics.timeutils import days_between, utc_now
from kanboard_analytics.urgency import (
    DEFAULT_TIME_HORIZON,
    horizon_limit,
    urgency_reason,
    urgency_score,
)
from kanboard_analytics.workload import (
    OVERLOADED_STATUSES,
    SPARE_CAPACITY_STATUSES,
    UserWorkload,
    analyse_team_workloads,
    find_workload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriorityRequest:
    user_id: Optional[str] = None
    project_ids: tuple[str, ...] = ()
    time_horizon: str = DEFAULT_TIME_HORIZON
    include_recommendations: bool = True

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "PriorityRequest":
        params = params or {}
        user_id = params.get("user_id")
        return cls(
            user_id=str(user_id) if user_id not in (None, "") else None,
            project_ids=parse_id_list(params.get("project_ids")),
            time_horizon=str(params.get("time_horizon") or DEFAULT_TIME_HORIZON),
            include_recommendations=param_bool(params.get("include_recommendations"), True),
        )


@dataclass
class UrgentItem:
    task_id: str
    title: str
    urgency_score: int
    reason: str
    project: str
    days_overdue: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "task_id": self.task_id,
            "title": self.title,
            "urgency_score": self.urgency_score,
            "reason": self.reason,
            "project": self.project,
        }
        if self.days_overdue:
            payload["days_overdue"] = self.days_overdue
        return payload


@dataclass
class Bottleneck:
    column: str
    project: str
    stuck_tasks: int
    avg_wait_time_days: float
    task_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "project": self.project,
            "stuck_tasks": self.stuck_tasks,
            "avg_wait_time_days": self.avg_wait_time_days,
            "task_ids": list(self.task_ids),
        }


@dataclass
class Recommendation:
    type: str
    message: str
    confidence: float
    task_ids: list[str] = field(default_factory=list)
    suggested_assignee: str = ""
    affected_tasks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "message": self.message, "confidence": self.confidence}
        if self.task_ids:
            payload["task_ids"] = list(self.task_ids)
        if self.suggested_assignee:
            payload["suggested_assignee"] = self.suggested_assignee
        if self.affected_tasks:
            payload["affected_tasks"] = list(self.affected_tasks)
        return payload


@dataclass
class PriorityAnalysis:
    requesting_user: Optional[UserWorkload]
    team_workloads: list[UserWorkload]
    urgent_items: list[UrgentItem]
    bottlenecks: list[Bottleneck]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "team_workloads": [item.to_dict() for item in self.team_workloads],
            "urgent_items": [item.to_dict() for item in self.urgent_items],
            "bottlenecks": [item.to_dict() for item in self.bottlenecks],
        }
        if self.requesting_user is not None:
            payload["requesting_user"] = self.requesting_user.to_dict()
        return payload


def find_urgent_items(
    tasks: Iterable[TaskDetail],
    time_horizon: str,
    now: datetime,
    threshold: int = 70,
    max_items: int = 10,
) -> list[UrgentItem]:
    """Tasks scoring at least ``threshold``, most urgent first."""

    time_limit = horizon_limit(time_horizon, now)
    items = []
    for task in tasks:
        score = urgency_score(task, now, time_limit)
        if score < threshold:
            continue
        days_overdue = None
        if task.is_overdue and task.days_until_due is not None:
            days_overdue = -task.days_until_due
        items.append(
            UrgentItem(
                task_id=task.id,
                title=task.title,
                urgency_score=score,
                reason=urgency_reason(task, now),
                project=task.project.name,
                days_overdue=days_overdue,
            )
        )

    items.sort(key=lambda item: item.urgency_score, reverse=True)
    return items[:max_items]


def find_bottlenecks(
    tasks: Iterable[TaskDetail],
    now: datetime,
    min_tasks: int = 3,
    stall_days: float = 2.0,
    min_avg_wait_days: float = 3.0,
) -> list[Bottleneck]:
    """Board columns where several tasks have not moved for a while."""

    by_column: dict[tuple[str, str], list[TaskDetail]] = defaultdict(list)
    for task in tasks:
        by_column[(task.project.name, task.status.column)].append(task)

    bottlenecks = []
    for (project, column), column_tasks in by_column.items():
        if len(column_tasks) < min_tasks:
            continue

        waits = []
        stalled_ids = []
        for task in column_tasks:
            if task.dates.modified is None:
                continue
            wait_days = days_between(task.dates.modified, now)
            if wait_days > stall_days:
                waits.append(wait_days)
                stalled_ids.append(task.id)

        if len(waits) < min_tasks:
            continue
        avg_wait = sum(waits) / len(waits)
        if avg_wait > min_avg_wait_days:
            bottlenecks.append(
                Bottleneck(
                    column=column,
                    project=project,
                    stuck_tasks=len(waits),
                    avg_wait_time_days=avg_wait,
                    task_ids=stalled_ids,
                )
            )

    bottlenecks.sort(key=lambda item: item.avg_wait_time_days, reverse=True)
    return bottlenecks


def generate_recommendations(analysis: PriorityAnalysis, min_stuck_tasks: int = 3) -> list[Recommendation]:
    recommendations = []

    if analysis.urgent_items:
        top = analysis.urgent_items[0]
        recommendations.append(
            Recommendation(
                type="priority",
                message=f"Focus on '{top.title}' first - urgency score: {top.urgency_score} ({top.reason})",
                task_ids=[top.task_id],
                confidence=0.92,
            )
        )

    user = analysis.requesting_user
    if user is not None and user.status in OVERLOADED_STATUSES:
        recommendations.append(
            Recommendation(
                type="workload",
                message=(
                    f"Your workload is {user.status} ({user.utilization_label} utilization) - "
                    "consider delegating or deferring lower priority tasks"
                ),
                confidence=0.85,
            )
        )

    overloaded = [item for item in analysis.team_workloads if item.status in OVERLOADED_STATUSES]
    spare = [item for item in analysis.team_workloads if item.status in SPARE_CAPACITY_STATUSES]
    if overloaded and spare:
        source = max(overloaded, key=lambda item: item.capacity_utilization)
        target = min(spare, key=lambda item: item.capacity_utilization)
        recommendations.append(
            Recommendation(
                type="delegation",
                message=(
                    f"Consider redistributing tasks from {source.name} ({source.utilization_label}) "
                    f"to {target.name} ({target.utilization_label})"
                ),
                suggested_assignee=target.user_id,
                confidence=0.78,
            )
        )

    for bottleneck in analysis.bottlenecks:
        if bottleneck.stuck_tasks >= min_stuck_tasks:
            recommendations.append(
                Recommendation(
                    type="process",
                    message=(
                        f"'{bottleneck.column}' column in {bottleneck.project} has bottleneck - "
                        f"{bottleneck.stuck_tasks} tasks waiting {bottleneck.avg_wait_time_days:.1f} days on average"
                    ),
                    affected_tasks=list(bottleneck.task_ids),
                    confidence=0.85,
                )
            )

    return recommendations


class PriorityAnalyzer:
    """Ranks what needs attention across a set of projects."""

    def __init__(self, collector: TaskCollector, config: Optional[AnalyticsConfig] = None):
        self.collector = collector
        self.config = config or collector.config

    def analyse_tasks(self, tasks: Sequence[TaskDetail], user_id: str, time_horizon: str, now: datetime) -> PriorityAnalysis:
        workloads = analyse_team_workloads(tasks, self.config.weekly_capacity_hours)
        return PriorityAnalysis(
            requesting_user=find_workload(workloads, user_id),
            team_workloads=workloads,
            urgent_items=find_urgent_items(
                tasks,
                time_horizon,
                now,
                threshold=self.config.urgency_threshold,
                max_items=self.config.max_urgent_items,
            ),
            bottlenecks=find_bottlenecks(
                tasks,
                now,
                min_tasks=self.config.bottleneck_min_tasks,
                stall_days=self.config.bottleneck_stall_days,
                min_avg_wait_days=self.config.bottleneck_min_avg_wait_days,
            ),
        )

    def analyse(self, request: PriorityRequest, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or utc_now()
        user_id = request.user_id
        if user_id is None:
            user_id = str(self.collector.source.fetch_current_user().id)

        query = TaskQuery(
            project_ids=request.project_ids,
            status_filter="all",
            include_overdue=True,
            include_time_tracking=True,
            sort_by="due_date",
            limit=None,
            summary_mode=False,
        )
        tasks = self.collector.collect(query, now)
        analysis = self.analyse_tasks(tasks, user_id, request.time_horizon, now)
        logger.info(
            "Priority analysis over %d tasks: %d urgent, %d bottlenecks",
            len(tasks),
            len(analysis.urgent_items),
            len(analysis.bottlenecks),
        )

        response: dict[str, Any] = {"analysis": analysis.to_dict()}
        if request.include_recommendations:
            response["recommendations"] = [
                item.to_dict()
                for item in generate_recommendations(analysis, min_stuck_tasks=self.config.bottleneck_min_tasks)
            ]
        return response
