"""Time-windowed trend analysis over collected tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
from dateutil.relativedelta import relativedelta

from kanboard_analytics import metrics
from kanboard_analytics.collector import TaskCollector, TaskQuery, parse_id_list
from kanboard_analytics.config import AnalyticsConfig, CompletedColumns
from kanboard_analytics.schema import TaskDetail
from kanboard_analytics.timeutils import days_between, utc_now

logger = logging.getLogger(__name__)

TIME_RANGES = {
    "7_days": relativedelta(days=7),
    "14_days": relativedelta(days=14),
    "30_days": relativedelta(days=30),
    "60_days": relativedelta(days=60),
    "90_days": relativedelta(days=90),
    "6_months": relativedelta(months=6),
    "1_year": relativedelta(years=1),
}
DEFAULT_TIME_RANGE = "30_days"

DEFAULT_ANALYSIS_TYPES = ("completion_trends", "cycle_time", "velocity", "task_aging")
RESPONSE_KEYS = {
    "completion_trends": "completion_trends",
    "cycle_time": "cycle_time_metrics",
    "velocity": "velocity_metrics",
    "task_aging": "task_aging",
    "burndown": "burndown_chart",
    "project_health": "project_health",
}

STALE_TASK_DAYS = 60
TREND_TOLERANCE = 0.1


def normalise_time_range(time_range: Optional[str]) -> str:
    if time_range in TIME_RANGES:
        return time_range
    if time_range:
        logger.debug("Unknown time range %r, using %s", time_range, DEFAULT_TIME_RANGE)
    return DEFAULT_TIME_RANGE


def time_range_start(time_range: str, now: datetime) -> datetime:
    """Start of the window a named range covers, ending at ``now``."""

    return now - TIME_RANGES[normalise_time_range(time_range)]


def filter_by_created(tasks: Iterable[TaskDetail], start: datetime) -> list[TaskDetail]:
    return [task for task in tasks if task.dates.created is not None and task.dates.created >= start]


@dataclass(frozen=True)
class TrendRequest:
    project_ids: tuple[str, ...] = ()
    time_range: str = DEFAULT_TIME_RANGE
    analysis_types: tuple[str, ...] = DEFAULT_ANALYSIS_TYPES
    group_by: str = ""

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "TrendRequest":
        params = params or {}
        kinds = parse_id_list(params.get("analysis_types"))
        return cls(
            project_ids=parse_id_list(params.get("project_ids")),
            time_range=normalise_time_range(params.get("time_range")),
            analysis_types=kinds or DEFAULT_ANALYSIS_TYPES,
            group_by=str(params.get("group_by") or ""),
        )


def productivity_trend(
    tasks: Iterable[TaskDetail], start: datetime, now: datetime, completion: CompletedColumns
) -> str:
    """Compare completions in the second half of the window with the first half."""

    midpoint = start + (now - start) / 2
    first_half = 0
    second_half = 0
    for task in tasks:
        modified = task.dates.modified
        if not completion.matches(task.status.column) or modified is None:
            continue
        if start <= modified < midpoint:
            first_half += 1
        elif midpoint <= modified <= now:
            second_half += 1

    if first_half == 0:
        return "Improving" if second_half > 0 else "Stable"
    ratio = second_half / first_half
    if ratio > 1 + TREND_TOLERANCE:
        return "Improving"
    if ratio < 1 - TREND_TOLERANCE:
        return "Declining"
    return "Stable"


def key_insights(total: int, completed: int, stale_open: int) -> list[str]:
    insights = []
    if total > 0:
        rate = completed / total * 100.0
        if rate > 80:
            insights.append(f"High completion rate: {rate:.1f}% of tasks completed")
        elif rate < 50:
            insights.append(f"Low completion rate: {rate:.1f}% of tasks completed - review blockers")
    if stale_open:
        insights.append(f"{stale_open} open tasks are older than {STALE_TASK_DAYS} days")
    return insights


def build_summary(
    tasks: Sequence[TaskDetail],
    time_range: str,
    start: datetime,
    now: datetime,
    completion: CompletedColumns,
) -> dict[str, Any]:
    """Headline numbers for the analysed window."""

    completed = [task for task in tasks if completion.matches(task.status.column)]
    durations = (metrics.cycle_time_days(task) for task in completed)
    cycle_times = [days for days in durations if days is not None and days > 0]
    avg_cycle = float(np.mean(cycle_times)) if cycle_times else 0.0

    stale_open = sum(
        1
        for task in tasks
        if not completion.matches(task.status.column)
        and task.dates.created is not None
        and days_between(task.dates.created, now) > STALE_TASK_DAYS
    )

    return {
        "analysis_period": time_range,
        "total_tasks": len(tasks),
        "completed_tasks": len(completed),
        "overall_velocity": float(len(completed)),
        "avg_cycle_time": avg_cycle,
        "productivity_trend": productivity_trend(tasks, start, now, completion),
        "key_insights": key_insights(len(tasks), len(completed), stale_open),
    }


class TrendAnalyzer:
    """Computes the requested historical metrics for a time window."""

    def __init__(self, collector: TaskCollector, config: Optional[AnalyticsConfig] = None):
        self.collector = collector
        self.config = config or collector.config

    def analyse_tasks(
        self,
        tasks: Sequence[TaskDetail],
        time_range: str,
        analysis_types: Sequence[str],
        now: datetime,
    ) -> dict[str, Any]:
        time_range = normalise_time_range(time_range)
        completion = self.config.trend_completion
        start = time_range_start(time_range, now)
        window = filter_by_created(tasks, start)

        computed = {
            "completion_trends": lambda: metrics.completion_trends(window, time_range, completion),
            "cycle_time": lambda: metrics.cycle_time_metrics(window, completion),
            "velocity": lambda: metrics.velocity_metrics(window, time_range, completion),
            "task_aging": lambda: metrics.task_aging(window, now, completion),
            "burndown": lambda: metrics.burndown_chart(tasks, time_range, start, now, completion),
            "project_health": lambda: metrics.project_health(window, completion),
        }

        response: dict[str, Any] = {"summary": build_summary(window, time_range, start, now, completion)}
        for kind in analysis_types:
            builder = computed.get(kind)
            if builder is None:
                logger.debug("Ignoring unknown analysis type %r", kind)
                continue
            key = RESPONSE_KEYS[kind]
            if key not in response:
                response[key] = builder()
        return response

    def analyse(self, request: TrendRequest, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or utc_now()
        query = TaskQuery(
            project_ids=request.project_ids,
            status_filter="all",
            include_overdue=True,
            include_time_tracking=True,
            sort_by="created",
            limit=None,
            summary_mode=False,
        )
        tasks = self.collector.collect(query, now)
        response = self.analyse_tasks(tasks, request.time_range, request.analysis_types, now)
        logger.info(
            "Trend analysis over %d of %d tasks for %s",
            response["summary"]["total_tasks"],
            len(tasks),
            request.time_range,
        )
        return response
