"""Task collection, filtering, sorting and response shaping."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

from kanboard_analytics.config import AnalyticsConfig, CompletedColumns
from kanboard_analytics.fanout import fan_out, first_error
from kanboard_analytics.schema import (
    DEFAULT_PRIORITY,
    BoardUser,
    ProjectInfo,
    RawProject,
    RawTask,
    TaskDates,
    TaskDetail,
    TaskStatus,
    TaskSummary,
    TimeTracking,
    UserInfo,
)
from kanboard_analytics.source import TaskSource
from kanboard_analytics.timeutils import due_date_info, parse_date, utc_now

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("active", "completed", "all")
SORT_KEYS = ("due_date", "priority", "created")
PRIORITY_VALUES = {"low": 0, "normal": 1, "high": 2, "urgent": 3}

TASK_URL_TEMPLATE = "{base_url}/?controller=TaskViewController&action=show&task_id={task_id}&project_id={project_id}"


def parse_id_list(value: Any) -> tuple[str, ...]:
    """Accept a comma-separated string or a list of IDs."""

    if value is None:
        return ()
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = value
    else:
        parts = [value]
    return tuple(str(part).strip() for part in parts if str(part).strip())


def param_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        return default
    return bool(value)


@dataclass(frozen=True)
class DateRange:
    """Inclusive due-date bounds as ``YYYY-MM-DD`` strings; empty means open."""

    start: str = ""
    end: str = ""


@dataclass(frozen=True)
class TaskQuery:
    project_ids: tuple[str, ...] = ()
    assignee_ids: tuple[str, ...] = ()
    status_filter: str = "active"
    due_date_range: Optional[DateRange] = None
    include_overdue: bool = False
    include_time_tracking: bool = True
    sort_by: str = "due_date"
    limit: Optional[int] = 20
    summary_mode: bool = True

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "TaskQuery":
        """Build a query from tool-call style parameters."""

        params = params or {}
        status_filter = str(params.get("status_filter") or "active").strip().lower()
        if status_filter not in STATUS_FILTERS:
            raise ValueError(f"invalid status_filter '{status_filter}', expected one of {list(STATUS_FILTERS)}")

        date_range = None
        raw_range = params.get("due_date_range")
        if isinstance(raw_range, Mapping):
            date_range = DateRange(start=str(raw_range.get("start") or ""), end=str(raw_range.get("end") or ""))
        elif params.get("due_date_start") or params.get("due_date_end"):
            date_range = DateRange(
                start=str(params.get("due_date_start") or ""),
                end=str(params.get("due_date_end") or ""),
            )

        limit = cls.limit
        if params.get("limit") is not None:
            try:
                limit = int(params["limit"])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid limit {params['limit']!r}") from exc

        return cls(
            project_ids=parse_id_list(params.get("project_ids")),
            assignee_ids=parse_id_list(params.get("assignee_ids")),
            status_filter=status_filter,
            due_date_range=date_range,
            include_overdue=param_bool(params.get("include_overdue"), False),
            include_time_tracking=param_bool(params.get("include_time_tracking"), True),
            sort_by=str(params.get("sort_by") or "due_date"),
            limit=limit,
            summary_mode=param_bool(params.get("summary_mode"), True),
        )


def build_task_detail(
    task: RawTask,
    project: RawProject,
    columns: Mapping[int, str],
    swimlanes: Mapping[int, str],
    users: Mapping[int, UserInfo],
    base_url: str,
    include_time_tracking: bool,
    now: datetime,
) -> TaskDetail:
    """Normalize one upstream task into the canonical record."""

    is_overdue, days_until_due = due_date_info(task.date_due, now)
    assignee = users.get(task.owner_id) if task.owner_id > 0 else None

    time_tracking = None
    if include_time_tracking:
        time_tracking = TimeTracking(estimated_hours=task.time_estimated, spent_hours=task.time_spent)

    return TaskDetail(
        id=str(task.id),
        title=task.title,
        description=task.description,
        project=ProjectInfo(id=str(project.id), name=project.name),
        assignee=assignee,
        status=TaskStatus(column=columns.get(task.column_id, ""), swimlane=swimlanes.get(task.swimlane_id, "")),
        dates=TaskDates(
            created=task.date_creation,
            due=task.date_due,
            modified=task.date_modification,
            started=task.date_started,
        ),
        time_tracking=time_tracking,
        priority=task.priority or DEFAULT_PRIORITY,
        category=task.category,
        tags=task.tags,
        url=TASK_URL_TEMPLATE.format(base_url=base_url, task_id=task.id, project_id=project.id),
        is_overdue=is_overdue,
        days_until_due=days_until_due,
    )


def is_in_due_range(task: TaskDetail, date_range: DateRange) -> bool:
    due = task.dates.due
    if due is None:
        return False

    due_day = due.date()
    if date_range.start:
        start = parse_date(date_range.start)
        if start is None or due_day < start:
            return False
    if date_range.end:
        end = parse_date(date_range.end)
        if end is None or due_day > end:
            return False
    return True


def should_include_task(task: TaskDetail, query: TaskQuery, completion: CompletedColumns) -> bool:
    if query.status_filter == "active" and completion.matches(task.status.column):
        return False
    if query.status_filter == "completed" and not completion.matches(task.status.column):
        return False

    if query.assignee_ids:
        if task.assignee is None or task.assignee.id not in query.assignee_ids:
            return False

    if not query.include_overdue and task.is_overdue:
        return False

    if query.due_date_range is not None and not is_in_due_range(task, query.due_date_range):
        return False

    return True


def filter_tasks(tasks: Iterable[TaskDetail], query: TaskQuery, completion: CompletedColumns) -> list[TaskDetail]:
    return [task for task in tasks if should_include_task(task, query, completion)]


def priority_value(priority: str) -> int:
    return PRIORITY_VALUES.get(priority, PRIORITY_VALUES[DEFAULT_PRIORITY])


def sort_tasks(tasks: Iterable[TaskDetail], sort_by: str) -> list[TaskDetail]:
    """Stable sort by due date (undated last), priority or creation date."""

    if sort_by == "priority":
        return sorted(tasks, key=lambda task: priority_value(task.priority), reverse=True)
    if sort_by == "created":
        return sorted(
            tasks,
            key=lambda task: (task.dates.created is not None, task.dates.created.timestamp() if task.dates.created else 0.0),
            reverse=True,
        )
    if sort_by not in SORT_KEYS:
        logger.debug("Unknown sort key %r, sorting by due date", sort_by)
    return sorted(
        tasks,
        key=lambda task: (task.dates.due is None, task.dates.due.timestamp() if task.dates.due else 0.0),
    )


def summarize_tasks(tasks: Sequence[TaskDetail], now: datetime) -> dict[str, int]:
    week_from_now = now + timedelta(days=7)
    summary = {"total_tasks": len(tasks), "overdue_tasks": 0, "due_this_week": 0, "unassigned_tasks": 0}
    for task in tasks:
        if task.is_overdue:
            summary["overdue_tasks"] += 1
        if task.assignee is None:
            summary["unassigned_tasks"] += 1
        due = task.dates.due
        if due is not None and now < due < week_from_now:
            summary["due_this_week"] += 1
    return summary


def effective_limit(query: TaskQuery, config: AnalyticsConfig) -> Optional[int]:
    """Apply the default and the mode-dependent hard ceiling to a requested limit."""

    if query.limit is None:
        return None
    limit = query.limit if query.limit > 0 else config.default_limit
    ceiling = config.summary_tasks_hard_limit if query.summary_mode else config.max_tasks_hard_limit
    return min(limit, ceiling)


def create_task_summaries(tasks: Sequence[TaskDetail], limit: Optional[int]) -> list[TaskSummary]:
    if limit is not None:
        tasks = tasks[:limit]
    return [TaskSummary.from_detail(task) for task in tasks]


def _payload_size(payload: Any) -> int:
    return len(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def _detail_response(summary: Mapping[str, Any], rendered: list[dict], truncated: bool, truncated_at: int) -> dict[str, Any]:
    return {"summary": dict(summary), "tasks": rendered, "truncated": truncated, "truncated_at": truncated_at}


def measure_response(response: Mapping[str, Any]) -> int:
    """Serialized size of ``response`` once its own ``response_size_bytes`` is added."""

    size = _payload_size({**response, "response_size_bytes": 0})
    while True:
        measured = _payload_size({**response, "response_size_bytes": size})
        if measured == size:
            return size
        size = measured


def apply_response_size_limit(
    tasks: Sequence[TaskDetail],
    limit: Optional[int],
    max_bytes: int,
    summary: Optional[Mapping[str, Any]] = None,
) -> tuple[list[TaskDetail], bool, int]:
    """Drop trailing tasks until the whole detail response fits ``max_bytes``.

    The measured response carries ``summary``, the truncation flags and the
    ``response_size_bytes`` field itself. Returns ``(tasks, truncated,
    truncated_at)``; ``truncated_at`` is the number of tasks kept when
    truncation happened and 0 otherwise.
    """

    if limit is not None:
        tasks = tasks[:limit]
    summary = summary or {}
    rendered = [task.to_dict() for task in tasks]

    for count in range(len(rendered), -1, -1):
        truncated = count < len(rendered)
        candidate = _detail_response(summary, rendered[:count], truncated, count if truncated else 0)
        if measure_response(candidate) <= max_bytes:
            return list(tasks[:count]), truncated, count if truncated else 0

    return [], bool(rendered), 0


class TaskCollector:
    """Fetches tasks for a set of projects and turns them into listings."""

    def __init__(self, source: TaskSource, config: Optional[AnalyticsConfig] = None):
        self.source = source
        self.config = config or AnalyticsConfig()

    @property
    def base_url(self) -> str:
        return (self.config.base_url or getattr(self.source, "base_url", "") or "").rstrip("/")

    def resolve_projects(self, project_ids: Sequence[str]) -> list[RawProject]:
        """Accessible projects, narrowed to ``project_ids`` when given."""

        projects = self.source.fetch_accessible_projects()
        if not project_ids:
            return projects
        wanted = set(project_ids)
        return [project for project in projects if str(project.id) in wanted]

    def _fetch_project(self, project: RawProject, include_time_tracking: bool, now: datetime) -> list[TaskDetail]:
        tasks = self.source.fetch_tasks(project.id)
        columns: dict[int, str] = {column.id: column.title for column in self.source.fetch_columns(project.id)}
        swimlanes: dict[int, str] = {lane.id: lane.name for lane in self.source.fetch_swimlanes(project.id)}
        users = {user.id: _user_info(user) for user in self.source.fetch_project_users(project.id)}

        logger.debug("Fetched %d tasks for project %s", len(tasks), project.id)
        return [
            build_task_detail(task, project, columns, swimlanes, users, self.base_url, include_time_tracking, now)
            for task in tasks
        ]

    def collect(self, query: TaskQuery, now: Optional[datetime] = None) -> list[TaskDetail]:
        """Fetch, normalize, filter and sort tasks without shaping the output."""

        now = now or utc_now()
        projects = self.resolve_projects(query.project_ids)
        logger.info("Collecting tasks from %d projects", len(projects))

        outcomes = fan_out(
            lambda project: self._fetch_project(project, query.include_time_tracking, now),
            projects,
            max_workers=self.config.max_fetch_workers,
        )
        error = first_error(outcomes)
        if error is not None:
            failed = [str(projects[outcome.index].id) for outcome in outcomes if not outcome.ok]
            logger.error("Task collection failed for projects %s: %s", ", ".join(failed), error)
            raise error

        tasks = [task for outcome in outcomes for task in outcome.result or []]
        filtered = filter_tasks(tasks, query, self.config.listing_completion)
        return sort_tasks(filtered, query.sort_by)

    def list_tasks(self, query: TaskQuery, now: Optional[datetime] = None) -> dict[str, Any]:
        """Produce the task listing payload for ``query``."""

        now = now or utc_now()
        tasks = self.collect(query, now)
        return shape_listing(tasks, query, self.config, now)


def shape_listing(
    tasks: Sequence[TaskDetail], query: TaskQuery, config: AnalyticsConfig, now: datetime
) -> dict[str, Any]:
    """Turn filtered, sorted tasks into a summary-mode or detail-mode listing."""

    summary = summarize_tasks(tasks, now)
    limit = effective_limit(query, config)

    if query.summary_mode:
        summaries = create_task_summaries(tasks, limit)
        return {"summary": summary, "task_summaries": [item.to_dict() for item in summaries]}

    final_tasks, truncated, truncated_at = apply_response_size_limit(
        tasks, limit, config.max_response_bytes, summary
    )
    if truncated:
        logger.info("Truncated task listing to %d of %d tasks", truncated_at, len(tasks))

    response = _detail_response(summary, [task.to_dict() for task in final_tasks], truncated, truncated_at)
    size = measure_response(response)
    if size > config.warning_response_bytes:
        logger.warning("Task listing response is %d bytes", size)
    response["response_size_bytes"] = size
    return response


def _user_info(user: BoardUser) -> UserInfo:
    return UserInfo(id=str(user.id), username=user.username, name=user.name)
