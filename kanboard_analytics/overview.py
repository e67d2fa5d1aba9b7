"""Board-wide overview of projects, their structure and task counts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from kanboard_analytics.collector import TaskCollector, param_bool
from kanboard_analytics.fanout import fan_out, first_error
from kanboard_analytics.schema import BoardUser, RawColumn, RawProject, RawSwimlane, RawTask, UserInfo
from kanboard_analytics.source import TaskSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverviewRequest:
    include_task_counts: bool = True
    include_inactive_projects: bool = False

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "OverviewRequest":
        params = params or {}
        return cls(
            include_task_counts=param_bool(params.get("include_task_counts"), True),
            include_inactive_projects=param_bool(params.get("include_inactive_projects"), False),
        )


@dataclass
class ProjectOverview:
    """Structure of one project: columns, swimlanes, members and optional counts."""

    project: RawProject
    columns: list[RawColumn] = field(default_factory=list)
    swimlanes: list[RawSwimlane] = field(default_factory=list)
    users: list[BoardUser] = field(default_factory=list)
    task_counts: Optional[dict[str, int]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": str(self.project.id),
            "name": self.project.name,
            "description": self.project.description,
            "is_active": self.project.is_active,
            "owner": self.project.owner,
            "columns": [
                {
                    "id": str(column.id),
                    "title": column.title,
                    "position": column.position,
                    "task_limit": column.task_limit,
                }
                for column in self.columns
            ],
            "swimlanes": [
                {"id": str(lane.id), "name": lane.name, "position": lane.position, "is_active": lane.is_active}
                for lane in self.swimlanes
            ],
            "users": [
                {"id": str(user.id), "username": user.username, "name": user.name, "role": user.role}
                for user in self.users
            ],
        }
        if self.task_counts is not None:
            payload["task_counts"] = dict(self.task_counts)
        return payload


def count_tasks_by_column(tasks: Iterable[RawTask], columns: Sequence[RawColumn]) -> dict[str, int]:
    """Tasks per column title; every column is present, tasks in unknown columns are skipped."""

    titles = {column.id: column.title for column in columns}
    counts = {column.title: 0 for column in columns}
    for task in tasks:
        title = titles.get(task.column_id)
        if title is not None:
            counts[title] += 1
    return counts


def build_project_overview(source: TaskSource, project: RawProject, include_task_counts: bool) -> ProjectOverview:
    overview = ProjectOverview(
        project=project,
        columns=sorted(source.fetch_columns(project.id), key=lambda column: column.position),
        swimlanes=sorted(source.fetch_swimlanes(project.id), key=lambda lane: lane.position),
        users=source.fetch_project_users(project.id),
    )
    if include_task_counts:
        overview.task_counts = count_tasks_by_column(source.fetch_tasks(project.id), overview.columns)
    return overview


def summarize_overviews(overviews: Sequence[ProjectOverview], include_task_counts: bool) -> dict[str, int]:
    active = sum(1 for overview in overviews if overview.project.is_active)
    summary = {
        "total_projects": len(overviews),
        "active_projects": active,
        "inactive_projects": len(overviews) - active,
    }
    if include_task_counts:
        summary["total_tasks"] = sum(sum((overview.task_counts or {}).values()) for overview in overviews)
    return summary


class BoardOverview:
    """Describes every accessible project in one payload."""

    def __init__(self, collector: TaskCollector):
        self.collector = collector
        self.source = collector.source
        self.config = collector.config

    def build(self, request: OverviewRequest) -> dict[str, Any]:
        projects = self.source.fetch_accessible_projects()
        if not request.include_inactive_projects:
            projects = [project for project in projects if project.is_active]
        logger.info("Building overview for %d projects", len(projects))

        outcomes = fan_out(
            lambda project: build_project_overview(self.source, project, request.include_task_counts),
            projects,
            max_workers=self.config.max_fetch_workers,
        )
        error = first_error(outcomes)
        if error is not None:
            failed = [str(projects[outcome.index].id) for outcome in outcomes if not outcome.ok]
            logger.error("Overview failed for projects %s: %s", ", ".join(failed), error)
            raise error

        overviews = [outcome.result for outcome in outcomes]
        user = self.source.fetch_current_user()
        return {
            "summary": summarize_overviews(overviews, request.include_task_counts),
            "projects": [overview.to_dict() for overview in overviews],
            "user_info": UserInfo(id=str(user.id), username=user.username, name=user.name).to_dict(),
        }
