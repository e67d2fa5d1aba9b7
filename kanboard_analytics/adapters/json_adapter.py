"""JSON adapter for upstream board payloads and collector output."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, TypeVar

from kanboard_analytics.schema import (
    DEFAULT_PRIORITY,
    PRIORITY_TIERS,
    BoardUser,
    ProjectInfo,
    RawColumn,
    RawProject,
    RawSwimlane,
    RawTask,
    TaskDates,
    TaskDetail,
    TaskStatus,
    TimeTracking,
    UserInfo,
)
from kanboard_analytics.timeutils import parse_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REQUIRED_TASK_FIELDS = ("id", "project_id", "column_id")
_PRIORITY_BY_LEVEL = {0: "low", 1: "normal", 2: "high", 3: "urgent"}


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _as_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return False


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_priority(value: Any) -> str:
    """Map an upstream priority (level 0-3 or tier name) onto a priority tier."""

    if isinstance(value, str):
        text = value.strip().lower()
        if text in PRIORITY_TIERS:
            return text
        if not text.lstrip("-").isdigit():
            return DEFAULT_PRIORITY
    if value is None or isinstance(value, bool):
        return DEFAULT_PRIORITY
    return _PRIORITY_BY_LEVEL.get(_as_int(value, default=-1), DEFAULT_PRIORITY)


def _parse_tags(value: Any) -> tuple[str, ...]:
    if isinstance(value, dict):
        return tuple(_as_str(tag) for tag in value.values())
    if isinstance(value, list):
        return tuple(_as_str(tag.get("name") if isinstance(tag, dict) else tag) for tag in value)
    return ()


def _require_list(payload: Any, what: str) -> list:
    if not isinstance(payload, list):
        raise ValueError(f"{what} payload must be a list of objects")
    return payload


def _parse_task(item: dict, index: int) -> RawTask:
    if not isinstance(item, dict):
        raise ValueError(f"Task {index}: expected an object")
    missing = [name for name in _REQUIRED_TASK_FIELDS if item.get(name) in (None, "")]
    if missing:
        raise ValueError(f"Task {index}: missing required fields {missing}")

    return RawTask(
        id=_as_int(item["id"]),
        title=_as_str(item.get("title")),
        description=_as_str(item.get("description")),
        project_id=_as_int(item["project_id"]),
        column_id=_as_int(item["column_id"]),
        swimlane_id=_as_int(item.get("swimlane_id")),
        owner_id=_as_int(item.get("owner_id")),
        date_creation=parse_timestamp(item.get("date_creation")),
        date_due=parse_timestamp(item.get("date_due")),
        date_modification=parse_timestamp(item.get("date_modification")),
        date_started=parse_timestamp(item.get("date_started")),
        time_estimated=_as_float(item.get("time_estimated")),
        time_spent=_as_float(item.get("time_spent")),
        priority=parse_priority(item.get("priority")),
        category=_as_str(item.get("category_name") or item.get("category")),
        tags=_parse_tags(item.get("tags")),
        is_active=_as_bool(item.get("is_active", True)),
    )


def parse_tasks(payload: Any) -> list[RawTask]:
    """Decode a ``getAllTasks`` result."""

    return [_parse_task(item, i) for i, item in enumerate(_require_list(payload, "Tasks"), start=1)]


def parse_columns(payload: Any) -> list[RawColumn]:
    return [
        RawColumn(
            id=_as_int(item.get("id")),
            title=_as_str(item.get("title")),
            position=_as_int(item.get("position")),
            task_limit=_as_int(item.get("task_limit")),
        )
        for item in _require_list(payload, "Columns")
    ]


def parse_swimlanes(payload: Any) -> list[RawSwimlane]:
    return [
        RawSwimlane(
            id=_as_int(item.get("id")),
            name=_as_str(item.get("name")),
            position=_as_int(item.get("position")),
            is_active=_as_bool(item.get("is_active", True)),
        )
        for item in _require_list(payload, "Swimlanes")
    ]


def parse_projects(payload: Any) -> list[RawProject]:
    projects = []
    for index, item in enumerate(_require_list(payload, "Projects"), start=1):
        if item.get("id") in (None, ""):
            raise ValueError(f"Project {index}: missing required fields ['id']")
        projects.append(
            RawProject(
                id=_as_int(item["id"]),
                name=_as_str(item.get("name")),
                description=_as_str(item.get("description")),
                owner=_as_str(item.get("owner_name")),
                is_active=_as_bool(item.get("is_active", True)),
            )
        )
    return projects


def parse_user(payload: Any) -> BoardUser:
    if not isinstance(payload, dict) or payload.get("id") in (None, ""):
        raise ValueError("User payload must be an object with an id")
    username = _as_str(payload.get("username"))
    return BoardUser(
        id=_as_int(payload["id"]),
        username=username,
        name=_as_str(payload.get("name")) or username,
        role=_as_str(payload.get("role")),
    )


def decode_first_of(payload: Any, decoders: Iterable[tuple[str, Callable[[Any], T]]]) -> T:
    """Return the result of the first decoder that accepts ``payload``.

    Decoders signal rejection by raising ``ValueError`` or ``TypeError``.
    """

    failures = []
    for name, decoder in decoders:
        try:
            result = decoder(payload)
        except (TypeError, ValueError) as exc:
            failures.append(f"as {name}: {exc}")
            continue
        if failures:
            logger.debug("Decoded payload %s after rejecting %s", name, "; ".join(failures))
        return result
    raise ValueError("failed to decode payload " + ", ".join(failures))


def _users_from_list(payload: Any) -> list[BoardUser]:
    if not isinstance(payload, list):
        raise TypeError("not a list")
    return [parse_user(item) for item in payload]


def _map_users(payload: dict, to_username: Callable[[Any], str]) -> list[BoardUser]:
    users = []
    for user_id, value in payload.items():
        username = to_username(value)
        users.append(BoardUser(id=_as_int(user_id), username=username, name=username))
    return users


def _users_from_string_map(payload: Any) -> list[BoardUser]:
    if not isinstance(payload, dict):
        raise TypeError("not an object")
    if not all(isinstance(value, str) for value in payload.values()):
        raise ValueError("values are not all strings")
    return _map_users(payload, str)


def _users_from_generic_map(payload: Any) -> list[BoardUser]:
    if not isinstance(payload, dict):
        raise TypeError("not an object")
    return _map_users(payload, _as_str)


def parse_project_users(payload: Any) -> list[BoardUser]:
    """Decode a ``getProjectUsers`` result.

    The board answers with a list of user objects, an ``{id: username}`` map or
    a map with mixed value types depending on version and plugins.
    """

    return decode_first_of(
        payload,
        (
            ("user list", _users_from_list),
            ("string map", _users_from_string_map),
            ("generic map", _users_from_generic_map),
        ),
    )


def _parse_assignee(value: Any) -> UserInfo | None:
    if not isinstance(value, dict) or value.get("id") in (None, ""):
        return None
    return UserInfo(
        id=_as_str(value["id"]),
        username=_as_str(value.get("username")),
        name=_as_str(value.get("name")),
    )


def task_from_payload(item: dict) -> TaskDetail:
    """Rebuild a task record from a listing entry (detail or summary shape)."""

    project = item.get("project") or {}
    status = item.get("status")
    if isinstance(status, dict):
        task_status = TaskStatus(column=_as_str(status.get("column")), swimlane=_as_str(status.get("swimlane")))
    else:
        task_status = TaskStatus(column=_as_str(status))

    dates = item.get("dates") or {}
    tracking = item.get("time_tracking")
    days_until_due = item.get("days_until_due")

    return TaskDetail(
        id=_as_str(item.get("id")),
        title=_as_str(item.get("title")),
        description=_as_str(item.get("description")),
        project=ProjectInfo(id=_as_str(project.get("id")), name=_as_str(project.get("name"))),
        assignee=_parse_assignee(item.get("assignee")),
        status=task_status,
        dates=TaskDates(
            created=parse_timestamp(dates.get("created")),
            due=parse_timestamp(dates.get("due", item.get("due_date"))),
            modified=parse_timestamp(dates.get("modified")),
            started=parse_timestamp(dates.get("started")),
        ),
        time_tracking=(
            TimeTracking(
                estimated_hours=_as_float(tracking.get("estimated_hours")),
                spent_hours=_as_float(tracking.get("spent_hours")),
            )
            if isinstance(tracking, dict)
            else None
        ),
        priority=parse_priority(item.get("priority")),
        category=_as_str(item.get("category")),
        tags=tuple(_as_str(tag) for tag in item.get("tags") or ()),
        url=_as_str(item.get("url")),
        is_overdue=_as_bool(item.get("is_overdue")),
        days_until_due=None if days_until_due is None else _as_int(days_until_due),
    )


def parse(file_path: str) -> Any:
    """Load a JSON document from disk."""

    with open(file_path, encoding="utf-8") as handle:
        return json.load(handle)
