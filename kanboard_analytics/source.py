"""Upstream data source contract consumed by the collector."""

from __future__ import annotations

from typing import Protocol

from kanboard_analytics.schema import BoardUser, RawColumn, RawProject, RawSwimlane, RawTask


class UpstreamError(RuntimeError):
    """Transport or remote failure raised by a task source."""


class TaskSource(Protocol):
    """Fetch operations the analytics engine needs from the board.

    Implementations own their timeouts; the engine never retries a call.
    """

    base_url: str

    def fetch_accessible_projects(self) -> list[RawProject]: ...

    def fetch_current_user(self) -> BoardUser: ...

    def fetch_tasks(self, project_id: int) -> list[RawTask]: ...

    def fetch_columns(self, project_id: int) -> list[RawColumn]: ...

    def fetch_swimlanes(self, project_id: int) -> list[RawSwimlane]: ...

    def fetch_project_users(self, project_id: int) -> list[BoardUser]: ...
