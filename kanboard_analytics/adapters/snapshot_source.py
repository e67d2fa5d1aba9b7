"""Task source that replays a recorded board snapshot from a JSON file."""

from __future__ import annotations

import logging
from typing import Any

from kanboard_analytics.adapters import json_adapter
from kanboard_analytics.schema import BoardUser, RawColumn, RawProject, RawSwimlane, RawTask
from kanboard_analytics.source import UpstreamError

logger = logging.getLogger(__name__)


class SnapshotSource:
    """Serve upstream payloads captured from a board.

    The snapshot is a JSON object with ``base_url``, ``me``, ``projects`` and
    per-project maps (keyed by project id) for ``tasks``, ``columns``,
    ``swimlanes`` and ``users``. Entries in ``fetch_errors`` make every fetch
    for that project fail with the recorded message.
    """

    def __init__(self, payload: dict[str, Any]):
        if not isinstance(payload, dict):
            raise ValueError("Snapshot payload must be a JSON object")
        self._payload = payload
        self.base_url = str(payload.get("base_url") or "").rstrip("/")

    @classmethod
    def from_file(cls, file_path: str) -> "SnapshotSource":
        logger.info("Loading board snapshot from %s", file_path)
        return cls(json_adapter.parse(file_path))

    def _project_section(self, section: str, project_id: int) -> Any:
        error = (self._payload.get("fetch_errors") or {}).get(str(project_id))
        if error:
            raise UpstreamError(error)
        return (self._payload.get(section) or {}).get(str(project_id), [])

    def fetch_accessible_projects(self) -> list[RawProject]:
        return json_adapter.parse_projects(self._payload.get("projects", []))

    def fetch_current_user(self) -> BoardUser:
        if "me" not in self._payload:
            raise UpstreamError("snapshot has no current user")
        return json_adapter.parse_user(self._payload["me"])

    def fetch_tasks(self, project_id: int) -> list[RawTask]:
        return json_adapter.parse_tasks(self._project_section("tasks", project_id))

    def fetch_columns(self, project_id: int) -> list[RawColumn]:
        return json_adapter.parse_columns(self._project_section("columns", project_id))

    def fetch_swimlanes(self, project_id: int) -> list[RawSwimlane]:
        return json_adapter.parse_swimlanes(self._project_section("swimlanes", project_id))

    def fetch_project_users(self, project_id: int) -> list[BoardUser]:
        return json_adapter.parse_project_users(self._project_section("users", project_id))
