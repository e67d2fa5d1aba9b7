import json
from datetime import datetime, timedelta, timezone

import pytest

from kanboard_analytics.adapters.json_adapter import task_from_payload
from kanboard_analytics.adapters.snapshot_source import SnapshotSource
from kanboard_analytics.collector import (
    TaskCollector,
    TaskQuery,
    apply_response_size_limit,
    effective_limit,
    filter_tasks,
    sort_tasks,
)
from kanboard_analytics.config import AnalyticsConfig
from kanboard_analytics.source import UpstreamError

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


def ts(days):
    return int((NOW + timedelta(days=days)).timestamp())


def task(task_id, title, project_id, column_id, owner_id, due_days, priority, created_days, **extra):
    item = {
        "id": str(task_id),
        "title": title,
        "project_id": str(project_id),
        "column_id": str(column_id),
        "swimlane_id": "1",
        "owner_id": str(owner_id),
        "date_creation": ts(created_days),
        "date_modification": ts(created_days),
        "date_due": ts(due_days) if due_days is not None else 0,
        "priority": priority,
    }
    item.update(extra)
    return item


def sample_snapshot():
    return {
        "base_url": "https://kanboard.example.com/",
        "me": {"id": "7", "username": "alice", "name": "Alice Doe"},
        "projects": [{"id": "1", "name": "Website"}, {"id": "2", "name": "Mobile"}],
        "tasks": {
            "1": [
                task(101, "Fix login", 1, 12, 7, -2, 3, -10, time_estimated=4, time_spent=2),
                task(102, "Write docs", 1, 11, 0, 3, 1, -5),
                task(103, "Ship release", 1, 13, 8, -1, 2, -20),
                task(104, "Refactor", 1, 11, 8, None, 0, -1),
            ],
            "2": [
                task(201, "App icon", 2, 21, 7, 10, 2, -3),
                task(202, "Store listing", 2, 22, 7, None, 1, -8),
            ],
        },
        "columns": {
            "1": [{"id": "11", "title": "Backlog"}, {"id": "12", "title": "In progress"}, {"id": "13", "title": "Done"}],
            "2": [{"id": "21", "title": "Todo"}, {"id": "22", "title": "done"}],
        },
        "swimlanes": {"1": [{"id": "1", "name": "Default swimlane"}], "2": [{"id": "1", "name": "Default swimlane"}]},
        "users": {
            "1": [{"id": "7", "username": "alice", "name": "Alice Doe"}, {"id": "8", "username": "bob", "name": "Bob"}],
            "2": {"7": "alice"},
        },
    }


def make_collector(config=None, snapshot=None):
    return TaskCollector(SnapshotSource(snapshot or sample_snapshot()), config or AnalyticsConfig())


def ids(tasks):
    return [item.id for item in tasks]


def test_default_query_lists_active_tasks_by_due_date():
    tasks = make_collector().collect(TaskQuery(), NOW)
    assert ids(tasks) == ["102", "201", "104"]


def test_include_overdue():
    tasks = make_collector().collect(TaskQuery(include_overdue=True), NOW)
    assert ids(tasks) == ["101", "102", "201", "104"]


def test_completed_filter_matches_columns_case_insensitively():
    collector = make_collector()
    assert ids(collector.collect(TaskQuery(status_filter="completed"), NOW)) == ["202"]
    assert ids(collector.collect(TaskQuery(status_filter="completed", include_overdue=True), NOW)) == ["103", "202"]


def test_assignee_and_project_filters():
    collector = make_collector()
    query = TaskQuery(status_filter="all", include_overdue=True, assignee_ids=("8",))
    assert ids(collector.collect(query, NOW)) == ["103", "104"]

    query = TaskQuery(status_filter="all", project_ids=("2",))
    assert ids(collector.collect(query, NOW)) == ["201", "202"]


def test_due_date_range_is_inclusive_by_day():
    query = TaskQuery.from_params(
        {"include_overdue": True, "due_date_range": {"start": "2025-06-02", "end": "2025-06-05"}}
    )
    assert ids(make_collector().collect(query, NOW)) == ["102"]

    query = TaskQuery.from_params({"include_overdue": True, "due_date_start": "not-a-date"})
    assert make_collector().collect(query, NOW) == []


def test_priority_sort_is_stable():
    query = TaskQuery(status_filter="all", include_overdue=True, sort_by="priority")
    assert ids(make_collector().collect(query, NOW)) == ["101", "103", "201", "102", "202", "104"]


def test_created_sort_newest_first():
    query = TaskQuery(status_filter="all", include_overdue=True, sort_by="created")
    assert ids(make_collector().collect(query, NOW)) == ["104", "201", "102", "202", "101", "103"]


def test_task_detail_normalization():
    tasks = make_collector().collect(TaskQuery(status_filter="all", include_overdue=True), NOW)
    by_id = {item.id: item for item in tasks}

    login = by_id["101"]
    assert login.project.name == "Website"
    assert login.status.column == "In progress"
    assert login.status.swimlane == "Default swimlane"
    assert login.assignee.name == "Alice Doe"
    assert login.priority == "urgent"
    assert login.is_overdue
    assert login.days_until_due == -2
    assert login.time_tracking.remaining_hours == 2.0
    assert login.url == (
        "https://kanboard.example.com/?controller=TaskViewController&action=show&task_id=101&project_id=1"
    )

    assert by_id["102"].assignee is None
    assert by_id["104"].days_until_due is None
    assert by_id["201"].assignee.username == "alice"


def test_summary_mode_listing():
    listing = make_collector().list_tasks(
        TaskQuery(status_filter="all", include_overdue=True, limit=2), NOW
    )
    assert listing["summary"] == {"total_tasks": 6, "overdue_tasks": 2, "due_this_week": 1, "unassigned_tasks": 1}
    assert [item["id"] for item in listing["task_summaries"]] == ["101", "103"]
    assert listing["task_summaries"][0]["assignee"]["id"] == "7"
    assert "tasks" not in listing


def test_summary_mode_never_exceeds_ceiling():
    config = AnalyticsConfig(summary_tasks_hard_limit=3)
    listing = make_collector(config).list_tasks(TaskQuery(status_filter="all", include_overdue=True, limit=50), NOW)
    assert len(listing["task_summaries"]) == 3
    assert listing["summary"]["total_tasks"] == 6


def test_effective_limit():
    config = AnalyticsConfig()
    assert effective_limit(TaskQuery(limit=None), config) is None
    assert effective_limit(TaskQuery(limit=0), config) == 20
    assert effective_limit(TaskQuery(limit=500), config) == 200
    assert effective_limit(TaskQuery(limit=500, summary_mode=False), config) == 100


def test_detail_mode_truncates_to_size():
    config = AnalyticsConfig(max_response_bytes=1500)
    query = TaskQuery(status_filter="all", include_overdue=True, summary_mode=False, limit=10)
    listing = make_collector(config).list_tasks(query, NOW)

    assert listing["truncated"] is True
    assert 0 < listing["truncated_at"] < 6
    assert len(listing["tasks"]) == listing["truncated_at"]
    assert listing["summary"]["total_tasks"] == 6
    assert listing["response_size_bytes"] <= 1500


def test_truncated_listing_size_counts_the_whole_response():
    snapshot = sample_snapshot()
    snapshot["tasks"]["1"] = [
        task(300 + n, f"Task {n}", 1, 11, 7, n, 1, -n, description="x" * 40) for n in range(10)
    ]
    query = TaskQuery(status_filter="all", include_overdue=True, summary_mode=False, limit=20)
    full = make_collector(snapshot=snapshot).list_tasks(query, NOW)
    ceiling = full["response_size_bytes"] - 100

    listing = make_collector(AnalyticsConfig(max_response_bytes=ceiling), snapshot).list_tasks(query, NOW)
    assert listing["truncated"] is True
    assert listing["summary"]["total_tasks"] == 12
    assert listing["response_size_bytes"] <= ceiling
    assert listing["response_size_bytes"] == len(json.dumps(listing, separators=(",", ":")).encode("utf-8"))


def test_detail_mode_within_size():
    query = TaskQuery(status_filter="all", include_overdue=True, summary_mode=False)
    listing = make_collector().list_tasks(query, NOW)
    assert listing["truncated"] is False
    assert listing["truncated_at"] == 0
    assert len(listing["tasks"]) == 6
    assert listing["response_size_bytes"] > 0


def test_upstream_failure_fails_whole_listing():
    snapshot = sample_snapshot()
    snapshot["fetch_errors"] = {"2": "connection reset by peer"}
    with pytest.raises(UpstreamError, match="connection reset"):
        make_collector(snapshot=snapshot).list_tasks(TaskQuery(), NOW)


def test_query_from_params():
    query = TaskQuery.from_params({"project_ids": "1, 2", "limit": "5", "summary_mode": "false"})
    assert query.project_ids == ("1", "2")
    assert query.limit == 5
    assert not query.summary_mode
    assert query.status_filter == "active"

    with pytest.raises(ValueError):
        TaskQuery.from_params({"status_filter": "archived"})
    with pytest.raises(ValueError):
        TaskQuery.from_params({"limit": "lots"})


def test_listing_is_idempotent_on_its_own_output():
    collector = make_collector()
    query = TaskQuery(status_filter="all", include_overdue=True, limit=4)
    listing = collector.list_tasks(query, NOW)

    reread = [task_from_payload(item) for item in listing["task_summaries"]]
    again = sort_tasks(filter_tasks(reread, query, collector.config.listing_completion), query.sort_by)
    assert ids(again) == [item["id"] for item in listing["task_summaries"]]

    detail_query = TaskQuery(status_filter="all", include_overdue=True, summary_mode=False)
    detail = collector.list_tasks(detail_query, NOW)
    reread = [task_from_payload(item) for item in detail["tasks"]]
    kept, truncated, _ = apply_response_size_limit(
        sort_tasks(reread, detail_query.sort_by), effective_limit(detail_query, collector.config), 200 * 1024
    )
    assert ids(kept) == [item["id"] for item in detail["tasks"]]
    assert truncated is detail["truncated"]
