from datetime import datetime, timedelta, timezone

from kanboard_analytics.adapters.snapshot_source import SnapshotSource
from kanboard_analytics.collector import TaskCollector
from kanboard_analytics.config import AnalyticsConfig
from kanboard_analytics.priorities import (
    PriorityAnalyzer,
    PriorityRequest,
    find_bottlenecks,
    find_urgent_items,
    generate_recommendations,
)
from kanboard_analytics.schema import ProjectInfo, TaskDates, TaskDetail, TaskStatus, TimeTracking, UserInfo
from kanboard_analytics.timeutils import due_date_info

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
ALICE = UserInfo(id="7", username="alice", name="Alice Doe")
BOB = UserInfo(id="8", username="bob", name="Bob")
CAROL = UserInfo(id="9", username="carol", name="Carol")


def make_task(task_id, column="Backlog", assignee=ALICE, due_days=None, modified_days=-1, priority="normal", estimated=0.0):
    due = NOW + timedelta(days=due_days) if due_days is not None else None
    is_overdue, days_until_due = due_date_info(due, NOW)
    return TaskDetail(
        id=task_id,
        title=f"Task {task_id}",
        project=ProjectInfo(id="1", name="Website"),
        status=TaskStatus(column=column),
        dates=TaskDates(created=NOW - timedelta(days=30), due=due, modified=NOW + timedelta(days=modified_days)),
        assignee=assignee,
        time_tracking=TimeTracking(estimated_hours=estimated, spent_hours=0.0),
        priority=priority,
        is_overdue=is_overdue,
        days_until_due=days_until_due,
    )


def make_analyzer(snapshot=None, config=None):
    collector = TaskCollector(SnapshotSource(snapshot or {}), config or AnalyticsConfig())
    return PriorityAnalyzer(collector)


def team_tasks():
    return [
        make_task("1", column="In progress", due_days=-10, priority="urgent", estimated=30.0),
        make_task("2", column="In progress", estimated=20.0),
        make_task("3", assignee=BOB, estimated=10.0),
        make_task("4", assignee=CAROL, estimated=30.0),
        make_task("5", column="Review", assignee=None, modified_days=-4),
        make_task("6", column="Review", assignee=None, modified_days=-4),
        make_task("7", column="Review", assignee=None, modified_days=-4),
    ]


def test_bottleneck_detection():
    tasks = [
        make_task("r1", column="Review", modified_days=-4),
        make_task("r2", column="Review", modified_days=-4),
        make_task("r3", column="Review", modified_days=-4),
        make_task("q1", column="QA", modified_days=-10),
        make_task("q2", column="QA", modified_days=-10),
        make_task("t1", column="Testing", modified_days=-2.5),
        make_task("t2", column="Testing", modified_days=-2.5),
        make_task("t3", column="Testing", modified_days=-2.5),
        make_task("b1", column="Backlog", modified_days=-10),
        make_task("b2", column="Backlog", modified_days=-10),
        make_task("b3", column="Backlog", modified_days=-1),
    ]
    bottlenecks = find_bottlenecks(tasks, NOW)

    assert len(bottlenecks) == 1
    review = bottlenecks[0]
    assert (review.project, review.column) == ("Website", "Review")
    assert review.stuck_tasks == 3
    assert review.avg_wait_time_days == 4.0
    assert review.task_ids == ["r1", "r2", "r3"]


def test_urgent_items_are_capped_and_ranked():
    tasks = [make_task(str(days), due_days=-days) for days in range(1, 16)]
    tasks.append(make_task("later", due_days=10))
    items = find_urgent_items(tasks, "week", NOW)

    assert len(items) == 10
    scores = [item.urgency_score for item in items]
    assert scores == sorted(scores, reverse=True)
    assert all(score >= 70 for score in scores)
    assert "later" not in [item.task_id for item in items]
    assert items[0].days_overdue > 7
    assert items[0].to_dict()["reason"].startswith("Overdue by")


def test_recommendations():
    analyzer = make_analyzer()
    analysis = analyzer.analyse_tasks(team_tasks(), "7", "week", NOW)

    assert analysis.requesting_user.status == "severely_overloaded"
    recommendations = generate_recommendations(analysis)
    assert [item.type for item in recommendations] == ["priority", "workload", "delegation", "process"]
    assert [item.confidence for item in recommendations] == [0.92, 0.85, 0.78, 0.85]

    priority, workload, delegation, process = recommendations
    assert priority.task_ids == ["1"]
    assert priority.message.startswith("Focus on 'Task 1' first")
    assert "125%" in workload.message
    assert delegation.suggested_assignee == "8"
    assert delegation.message == "Consider redistributing tasks from Alice Doe (125%) to Bob (25%)"
    assert process.affected_tasks == ["5", "6", "7"]


def test_no_delegation_without_spare_capacity():
    tasks = [make_task("1", estimated=60.0), make_task("2", assignee=BOB, estimated=45.0)]
    analysis = make_analyzer().analyse_tasks(tasks, "8", "week", NOW)
    types = [item.type for item in generate_recommendations(analysis)]
    assert "delegation" not in types
    assert "workload" in types


def sample_snapshot():
    def ts(days):
        return int((NOW + timedelta(days=days)).timestamp())

    return {
        "me": {"id": "7", "username": "alice", "name": "Alice Doe"},
        "projects": [{"id": "1", "name": "Website"}],
        "tasks": {
            "1": [
                {"id": "1", "title": "Fix login", "project_id": "1", "column_id": "2", "owner_id": "7",
                 "date_due": ts(-3), "date_modification": ts(-1), "priority": 3, "time_estimated": 30},
                {"id": "2", "title": "Docs", "project_id": "1", "column_id": "1", "owner_id": "8",
                 "date_modification": ts(-1), "time_estimated": 8},
            ]
        },
        "columns": {"1": [{"id": "1", "title": "Backlog"}, {"id": "2", "title": "In progress"}]},
        "users": {"1": [{"id": "7", "username": "alice", "name": "Alice Doe"}, {"id": "8", "username": "bob", "name": "Bob"}]},
    }


def test_analyse_defaults_to_current_user():
    response = make_analyzer(sample_snapshot()).analyse(PriorityRequest(), NOW)
    analysis = response["analysis"]

    assert analysis["requesting_user"]["username"] == "alice"
    assert [item["task_id"] for item in analysis["urgent_items"]] == ["1"]
    assert analysis["urgent_items"][0]["days_overdue"] == 3
    assert [item["username"] for item in analysis["team_workloads"]] == ["alice", "bob"]
    assert response["recommendations"][0]["type"] == "priority"


def test_analyse_for_named_user_without_recommendations():
    request = PriorityRequest.from_params({"user_id": 8, "include_recommendations": "false"})
    response = make_analyzer(sample_snapshot()).analyse(request, NOW)
    assert response["analysis"]["requesting_user"]["name"] == "Bob"
    assert "recommendations" not in response


def test_request_from_params():
    request = PriorityRequest.from_params({"project_ids": "1,2", "time_horizon": "month"})
    assert request.user_id is None
    assert request.project_ids == ("1", "2")
    assert request.time_horizon == "month"
    assert request.include_recommendations
