"""Streamlit dashboard for kanboard-analytics."""

from __future__ import annotations

import json
from datetime import datetime, time, timezone
from pathlib import Path
from typing import Any

from kanboard_analytics.adapters.snapshot_source import SnapshotSource
from kanboard_analytics.collector import TaskCollector, TaskQuery
from kanboard_analytics.config import AnalyticsConfig
from kanboard_analytics.priorities import PriorityAnalyzer, PriorityRequest
from kanboard_analytics.source import UpstreamError
from kanboard_analytics.trends import DEFAULT_ANALYSIS_TYPES, RESPONSE_KEYS, TIME_RANGES, TrendAnalyzer, TrendRequest
from kanboard_analytics.urgency import TIME_HORIZONS

DEMO_SNAPSHOT = "examples/sample_snapshot.json"


def _load_uploaded(uploaded_file) -> SnapshotSource:
    return SnapshotSource(json.loads(uploaded_file.getvalue().decode("utf-8")))


def _fmt_days(value: float) -> str:
    return f"{value:.1f} d"


def run_dashboard(source: SnapshotSource, options: dict[str, Any]) -> dict[str, Any]:
    """Run all three analyses and return a UI-friendly result payload."""

    collector = TaskCollector(source, AnalyticsConfig.from_env())
    now = options["now"]
    project_ids = tuple(options["project_ids"])

    listing = collector.list_tasks(
        TaskQuery(
            project_ids=project_ids,
            status_filter=options["status_filter"],
            include_overdue=True,
            sort_by=options["sort_by"],
            limit=options["limit"],
        ),
        now,
    )
    priorities = PriorityAnalyzer(collector).analyse(
        PriorityRequest(project_ids=project_ids, time_horizon=options["time_horizon"]), now
    )
    trends = TrendAnalyzer(collector).analyse(
        TrendRequest(
            project_ids=project_ids,
            time_range=options["time_range"],
            analysis_types=tuple(options["analysis_types"]),
        ),
        now,
    )
    return {"listing": listing, "priorities": priorities, "trends": trends}


def main() -> None:
    import streamlit as st

    st.set_page_config(page_title="Kanboard Analytics", layout="wide")
    st.title("Kanboard Analytics Dashboard")

    with st.sidebar:
        st.header("Controls")
        uploaded = st.file_uploader("Upload board snapshot", type=["json"])
        use_demo = st.checkbox("Load demo snapshot", value=True)
        as_of = st.date_input("Evaluate as of", value=datetime(2025, 6, 2).date())
        project_filter = st.text_input("Project IDs (comma-separated)", value="")
        status_filter = st.selectbox("Listing status", options=["active", "completed", "all"], index=0)
        sort_by = st.selectbox("Sort by", options=["due_date", "priority", "created"], index=0)
        limit = st.number_input("Listing limit", min_value=1, max_value=200, value=20, step=1)
        time_horizon = st.selectbox("Time horizon", options=list(TIME_HORIZONS), index=1)
        time_range = st.selectbox("Trend range", options=list(TIME_RANGES), index=2)
        analysis_types = st.multiselect(
            "Trend analyses", options=list(RESPONSE_KEYS), default=list(DEFAULT_ANALYSIS_TYPES)
        )
        run = st.button("Run analytics", type="primary")

    if not run:
        st.info("Configure inputs in the sidebar and click **Run analytics**.")
        return

    try:
        if uploaded is not None and not use_demo:
            source = _load_uploaded(uploaded)
            data_source = f"uploaded file ({uploaded.name})"
        elif use_demo:
            source = SnapshotSource.from_file(str(Path(DEMO_SNAPSHOT)))
            data_source = f"demo snapshot ({DEMO_SNAPSHOT})"
        else:
            st.error("Please upload a snapshot or enable 'Load demo snapshot'.")
            return

        options = {
            "now": datetime.combine(as_of, time(12, 0), tzinfo=timezone.utc),
            "project_ids": [part.strip() for part in project_filter.split(",") if part.strip()],
            "status_filter": status_filter,
            "sort_by": sort_by,
            "limit": int(limit),
            "time_horizon": time_horizon,
            "time_range": time_range,
            "analysis_types": analysis_types,
        }
        result = run_dashboard(source, options)

        st.success(f"Loaded board data from {data_source}.")

        st.subheader("A) Task Listing")
        summary = result["listing"]["summary"]
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Tasks", summary["total_tasks"])
        c2.metric("Overdue", summary["overdue_tasks"])
        c3.metric("Due this week", summary["due_this_week"])
        c4.metric("Unassigned", summary["unassigned_tasks"])
        rows = [
            {
                "id": item["id"],
                "title": item["title"],
                "project": item["project"]["name"],
                "column": item["status"],
                "assignee": item.get("assignee", {}).get("name", ""),
                "due": item.get("due_date", ""),
                "days_until_due": item.get("days_until_due"),
            }
            for item in result["listing"]["task_summaries"]
        ]
        if rows:
            st.table(rows)
        else:
            st.write("No tasks match the filters.")

        st.subheader("B) Priorities")
        analysis = result["priorities"]["analysis"]
        requesting = analysis.get("requesting_user")
        if requesting:
            st.write(f"**{requesting['name']}**: {requesting['capacity_utilization']} ({requesting['status']})")
        w1, w2 = st.columns(2)
        w1.write("**Team workloads**")
        w1.table(analysis["team_workloads"])
        w2.write("**Urgent items**")
        w2.table(analysis["urgent_items"])
        if analysis["bottlenecks"]:
            st.write("**Bottlenecks**")
            st.table(
                [
                    {**item, "avg_wait_time_days": _fmt_days(item["avg_wait_time_days"]), "task_ids": ", ".join(item["task_ids"])}
                    for item in analysis["bottlenecks"]
                ]
            )
        for recommendation in result["priorities"].get("recommendations", []):
            st.write(f"- ({recommendation['confidence']:.0%}) {recommendation['message']}")

        st.subheader("C) Trends")
        trend_summary = result["trends"]["summary"]
        t1, t2, t3, t4 = st.columns(4)
        t1.metric("Tasks in window", trend_summary["total_tasks"])
        t2.metric("Completed", trend_summary["completed_tasks"])
        t3.metric("Avg cycle time", _fmt_days(trend_summary["avg_cycle_time"]))
        t4.metric("Trend", trend_summary["productivity_trend"])
        for insight in trend_summary["key_insights"]:
            st.write(f"- {insight}")

        burndown = result["trends"].get("burndown_chart")
        if burndown:
            st.write("**Burndown**")
            st.line_chart(
                {
                    "remaining": [point["remaining_tasks"] for point in burndown],
                    "ideal": [point["ideal_remaining"] for point in burndown],
                    "trend": [point["trend_projection"] for point in burndown],
                }
            )
        for kind in analysis_types:
            key = RESPONSE_KEYS[kind]
            if key != "burndown_chart" and result["trends"].get(key):
                st.write(f"**{key.replace('_', ' ').capitalize()}**")
                st.table(result["trends"][key])

    except (ValueError, UpstreamError) as exc:
        st.error(f"Input error: {exc}")
    except Exception:
        st.error("Something went wrong while running the analytics. Please verify the snapshot format.")


if __name__ == "__main__":
    main()
