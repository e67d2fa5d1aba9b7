"""Demo script for kanboard-analytics."""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from kanboard_analytics.adapters.snapshot_source import SnapshotSource
from kanboard_analytics.collector import TaskCollector, TaskQuery
from kanboard_analytics.overview import BoardOverview, OverviewRequest
from kanboard_analytics.priorities import PriorityAnalyzer, PriorityRequest
from kanboard_analytics.timeutils import parse_timestamp
from kanboard_analytics.trends import TrendAnalyzer, TrendRequest

SNAPSHOT = Path(__file__).resolve().parent / "sample_snapshot.json"
NOW = parse_timestamp("2025-06-02T12:00:00Z")


def main() -> None:
    collector = TaskCollector(SnapshotSource.from_file(str(SNAPSHOT)))

    overview = BoardOverview(collector).build(OverviewRequest())
    listing = collector.list_tasks(TaskQuery(include_overdue=True, limit=5), NOW)
    priorities = PriorityAnalyzer(collector).analyse(PriorityRequest(), NOW)
    trends = TrendAnalyzer(collector).analyse(
        TrendRequest(analysis_types=("completion_trends", "cycle_time", "burndown", "project_health")), NOW
    )

    print("Board overview:", overview["summary"])
    print("Listing summary:", listing["summary"])
    print("Recommendations:", json.dumps(priorities["recommendations"], indent=2))
    print("Trend summary:", json.dumps(trends["summary"], indent=2))


if __name__ == "__main__":
    main()
