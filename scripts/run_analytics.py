"""Run a task listing, priority, trend or overview analysis against a board snapshot."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from kanboard_analytics.adapters.snapshot_source import SnapshotSource
from kanboard_analytics.collector import TaskCollector, TaskQuery
from kanboard_analytics.config import AnalyticsConfig
from kanboard_analytics.overview import BoardOverview, OverviewRequest
from kanboard_analytics.priorities import PriorityAnalyzer, PriorityRequest
from kanboard_analytics.source import UpstreamError
from kanboard_analytics.timeutils import parse_timestamp
from kanboard_analytics.trends import TrendAnalyzer, TrendRequest

logger = logging.getLogger("run_analytics")

ANALYSES = ("tasks", "priorities", "trends", "overview")


def _load_params(raw: str | None) -> dict:
    if not raw:
        return {}
    if raw.startswith("@"):
        raw = Path(raw[1:]).read_text(encoding="utf-8")
    params = json.loads(raw)
    if not isinstance(params, dict):
        raise ValueError("--params must be a JSON object")
    return params


def run(analysis: str, collector: TaskCollector, params: dict, now=None) -> dict:
    if analysis == "tasks":
        return collector.list_tasks(TaskQuery.from_params(params), now)
    if analysis == "priorities":
        return PriorityAnalyzer(collector).analyse(PriorityRequest.from_params(params), now)
    if analysis == "trends":
        return TrendAnalyzer(collector).analyse(TrendRequest.from_params(params), now)
    if analysis == "overview":
        return BoardOverview(collector).build(OverviewRequest.from_params(params))
    raise ValueError(f"Unknown analysis '{analysis}', expected one of {list(ANALYSES)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run kanboard-analytics against a recorded board snapshot")
    parser.add_argument("analysis", choices=ANALYSES, help="Which analysis to run")
    parser.add_argument("--snapshot", required=True, help="Path to a board snapshot JSON file")
    parser.add_argument("--params", help="Request parameters as a JSON object, or @file.json")
    parser.add_argument("--now", help="Evaluation instant (RFC 3339 or unix seconds); defaults to the current time")
    parser.add_argument("--output", help="Also write the JSON result to this path")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        now = None
        if args.now:
            now = parse_timestamp(args.now)
            if now is None:
                raise ValueError(f"invalid --now value {args.now!r}")
        source = SnapshotSource.from_file(args.snapshot)
        collector = TaskCollector(source, AnalyticsConfig.from_env())
        result = run(args.analysis, collector, _load_params(args.params), now)
    except (ValueError, UpstreamError, OSError) as exc:
        logger.error("%s analysis failed: %s", args.analysis, exc)
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    rendered = json.dumps(result, indent=2)
    print(rendered)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(rendered, encoding="utf-8")
        print(f"Saved {args.analysis} result to {out_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
