"""Runtime configuration for the analytics engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable

DEFAULT_COMPLETED_COLUMNS = ("Done", "Completed", "Closed", "Finished")

ENV_PREFIX = "KANBOARD_ANALYTICS_"


def env_str(name: str, default: str) -> str:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip()


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def env_positive_float(name: str, default: float) -> float:
    value = env_float(name, default)
    return value if value > 0 else default


def env_positive_int(name: str, default: int) -> int:
    value = env_int(name, default)
    return value if value > 0 else default


def env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return default


def env_list(name: str, default: Iterable[str]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return tuple(default)
    values = tuple(part.strip() for part in raw.split(",") if part.strip())
    return values or tuple(default)


@dataclass(frozen=True)
class CompletedColumns:
    """Decides whether a board column counts as "completed".

    The task listing has always matched column names case-insensitively while
    the trend analysis matches them exactly. Both modes are kept as separate
    instances of this predicate instead of being merged into one behavior.
    """

    names: tuple[str, ...] = DEFAULT_COMPLETED_COLUMNS
    case_sensitive: bool = False

    def matches(self, column: str) -> bool:
        if self.case_sensitive:
            return column in self.names
        folded = column.casefold()
        return any(folded == name.casefold() for name in self.names)


@dataclass(frozen=True)
class AnalyticsConfig:
    """Thresholds, capacities and limits used across the analyzers.

    Env vars (all prefixed with ``KANBOARD_ANALYTICS_``):
    - BASE_URL: board URL used to build task links
    - WEEKLY_CAPACITY_HOURS: must be positive
    - MAX_RESPONSE_BYTES / WARNING_RESPONSE_BYTES
    - MAX_TASKS / MAX_SUMMARY_TASKS / DEFAULT_LIMIT
    - URGENCY_THRESHOLD / MAX_URGENT_ITEMS
    - BOTTLENECK_MIN_TASKS / BOTTLENECK_STALL_DAYS / BOTTLENECK_MIN_AVG_WAIT_DAYS
    - MAX_FETCH_WORKERS: must be positive
    - COMPLETED_COLUMNS: comma-separated column names
    - TREND_CASE_SENSITIVE: exact column matching for trend analysis
    """

    base_url: str = ""
    weekly_capacity_hours: float = 40.0
    max_response_bytes: int = 200 * 1024
    warning_response_bytes: int = 150 * 1024
    max_tasks_hard_limit: int = 100
    summary_tasks_hard_limit: int = 200
    default_limit: int = 20
    urgency_threshold: int = 70
    max_urgent_items: int = 10
    bottleneck_min_tasks: int = 3
    bottleneck_stall_days: float = 2.0
    bottleneck_min_avg_wait_days: float = 3.0
    max_fetch_workers: int = 8
    listing_completion: CompletedColumns = field(default_factory=CompletedColumns)
    trend_completion: CompletedColumns = field(
        default_factory=lambda: CompletedColumns(case_sensitive=True)
    )

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        defaults = cls()
        columns = env_list(f"{ENV_PREFIX}COMPLETED_COLUMNS", DEFAULT_COMPLETED_COLUMNS)
        return cls(
            base_url=env_str(f"{ENV_PREFIX}BASE_URL", defaults.base_url),
            weekly_capacity_hours=env_positive_float(
                f"{ENV_PREFIX}WEEKLY_CAPACITY_HOURS", defaults.weekly_capacity_hours
            ),
            max_response_bytes=env_int(f"{ENV_PREFIX}MAX_RESPONSE_BYTES", defaults.max_response_bytes),
            warning_response_bytes=env_int(
                f"{ENV_PREFIX}WARNING_RESPONSE_BYTES", defaults.warning_response_bytes
            ),
            max_tasks_hard_limit=env_int(f"{ENV_PREFIX}MAX_TASKS", defaults.max_tasks_hard_limit),
            summary_tasks_hard_limit=env_int(
                f"{ENV_PREFIX}MAX_SUMMARY_TASKS", defaults.summary_tasks_hard_limit
            ),
            default_limit=env_int(f"{ENV_PREFIX}DEFAULT_LIMIT", defaults.default_limit),
            urgency_threshold=env_int(f"{ENV_PREFIX}URGENCY_THRESHOLD", defaults.urgency_threshold),
            max_urgent_items=env_int(f"{ENV_PREFIX}MAX_URGENT_ITEMS", defaults.max_urgent_items),
            bottleneck_min_tasks=env_int(f"{ENV_PREFIX}BOTTLENECK_MIN_TASKS", defaults.bottleneck_min_tasks),
            bottleneck_stall_days=env_float(
                f"{ENV_PREFIX}BOTTLENECK_STALL_DAYS", defaults.bottleneck_stall_days
            ),
            bottleneck_min_avg_wait_days=env_float(
                f"{ENV_PREFIX}BOTTLENECK_MIN_AVG_WAIT_DAYS", defaults.bottleneck_min_avg_wait_days
            ),
            max_fetch_workers=env_positive_int(f"{ENV_PREFIX}MAX_FETCH_WORKERS", defaults.max_fetch_workers),
            listing_completion=CompletedColumns(names=columns, case_sensitive=False),
            trend_completion=CompletedColumns(
                names=columns,
                case_sensitive=env_bool(f"{ENV_PREFIX}TREND_CASE_SENSITIVE", True),
            ),
        )
