"""UTC clock and timestamp helpers shared by the analyzers."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DATE_FORMAT = "%Y-%m-%d"
SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_unix(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug("Ignoring out-of-range unix timestamp %r", value)
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an upstream timestamp into an aware UTC datetime.

    Accepts unix seconds (int, float or digit string), RFC 3339 strings and
    plain ``YYYY-MM-DD`` dates. ``None``, ``0``, ``""`` and ``"0"`` mean absent.
    Anything unparseable is treated as absent as well.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        if value == 0:
            return None
        return _from_unix(value)

    text = str(value).strip()
    if text in ("", "0"):
        return None
    if text.lstrip("-").isdigit():
        return _from_unix(text)

    try:
        return ensure_utc(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        logger.debug("Ignoring unparseable timestamp %r", text)
        return None


def parse_date(value: str) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` request bound; returns None when malformed."""

    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except (AttributeError, ValueError):
        return None


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def days_between(start: datetime, end: datetime) -> float:
    """Signed fractional days from ``start`` to ``end``."""

    return (end - start).total_seconds() / SECONDS_PER_DAY


def due_date_info(due: Optional[datetime], now: datetime) -> tuple[bool, Optional[int]]:
    """Return ``(is_overdue, days_until_due)`` for a due date.

    ``days_until_due`` is floored so that any overdue task reports a negative
    count and any task not yet due reports zero or more.
    """

    if due is None:
        return False, None
    is_overdue = due < now
    return is_overdue, math.floor(days_between(now, due))

