from datetime import date, datetime, timedelta, timezone

from kanboard_analytics.timeutils import (
    days_between,
    due_date_info,
    format_timestamp,
    parse_date,
    parse_timestamp,
)

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


def test_parse_timestamp_formats():
    assert parse_timestamp(1748865600) == NOW
    assert parse_timestamp("1748865600") == NOW
    assert parse_timestamp("2025-06-02T12:00:00Z") == NOW
    assert parse_timestamp("2025-06-02T14:00:00+02:00") == NOW
    assert parse_timestamp("2025-06-02") == datetime(2025, 6, 2, tzinfo=timezone.utc)


def test_parse_timestamp_absent_values():
    for value in (None, 0, "", "0", "not a date"):
        assert parse_timestamp(value) is None


def test_parse_timestamp_out_of_range_unix_is_absent():
    assert parse_timestamp(99999999999999) is None
    assert parse_timestamp("99999999999999") is None
    assert parse_timestamp(float("inf")) is None


def test_format_timestamp():
    assert format_timestamp(NOW) == "2025-06-02T12:00:00Z"
    assert format_timestamp(None) == ""


def test_parse_date():
    assert parse_date("2025-06-02") == date(2025, 6, 2)
    assert parse_date("06/02/2025") is None


def test_due_date_info_sign_matches_overdue():
    assert due_date_info(None, NOW) == (False, None)
    assert due_date_info(NOW + timedelta(days=3, hours=2), NOW) == (False, 3)
    assert due_date_info(NOW + timedelta(hours=5), NOW) == (False, 0)
    assert due_date_info(NOW - timedelta(hours=5), NOW) == (True, -1)
    assert due_date_info(NOW - timedelta(days=4), NOW) == (True, -4)


def test_days_between_is_fractional():
    assert days_between(NOW, NOW + timedelta(hours=36)) == 1.5
    assert days_between(NOW, NOW - timedelta(days=2)) == -2.0
