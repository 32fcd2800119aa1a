from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import DefinitionError
from app.services.analytics.date_ranges import available_ranges, resolve_date_range, validate_date_range

# Sunday
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("name,days", [
    ("today", 1),
    ("week", 7),
    ("month", 30),
    ("quarter", 90),
    ("year", 365),
    ("last7days", 7),
    ("last30days", 30),
    ("last90days", 90),
    ("lastyear", 365),
])
def test_rolling_ranges_end_now(name, days):
    date_range = resolve_date_range(name, now=NOW)
    assert date_range.end == NOW
    assert date_range.start == NOW - timedelta(days=days)


def test_calendar_ranges_in_utc():
    assert resolve_date_range("this_month", now=NOW).start == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert resolve_date_range("this_year", now=NOW).start == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert resolve_date_range("this_quarter", now=NOW).start == datetime(2026, 1, 1, tzinfo=timezone.utc)
    may = datetime(2026, 5, 20, 9, 30, tzinfo=timezone.utc)
    assert resolve_date_range("this_quarter", now=may).start == datetime(2026, 4, 1, tzinfo=timezone.utc)


def test_this_week_starts_on_monday():
    wednesday = datetime(2026, 3, 18, 15, 0, tzinfo=timezone.utc)
    assert resolve_date_range("this_week", now=wednesday).start == datetime(2026, 3, 16, tzinfo=timezone.utc)
    # On a Sunday the week began six days earlier
    assert resolve_date_range("this_week", now=NOW).start == datetime(2026, 3, 9, tzinfo=timezone.utc)


def test_calendar_range_uses_local_midnight_of_timezone():
    # New York switched to EDT on 2026-03-08; March 1st is still EST (UTC-5)
    date_range = resolve_date_range("this_month", now=NOW, tz="America/New_York")
    assert date_range.start == datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc)
    assert date_range.end == NOW


def test_naive_now_is_taken_as_utc():
    date_range = resolve_date_range("week", now=datetime(2026, 3, 15, 12, 0))
    assert date_range.end == NOW


def test_contains_is_inclusive():
    date_range = resolve_date_range("week", now=NOW)
    assert date_range.contains(NOW)
    assert date_range.contains(NOW - timedelta(days=7))
    assert not date_range.contains(NOW + timedelta(seconds=1))


def test_unknown_names_are_rejected():
    with pytest.raises(DefinitionError):
        resolve_date_range("fortnight", now=NOW)
    with pytest.raises(DefinitionError):
        validate_date_range("next_week")
    validate_date_range(None)
    assert "this_quarter" in available_ranges()
    assert "last30days" in available_ranges()
