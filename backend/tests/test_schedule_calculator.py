"""
定时报表发送时间计算 单元测试
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.schemas.scheduled_report import ScheduleSpec
from app.services.schedule_calculator import compute_next, to_naive_utc


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestWeekly:

    def test_past_time_today_rolls_to_next_week(self):
        # 2026-03-16 is a Monday
        schedule = ScheduleSpec(frequency="weekly", day_of_week=1, time="09:00")
        assert compute_next(schedule, utc(2026, 3, 16, 10, 0)) == utc(2026, 3, 23, 9, 0)

    def test_later_today_stays_today(self):
        schedule = ScheduleSpec(frequency="weekly", day_of_week=1, time="09:00")
        assert compute_next(schedule, utc(2026, 3, 16, 8, 0)) == utc(2026, 3, 16, 9, 0)

    def test_sunday_is_day_zero(self):
        schedule = ScheduleSpec(frequency="weekly", day_of_week=0, time="18:30")
        assert compute_next(schedule, utc(2026, 3, 18, 12, 0)) == utc(2026, 3, 22, 18, 30)


class TestMonthly:

    def test_day_31_clamps_to_end_of_february(self):
        schedule = ScheduleSpec(frequency="monthly", day_of_month=31, time="09:00")
        assert compute_next(schedule, utc(2026, 1, 15, 12, 0)) == utc(2026, 2, 28, 9, 0)

    def test_day_31_clamps_to_leap_day(self):
        schedule = ScheduleSpec(frequency="monthly", day_of_month=31, time="09:00")
        assert compute_next(schedule, utc(2028, 1, 15, 12, 0)) == utc(2028, 2, 29, 9, 0)

    def test_day_31_in_thirty_day_month(self):
        schedule = ScheduleSpec(frequency="monthly", day_of_month=31, time="09:00")
        assert compute_next(schedule, utc(2026, 3, 10, 12, 0)) == utc(2026, 4, 30, 9, 0)
        assert compute_next(schedule, utc(2026, 4, 30, 12, 0)) == utc(2026, 5, 31, 9, 0)

    def test_quarterly_advances_three_months(self):
        schedule = ScheduleSpec(frequency="quarterly", day_of_month=15, time="07:45")
        assert compute_next(schedule, utc(2026, 1, 20, 12, 0)) == utc(2026, 4, 15, 7, 45)
        assert compute_next(schedule, utc(2026, 11, 2, 0, 0)) == utc(2027, 2, 15, 7, 45)


class TestDaily:

    def test_before_and_after_time(self):
        schedule = ScheduleSpec(frequency="daily", time="09:00")
        assert compute_next(schedule, utc(2026, 3, 16, 8, 0)) == utc(2026, 3, 16, 9, 0)
        assert compute_next(schedule, utc(2026, 3, 16, 9, 0)) == utc(2026, 3, 17, 9, 0)

    def test_wall_clock_time_kept_across_dst(self):
        schedule = ScheduleSpec(frequency="daily", time="09:00", timezone="America/New_York")
        # 10:00 EST on the day before the switch to EDT
        assert compute_next(schedule, utc(2026, 3, 7, 15, 0)) == utc(2026, 3, 8, 13, 0)
        # 08:00 EST -> 09:00 EST the same day
        assert compute_next(schedule, utc(2026, 3, 7, 13, 0)) == utc(2026, 3, 7, 14, 0)


def test_dict_schedule_and_naive_instant():
    schedule = {"frequency": "daily", "time": "06:00", "timezone": "UTC"}
    result = compute_next(schedule, datetime(2026, 3, 16, 7, 0))
    assert result == utc(2026, 3, 17, 6, 0)
    assert to_naive_utc(result) == datetime(2026, 3, 17, 6, 0)


class TestScheduleValidation:

    def test_weekly_requires_day_of_week(self):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="weekly", time="09:00")

    def test_day_of_week_only_for_weekly(self):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="daily", day_of_week=2, time="09:00")

    def test_monthly_requires_day_of_month(self):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="quarterly", time="09:00")

    def test_day_of_month_only_for_monthly_or_quarterly(self):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="weekly", day_of_week=1, day_of_month=3, time="09:00")

    @pytest.mark.parametrize("value", ["24:00", "9:00", "09:60", "nine"])
    def test_bad_time(self, value):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="daily", time=value)

    def test_bad_timezone(self):
        with pytest.raises(ValidationError):
            ScheduleSpec(frequency="daily", time="09:00", timezone="Mars/Olympus")
