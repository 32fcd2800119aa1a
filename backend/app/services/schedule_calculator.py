"""
定时报表发送时间计算

All arithmetic happens on the local calendar of the schedule's timezone and
the result is converted back to UTC, so "09:00 daily" stays 09:00 local
across DST changes.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from app.schemas.scheduled_report import ScheduleSpec

# Month step per frequency
MONTH_STEPS = {
    "monthly": 1,
    "quarterly": 3,
}


def _as_schedule(schedule: Union[ScheduleSpec, dict]) -> ScheduleSpec:
    if isinstance(schedule, ScheduleSpec):
        return schedule
    return ScheduleSpec.model_validate(schedule)


def _as_aware_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _at_time(day: date, schedule: ScheduleSpec, tz: ZoneInfo) -> datetime:
    return datetime(day.year, day.month, day.day, schedule.hour, schedule.minute, tzinfo=tz)


def compute_next(schedule: Union[ScheduleSpec, dict], from_instant: datetime) -> datetime:
    """
    计算下一次发送时间

    Args:
        schedule: 发送计划 (ScheduleSpec 或其 dict 形式)
        from_instant: 起算时刻 (naive 视为 UTC)

    Returns:
        下一次发送时间 (aware UTC)
    """
    schedule = _as_schedule(schedule)
    tz = ZoneInfo(schedule.timezone)
    now = _as_aware_utc(from_instant)
    local_today = now.astimezone(tz).date()

    if schedule.frequency == "daily":
        candidate = _at_time(local_today, schedule, tz)
        if candidate <= now:
            candidate = _at_time(local_today + timedelta(days=1), schedule, tz)

    elif schedule.frequency == "weekly":
        # day_of_week counts from Sunday=0, date.weekday() from Monday=0
        target_weekday = (schedule.day_of_week - 1) % 7
        days_ahead = (target_weekday - local_today.weekday()) % 7
        candidate = _at_time(local_today + timedelta(days=days_ahead), schedule, tz)
        if candidate <= now:
            candidate = _at_time(local_today + timedelta(days=days_ahead + 7), schedule, tz)

    else:
        # relativedelta(day=N) clamps to the last day of shorter months
        target_day = local_today + relativedelta(months=MONTH_STEPS[schedule.frequency], day=schedule.day_of_month)
        candidate = _at_time(target_day, schedule, tz)

    return candidate.astimezone(timezone.utc)


def to_naive_utc(instant: datetime) -> datetime:
    """Storage form used by the TIMESTAMP columns"""
    return _as_aware_utc(instant).replace(tzinfo=None)
