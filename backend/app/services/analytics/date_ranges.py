"""
Named date ranges

Resolves a range name (``last30days``, ``this_quarter`` ...) into a closed
``[start, end]`` interval of timezone-aware UTC instants. Rolling ranges end
at ``now``; calendar ranges start at the beginning of the current local
week / month / quarter / year in the configured timezone.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, NamedTuple, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta, MO

from app.core.config import settings
from app.core.exceptions import DefinitionError


class DateRange(NamedTuple):
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


# Rolling windows ending now
ROLLING_RANGES: Dict[str, timedelta] = {
    "today": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "quarter": timedelta(days=90),
    "year": timedelta(days=365),
    "last7days": timedelta(days=7),
    "last30days": timedelta(days=30),
    "last90days": timedelta(days=90),
    "lastyear": timedelta(days=365),
}

CALENDAR_RANGES = ("this_week", "this_month", "this_quarter", "this_year")


def available_ranges() -> List[str]:
    return list(ROLLING_RANGES) + list(CALENDAR_RANGES)


def get_timezone(name: Optional[Union[str, ZoneInfo]] = None) -> ZoneInfo:
    if isinstance(name, ZoneInfo):
        return name
    tz_name = name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise DefinitionError(f"Unknown timezone '{tz_name}'")


def validate_date_range(name: Optional[str]) -> None:
    if name and name not in ROLLING_RANGES and name not in CALENDAR_RANGES:
        raise DefinitionError(f"Unknown date range '{name}'")


def resolve_date_range(
    name: str,
    now: Optional[datetime] = None,
    tz: Optional[Union[str, ZoneInfo]] = None
) -> DateRange:
    """
    Resolve a named range.

    Args:
        name: range name
        now: reference instant (aware; naive values are taken as UTC)
        tz: timezone for calendar ranges, defaults to DEFAULT_TIMEZONE

    Returns:
        DateRange in UTC
    """
    validate_date_range(name)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    if name in ROLLING_RANGES:
        return DateRange(now - ROLLING_RANGES[name], now)

    local_now = now.astimezone(get_timezone(tz))
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    if name == "this_week":
        start = midnight + relativedelta(weekday=MO(-1))
    elif name == "this_month":
        start = midnight.replace(day=1)
    elif name == "this_quarter":
        first_month = 3 * ((local_now.month - 1) // 3) + 1
        start = midnight.replace(month=first_month, day=1)
    else:
        start = midnight.replace(month=1, day=1)

    # ZoneInfo resolves the offset for the start date itself (DST-safe)
    return DateRange(start.astimezone(timezone.utc), now)
