"""Calendar-aligned time windows and paged lookback boundaries.

All functions work on UTC instants. Naive datetimes are treated as UTC and
returned naive; aware datetimes keep their tzinfo.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, NamedTuple, Optional

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
# Lookback arithmetic uses fixed-length months and years so that pages
# never overlap or leave gaps.
MONTH = 31 * DAY
YEAR = 366 * DAY

ONE_MS = timedelta(milliseconds=1)


class TimeWindow(NamedTuple):
    """An inclusive [start, end] period aligned to a grain."""
    start: datetime
    end: datetime


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching stored timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def reset_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def complete_hour(moment: datetime) -> datetime:
    return moment.replace(minute=59, second=59, microsecond=999000)


def reset_day(moment: datetime) -> datetime:
    return reset_hour(moment).replace(hour=0)


def complete_day(moment: datetime) -> datetime:
    return complete_hour(moment).replace(hour=23)


def reset_month(moment: datetime) -> datetime:
    return reset_day(moment).replace(day=1)


def complete_month(moment: datetime) -> datetime:
    """Last millisecond of the month containing ``moment``.

    Starts past the longest possible month and walks back one day at a time
    until the day exists in the month.
    """
    moment = complete_day(moment)
    day = 31
    while True:
        try:
            return moment.replace(day=day)
        except ValueError:
            day -= 1


def reset_year(moment: datetime) -> datetime:
    return reset_month(moment).replace(month=1)


def complete_year(moment: datetime) -> datetime:
    return complete_month(moment.replace(month=12, day=1))


GRAINS: Dict[str, tuple] = {
    "hour": (reset_hour, complete_hour),
    "day": (reset_day, complete_day),
    "month": (reset_month, complete_month),
    "year": (reset_year, complete_year),
}


def window(moment: datetime, grain: str) -> TimeWindow:
    """Return the grain-aligned period containing ``moment``."""
    try:
        reset, complete = GRAINS[grain]
    except KeyError:
        raise ValueError(f"Unknown grain: {grain}")
    return TimeWindow(reset(moment), complete(moment))


def next_start(moment: datetime, grain: str) -> datetime:
    """Start of the period following the one containing ``moment``."""
    return window(moment, grain).end + ONE_MS


def iter_periods(start: datetime, end: datetime, grain: str):
    """Yield the start of every grain period overlapping [start, end]."""
    current = window(start, grain).start
    while current <= end:
        yield current
        current = next_start(current, grain)


def _month_to_date(now: datetime, page: int) -> datetime:
    return reset_month(now - MONTH * (page - 1))


def _year_to_date(now: datetime, page: int) -> datetime:
    return reset_year(now - YEAR * (page - 1))


BOUNDARIES: Dict[str, Callable[[datetime, int], datetime]] = {
    "1h": lambda now, page: now - HOUR * page,
    "6h": lambda now, page: now - 6 * HOUR * page,
    "1d": lambda now, page: now - DAY * page,
    "7d": lambda now, page: now - 7 * DAY * page,
    "MTD": _month_to_date,
    "1m": lambda now, page: now - MONTH * page,
    "3m": lambda now, page: now - 3 * MONTH * page,
    "6m": lambda now, page: now - 6 * MONTH * page,
    "YTD": _year_to_date,
    "1y": lambda now, page: now - YEAR * page,
    "3y": lambda now, page: now - 3 * YEAR * page,
}


def boundary(name: str, page: int = 1, now: Optional[datetime] = None) -> datetime:
    """Lower boundary of page ``page`` (1-based) of the ``name`` lookback."""
    if name not in BOUNDARIES:
        raise ValueError(f"Unknown period: {name}")
    if page < 1:
        raise ValueError("page must be >= 1")
    return BOUNDARIES[name](now or utc_now(), page)


def page_window(name: str, page: int = 1, now: Optional[datetime] = None) -> TimeWindow:
    """Return [boundary(page), boundary(page - 1)] with ``now`` closing page 1."""
    now = now or utc_now()
    end = now if page == 1 else boundary(name, page - 1, now)
    return TimeWindow(boundary(name, page, now), end)
