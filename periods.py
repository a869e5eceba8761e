from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from models import ReportPeriod

END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class Period:
    slug: str
    start: datetime
    end: datetime


def _zone() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def local_now() -> datetime:
    """Current wall-clock time in the configured timezone, without tzinfo."""
    return datetime.now(_zone()).replace(tzinfo=None)


def to_storage(local: datetime) -> datetime:
    """Convert a configured-timezone wall-clock value to naive UTC."""
    aware = local.replace(tzinfo=_zone())
    return aware.astimezone(timezone.utc).replace(tzinfo=None)


def _month_start(now: datetime) -> datetime:
    return datetime(now.year, now.month, 1)


def _next_month_start(now: datetime) -> datetime:
    if now.month == 12:
        return datetime(now.year + 1, 1, 1)
    return datetime(now.year, now.month + 1, 1)


def resolve_period(
    period: Union[ReportPeriod, str],
    start: Optional[datetime],
    end: Optional[datetime],
    *,
    now: Optional[datetime] = None,
) -> Period:
    """Resolve a period tag into a concrete inclusive range.

    ``start`` and ``end`` are only read for ``custom`` and are taken as
    already-normalised storage instants. ``now`` is a wall-clock value in the
    configured timezone.
    """
    try:
        slug = ReportPeriod(period)
    except ValueError as exc:
        raise ValueError(f"Unsupported period: {period}") from exc

    if slug == ReportPeriod.custom:
        if start is None or end is None:
            raise ValueError("start_date and end_date are required for custom period")
        if start > end:
            raise ValueError("start_date must not be after end_date")
        return Period(slug.value, start, end)

    now = now or local_now()
    if slug == ReportPeriod.weekly:
        range_start = now - timedelta(days=7)
        range_end = now
    elif slug == ReportPeriod.monthly:
        range_start = _month_start(now)
        last_day = _next_month_start(now) - timedelta(days=1)
        range_end = datetime.combine(last_day.date(), END_OF_DAY)
    else:
        range_start = datetime(now.year, 1, 1)
        range_end = datetime.combine(date(now.year, 12, 31), END_OF_DAY)
    return Period(slug.value, to_storage(range_start), to_storage(range_end))


def month_window(now: Optional[datetime] = None) -> Period:
    """Half-open ``[first-of-month, first-of-next-month)`` window."""
    now = now or local_now()
    return Period(
        "month",
        to_storage(_month_start(now)),
        to_storage(_next_month_start(now)),
    )
