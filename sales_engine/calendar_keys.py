"""
Calendar bucket keys for sales charts and reports.

Week buckets group by year, month and week-of-month, where
``week_of_month = ceil((day_of_month + weekday_of_first_day) / 7)`` and the
weekday counts from Sunday = 0. This is NOT an ISO week: long months can
produce a sixth week, and two dates in the same ISO week can land in
different buckets around a month boundary. Report history depends on these
exact keys, so the formula must stay as is.

Keys look like ``2026-10-W3`` (week) and ``2026-10`` (month); both sort
chronologically as plain strings.
"""
import calendar
import math
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, List, Optional
from zoneinfo import ZoneInfo

from sales_engine.config import config

# Returns the current time; injected so rolling windows are testable
Clock = Callable[[], datetime]


class Granularity(str, Enum):
    """Bucket size for sales aggregation."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@lru_cache(maxsize=None)
def local_timezone() -> tzinfo:
    """Timezone that defines 'today', week and month boundaries."""
    return ZoneInfo(config.reports.timezone)


def system_clock() -> datetime:
    """Current wall-clock time in the reporting timezone."""
    return datetime.now(local_timezone())


def to_local(moment: datetime) -> datetime:
    """Express a datetime in the reporting timezone; naive values are taken as local."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=local_timezone())
    return moment.astimezone(local_timezone())


def resolve_now(clock: Optional[Clock] = None) -> datetime:
    """Read the clock in the reporting timezone."""
    return to_local((clock or system_clock)())


def parse_timestamp(value: Any, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Parse a timestamp from an upstream record.

    Accepts ISO-8601 strings (``Z`` suffix allowed), datetime/date objects
    and epoch milliseconds. Naive values are read as local time. The result
    is converted to the reporting timezone.

    Returns:
        Aware datetime, or None if the value cannot be parsed
    """
    tz = tz or local_timezone()

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def start_of_day(moment: datetime) -> datetime:
    """Local midnight of the given moment's day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(moment: datetime) -> datetime:
    """Local midnight of the first day of the given moment's month."""
    return start_of_day(moment).replace(day=1)


def _previous_month(moment: datetime) -> datetime:
    if moment.month == 1:
        return moment.replace(year=moment.year - 1, month=12, day=1)
    return moment.replace(month=moment.month - 1, day=1)


# ═══════════════════════════════════════════════════════════════════════════════
# KEYS
# ═══════════════════════════════════════════════════════════════════════════════

def week_of_month(moment: date) -> int:
    """Week-of-month number (1-6) using the Sunday-based formula."""
    first_weekday = (moment.replace(day=1).weekday() + 1) % 7
    return math.ceil((moment.day + first_weekday) / 7)


def week_key_of(moment: date) -> str:
    """
    Week bucket key, e.g. ``2026-10-W3``.

    Two moments in the same week-of-month always give the same key.
    """
    if isinstance(moment, datetime):
        moment = to_local(moment)
    return f"{moment.year}-{moment.month:02d}-W{week_of_month(moment)}"


def month_key_of(moment: date) -> str:
    """Month bucket key, e.g. ``2026-10``."""
    if isinstance(moment, datetime):
        moment = to_local(moment)
    return f"{moment.year}-{moment.month:02d}"


def bucket_key_of(moment: date, granularity: Granularity) -> str:
    """Bucket key at the requested granularity."""
    if Granularity(granularity) == Granularity.WEEKLY:
        return week_key_of(moment)
    return month_key_of(moment)


def last_n_week_keys(n: int, clock: Optional[Clock] = None) -> List[str]:
    """
    Week keys for the last ``n`` fixed 7-day steps, oldest first.

    Steps are anchored at local midnight today. Two steps can fall into the
    same week-of-month bucket, so adjacent duplicates are possible and kept.
    """
    cursor = start_of_day(resolve_now(clock))
    keys = []
    for _ in range(max(0, n)):
        keys.append(week_key_of(cursor))
        cursor = cursor - timedelta(days=7)
    keys.reverse()
    return keys


def last_n_month_keys(n: int, clock: Optional[Clock] = None) -> List[str]:
    """Month keys for the last ``n`` calendar months, oldest first."""
    cursor = start_of_month(resolve_now(clock))
    keys = []
    for _ in range(max(0, n)):
        keys.append(month_key_of(cursor))
        cursor = _previous_month(cursor)
    keys.reverse()
    return keys


def window_keys(
    granularity: Granularity,
    periods: int,
    clock: Optional[Clock] = None,
) -> List[str]:
    """Rolling key sequence for a chart or report at the given granularity."""
    if Granularity(granularity) == Granularity.WEEKLY:
        return last_n_week_keys(periods, clock)
    return last_n_month_keys(periods, clock)


# ═══════════════════════════════════════════════════════════════════════════════
# LABELS
# ═══════════════════════════════════════════════════════════════════════════════

def week_label(week_key: str) -> str:
    """
    Human label for a week key: ``2026-06-W2`` -> ``W2 Jun``.

    Malformed keys are returned unchanged.
    """
    try:
        year_month, week = str(week_key).split("-W")
        year, month = year_month.split("-")
        int(year)
        month_name = calendar.month_abbr[int(month)]
        if not month_name or not week:
            return week_key
        return f"W{week} {month_name}"
    except (ValueError, IndexError):
        return week_key


def bucket_label(key: str, granularity: Granularity) -> str:
    """Chart label for a bucket key; month keys label as themselves."""
    if Granularity(granularity) == Granularity.WEEKLY:
        return week_label(key)
    return key
