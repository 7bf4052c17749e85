"""
Time source and local-day arithmetic.

Every evaluator or job that needs "now" receives a Clock instead of calling
datetime.now() directly, so tests can pin time deterministically.

Stored datetimes are naive UTC; local calendar days are resolved with the
athlete's IANA timezone.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol, Tuple
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Anything that can tell the current instant."""

    def now(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a given instant. Used by tests and batch re-runs."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **kwargs) -> None:
        """Move the pinned instant forward by a timedelta(**kwargs)."""
        self.instant = self.instant + timedelta(**kwargs)


def utc_naive(moment: datetime) -> datetime:
    """Convert an aware datetime to naive UTC (the storage representation)."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def today_in(clock: Clock, tz_name: str) -> date:
    """Local calendar date for the given timezone."""
    return clock.now().astimezone(ZoneInfo(tz_name)).date()


def local_date_of(stored: datetime, tz_name: str) -> date:
    """Local calendar date of a naive-UTC stored datetime."""
    aware = stored.replace(tzinfo=timezone.utc) if stored.tzinfo is None else stored
    return aware.astimezone(ZoneInfo(tz_name)).date()


def local_day_bounds(day: date, tz_name: str) -> Tuple[datetime, datetime]:
    """
    Half-open [start, end) bounds of a local calendar day.

    Args:
        day: Local calendar date
        tz_name: IANA timezone name (e.g. "Europe/Stockholm")

    Returns:
        Tuple of naive-UTC datetimes (start of day, start of next day)
    """
    zone = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return utc_naive(start), utc_naive(end)


def local_noon_utc(day: date, tz_name: str) -> datetime:
    """Naive-UTC instant of local noon; the stored timestamp for a dated workout."""
    return utc_naive(datetime.combine(day, time(12, 0), tzinfo=ZoneInfo(tz_name)))


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())
