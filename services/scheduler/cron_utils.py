"""
Utility functions for cron expression handling and timezone-aware scheduling.

This module is the due-job evaluator: a job's schedule is compiled once into a
``CronSchedule`` and then matched against tick times truncated to the minute,
so a tick that runs once per minute neither double-fires nor skips.
"""

import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

logger = logging.getLogger(__name__)

UTC = dt_timezone.utc


def ensure_aware_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def utcnow() -> datetime:
    return datetime.now(UTC)


def minute_floor(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def validate_cron_expression(cron_expr: str) -> bool:
    """Validate a five field cron expression."""
    if not isinstance(cron_expr, str):
        return False
    if len(cron_expr.split()) != 5:
        return False
    return croniter.is_valid(cron_expr)


def validate_timezone(name: str) -> bool:
    """Validate an IANA timezone name."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class CronSchedule:
    """A validated cron expression bound to the timezone it is evaluated in."""

    def __init__(self, expression: str, timezone: str = "UTC"):
        expression = " ".join(expression.split())
        if not validate_cron_expression(expression):
            raise ValueError(f"Invalid cron expression: {expression!r}")
        if not validate_timezone(timezone):
            raise ValueError(f"Unknown timezone: {timezone!r}")

        self.expression = expression
        self.timezone_name = timezone
        self.tz = ZoneInfo(timezone)

    def __repr__(self):
        return f"CronSchedule({self.expression!r}, {self.timezone_name!r})"

    def _localize(self, value: datetime) -> datetime:
        return ensure_aware_utc(value).astimezone(self.tz)

    def matches(self, now: datetime) -> bool:
        """True when the minute containing ``now`` is a fire time."""
        minute = minute_floor(self._localize(now))
        candidate = croniter(self.expression, minute - timedelta(minutes=1)).get_next(datetime)
        return candidate == minute

    def next_fire_time(self, after: Optional[datetime] = None) -> datetime:
        """First fire time strictly after ``after`` (defaults to now), in UTC."""
        start = self._localize(after or utcnow())
        return croniter(self.expression, start).get_next(datetime).astimezone(UTC)

    def previous_fire_time(self, before: Optional[datetime] = None) -> datetime:
        """Most recent fire time strictly before ``before`` (defaults to now), in UTC."""
        start = self._localize(before or utcnow())
        return croniter(self.expression, start).get_prev(datetime).astimezone(UTC)

    def next_fire_times(self, count: int = 5, after: Optional[datetime] = None) -> List[datetime]:
        """Preview of the next ``count`` fire times, in UTC."""
        iterator = croniter(self.expression, self._localize(after or utcnow()))
        return [iterator.get_next(datetime).astimezone(UTC) for _ in range(count)]


def is_due(job, now: datetime) -> bool:
    """Decide whether ``job`` should run on the tick at ``now``.

    Disabled jobs are never due, whatever their schedule says.
    """
    if not job.enabled:
        return False
    return job.schedule.matches(now)
