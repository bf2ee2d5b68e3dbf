"""
Recurrence calculator
Computes the next execution time of a scheduled report
"""
import json
from datetime import datetime, timedelta
from typing import Any, List, Optional

from dateutil.relativedelta import relativedelta

from .errors import ScheduleConfigurationError

FREQUENCY_ONCE = "once"
FREQUENCY_DAILY = "daily"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_MONTHLY = "monthly"

FREQUENCIES = (FREQUENCY_ONCE, FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_MONTHLY)


def weekday_index(dt: datetime) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6"""
    return dt.isoweekday() % 7


def _days_of_week(report: Any) -> List[int]:
    if hasattr(report, "get_days_of_week"):
        days = report.get_days_of_week()
    else:
        days = getattr(report, "days_of_week", None) or []
        if isinstance(days, str):
            days = json.loads(days) if days else []
    return sorted({int(day) for day in days})


def validate_recurrence(
    frequency: Optional[str],
    days_of_week: Optional[List[int]] = None,
    day_of_month: Optional[int] = None
) -> str:
    """
    Check a schedule's recurrence settings

    Args:
        frequency: once, daily, weekly or monthly; empty means once
        days_of_week: weekdays for weekly schedules, Sunday = 0
        day_of_month: day for monthly schedules

    Returns:
        the normalised frequency

    Raises:
        ScheduleConfigurationError: unknown frequency, weekly without days,
                                    or monthly without a day in 1-31
    """
    frequency = (frequency or FREQUENCY_ONCE).lower()
    if frequency not in FREQUENCIES:
        raise ScheduleConfigurationError(
            f"Invalid frequency. Must be one of: {', '.join(FREQUENCIES)}"
        )

    if frequency == FREQUENCY_WEEKLY:
        if not days_of_week:
            raise ScheduleConfigurationError("Days of week are required for weekly schedules")
        invalid = [day for day in days_of_week if not 0 <= int(day) <= 6]
        if invalid:
            raise ScheduleConfigurationError(f"Days of week must be between 0 and 6: {invalid}")

    if frequency == FREQUENCY_MONTHLY:
        if day_of_month is None:
            raise ScheduleConfigurationError("Day of month is required for monthly schedules")
        if not 1 <= day_of_month <= 31:
            raise ScheduleConfigurationError("Day of month must be between 1 and 31")

    return frequency


def _next_weekly(last_run: datetime, days: List[int]) -> datetime:
    current = weekday_index(last_run)
    later = [day for day in days if day > current]
    if later:
        return last_run + timedelta(days=later[0] - current)
    return last_run + timedelta(days=7 - current + days[0])


def _next_monthly(last_run: datetime, day_of_month: int) -> datetime:
    # day= clamps to the length of the target month
    return last_run + relativedelta(months=1, day=day_of_month)


def compute_next_run(report: Any) -> Optional[datetime]:
    """
    Next execution time of a schedule

    The base time is the last run, or the anchor (scheduled_time_utc) if the
    report has never run. Depends only on the report's fields.

    Args:
        report: object with frequency, scheduled_time_utc, last_run_time_utc,
                end_date, days_of_week and day_of_month

    Returns:
        the next run time, or None when the schedule is finished (one-off,
        or the candidate falls after end_date)

    Raises:
        ScheduleConfigurationError: the recurrence settings are invalid
    """
    days = _days_of_week(report)
    frequency = validate_recurrence(
        getattr(report, "frequency", None),
        days,
        getattr(report, "day_of_month", None)
    )

    if frequency == FREQUENCY_ONCE:
        return None

    last_run = report.last_run_time_utc or report.scheduled_time_utc

    if frequency == FREQUENCY_DAILY:
        candidate = last_run + timedelta(hours=24)
    elif frequency == FREQUENCY_WEEKLY:
        candidate = _next_weekly(last_run, days)
    else:
        candidate = _next_monthly(last_run, report.day_of_month)

    end_date = getattr(report, "end_date", None)
    if end_date is not None and candidate > end_date:
        return None

    return candidate
