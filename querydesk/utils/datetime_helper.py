"""
Datetime helpers
All persisted timestamps are naive UTC; these helpers convert at the edges
"""
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """
    Convert a datetime to an ISO 8601 string with a 'Z' suffix

    Naive datetimes are assumed to be UTC.

    Examples:
        >>> to_iso_string(datetime(2024, 11, 3, 6, 30, 0))
        '2024-11-03T06:30:00Z'
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.replace(microsecond=0).isoformat().replace('+00:00', 'Z')


def utc_now() -> datetime:
    """Current UTC time, timezone-aware"""
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    """Current UTC time as a naive datetime, the storage format"""
    return utc_now().replace(tzinfo=None)


def to_utc_naive(dt: datetime, tz_name: Optional[str] = "UTC") -> datetime:
    """
    Normalise a datetime to naive UTC

    Aware datetimes are converted directly. Naive datetimes are interpreted as
    wall-clock time in ``tz_name``.

    Args:
        dt: datetime to convert
        tz_name: IANA timezone name used for naive input

    Returns:
        naive UTC datetime

    Raises:
        ValueError: if tz_name is not a known timezone
    """
    if dt.tzinfo is None:
        try:
            zone = ZoneInfo(tz_name or "UTC")
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {tz_name}") from e
        dt = dt.replace(tzinfo=zone)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)
