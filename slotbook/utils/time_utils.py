# slotbook/utils/time_utils.py
"""Wall-clock and timezone helpers"""
import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC instant.

    SQLite hands back naive datetimes for timezone-aware columns; everything
    is written in UTC, so a naive value is read as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def parse_local_time(value: str, allow_end_of_day: bool = False) -> int:
    """Parse HH:MM into minutes since local midnight. Raises ValueError."""
    match = _HHMM.match(value or "")
    if not match:
        raise ValueError(f"Invalid local time '{value}', expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if allow_end_of_day and hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid local time '{value}'")
    return hours * 60 + minutes


def local_minutes_to_utc(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    """Convert a wall-clock position on a local date into a UTC instant"""
    day_offset, minute_of_day = divmod(minutes, MINUTES_PER_DAY)
    local_day = day + timedelta(days=day_offset)
    local = datetime.combine(
        local_day,
        time(minute_of_day // 60, minute_of_day % 60),
        tzinfo=zone,
    )
    return local.astimezone(timezone.utc)


def local_date_of(instant: datetime, zone: ZoneInfo) -> date:
    return ensure_utc(instant).astimezone(zone).date()


def day_of_week_sunday_first(day: date) -> int:
    """0=Sunday ... 6=Saturday (Python's weekday() is 0=Monday)"""
    return (day.weekday() + 1) % 7


def iter_dates(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


COUNTRY_TO_TIMEZONE = {
    "AR": "America/Argentina/Buenos_Aires",
    "UY": "America/Montevideo",
    "CL": "America/Santiago",
    "BR": "America/Sao_Paulo",
    "PY": "America/Asuncion",
    "BO": "America/La_Paz",
    "PE": "America/Lima",
    "CO": "America/Bogota",
    "EC": "America/Guayaquil",
    "VE": "America/Caracas",
    "MX": "America/Mexico_City",
    "US": "America/New_York",
    "CA": "America/Toronto",
    "ES": "Europe/Madrid",
    "PT": "Europe/Lisbon",
    "IT": "Europe/Rome",
    "FR": "Europe/Paris",
    "DE": "Europe/Berlin",
    "GB": "Europe/London",
}


def timezone_for_country(country_code: str, default: str = "America/Argentina/Buenos_Aires") -> str:
    return COUNTRY_TO_TIMEZONE.get((country_code or "").upper(), default)
