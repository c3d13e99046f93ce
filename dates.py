import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings

DateLike = Union[date, datetime, str]

_DAY_SECONDS = 24 * 60 * 60
_GERMAN_DATE = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$")


def local_now() -> datetime:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int, *, desired_day: Optional[int] = None) -> date:
    """Shift ``base`` by whole months, clamping the day to the target month.

    ``desired_day`` lets callers keep an anchor day (e.g. the 31st) across
    short months instead of drifting to the clamped value.
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1

    day = desired_day or base.day
    dim = days_in_month(year, month)
    if day > dim:
        day = dim
    return date(year, month, day)


def add_days(base: date, days: int) -> date:
    return base + timedelta(days=days)


def days_between(start: Union[date, datetime], end: Union[date, datetime]) -> float:
    """Signed number of days from ``start`` to ``end`` as a float."""
    start_dt = start if isinstance(start, datetime) else start_of_day(start)
    end_dt = end if isinstance(end, datetime) else start_of_day(end)
    return (end_dt - start_dt).total_seconds() / _DAY_SECONDS


def start_of_day(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def end_of_day(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time(23, 59, 59, 999000))


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=days_in_month(value.year, value.month))


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    tz = ZoneInfo(get_settings().timezone)
    return value.astimezone(tz).replace(tzinfo=None)


def parse_datetime(value: object) -> Optional[datetime]:
    """Best-effort parse into a naive local datetime; ``None`` if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return start_of_day(value)
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if _GERMAN_DATE.match(raw):
        try:
            return datetime.strptime(raw, "%d.%m.%Y")
        except ValueError:
            return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return _to_local_naive(datetime.fromisoformat(raw))
    except ValueError:
        return None


def to_date(value: object) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None
