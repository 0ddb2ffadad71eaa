"""
Calendar helpers shared by the payroll services.

All payroll dates are plain calendar days; timestamps are truncated to their
YYYY-MM-DD component and month windows follow local calendar boundaries.
"""
import calendar
import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union

DayLike = Union[date, datetime, str, None]

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?")


def normalize_day(value: DayLike) -> Optional[date]:
    """Truncate a date, datetime or ISO string to a calendar day."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def days_in_month(month: int, year: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """First and last day of the month, both inclusive."""
    return date(year, month, 1), date(year, month, days_in_month(month, year))


def next_month_start(month: int, year: int) -> date:
    return month_bounds(month, year)[1] + timedelta(days=1)


def format_month(month: int, year: int) -> str:
    return f"{year}-{month:02d}"


def month_key(value: DayLike) -> Optional[str]:
    day = normalize_day(value)
    if day is None:
        return None
    return format_month(day.month, day.year)


def parse_salary_month(raw: Optional[str], fallback: DayLike = None) -> Optional[date]:
    """
    Resolve the month a salary row belongs to.

    Accepts "YYYY-MM" or "YYYY-MM-DD"; anything else falls back to `fallback`
    (usually the row's creation timestamp).
    """
    if isinstance(raw, str):
        match = _MONTH_PATTERN.match(raw.strip())
        if match:
            year, month = int(match.group(1)), int(match.group(2))
            try:
                return date(year, month, int(match.group(3) or 1))
            except ValueError:
                pass
    try:
        return normalize_day(fallback)
    except ValueError:
        return None


def coerce_salary_month(value: Union[date, datetime, str]) -> str:
    """Normalize any month-ish input to the stored "YYYY-MM" form."""
    if isinstance(value, (date, datetime)):
        return format_month(value.month, value.year)
    parsed = parse_salary_month(str(value))
    if parsed is None:
        raise ValueError(f"Unrecognized salary month: {value!r}")
    return format_month(parsed.month, parsed.year)
