"""Date and weekday helpers shared by the generator, the grid and the calendar.

Weekdays are numbered Sunday = 0 ... Saturday = 6 throughout the service.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple

from errors import InvalidPattern

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_LOOKUP = {name.lower(): name for name in DAY_NAMES}
_LOOKUP.update({name[:3].lower(): name for name in DAY_NAMES})


def day_number(d: date) -> int:
    # date.weekday() is Monday = 0
    return (d.weekday() + 1) % 7


def day_name(d: date) -> str:
    return DAY_NAMES[day_number(d)]


def normalize_day(label: str) -> str:
    try:
        return _LOOKUP[label.strip().lower()]
    except (KeyError, AttributeError):
        raise InvalidPattern(f"Unknown day of week: {label!r}") from None


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_start(d: date) -> date:
    return d - timedelta(days=day_number(d))


def month_grid(year: int, month: int) -> Tuple[date, date]:
    """First and last date of the whole Sunday-Saturday weeks covering a month."""
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    return week_start(first), last + timedelta(days=6 - day_number(last))


def add_minutes(t: time, minutes: int) -> time:
    """Shift a time of day, clamped to the end of the same day."""
    shifted = datetime.combine(date.min, t) + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        return time(23, 59)
    return shifted.time()


def format_window(start: time, end: time) -> str:
    return f"{start:%H:%M} - {end:%H:%M}"
