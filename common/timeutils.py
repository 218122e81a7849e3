"""Timezone-naive wall-clock helpers.

Every timestamp handled by the engine is a local date-time string shaped
``YYYY-MM-DD HH:mm:ss``. No offset is ever attached and no conversion is ever
applied: two identical strings denote the same instant. Because the shape is
fixed-width and zero padded, comparing the strings compares the instants, which
is what lets the database filter intervals with plain ``<``/``>``.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from .exceptions import ValidationError

WALL_CLOCK_FORMAT = "%Y-%m-%d %H:%M:%S"
WALL_CLOCK_LENGTH = 19

_WALL_CLOCK_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def parse_wall_clock(value: Optional[str]) -> datetime:
    """Parse a ``YYYY-MM-DD HH:mm:ss`` string into a naive datetime."""
    if not isinstance(value, str) or not _WALL_CLOCK_RE.match(value.strip()):
        raise ValidationError(f"Invalid datetime {value!r}; expected YYYY-MM-DD HH:mm:ss")
    try:
        return datetime.strptime(value.strip(), WALL_CLOCK_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid datetime {value!r}") from exc


def format_wall_clock(moment: datetime) -> str:
    return moment.strftime(WALL_CLOCK_FORMAT)


def now_wall_clock() -> str:
    """Current server-local time, seconds precision."""
    return format_wall_clock(datetime.now().replace(microsecond=0))


def normalize_wall_clock(value: Optional[str]) -> str:
    return format_wall_clock(parse_wall_clock(value))


def parse_date(value: Optional[str]) -> date:
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}") from exc


def combine_date_time(day: str, clock: str) -> str:
    """Build a wall-clock string from ``YYYY-MM-DD`` and ``HH:mm[:ss]``."""
    parsed_day = parse_date(day)
    if not isinstance(clock, str) or not _TIME_RE.match(clock.strip()):
        raise ValidationError(f"Invalid time {clock!r}; expected HH:mm or HH:mm:ss")
    clock = clock.strip()
    if len(clock) == 5:
        clock = f"{clock}:00"
    return normalize_wall_clock(f"{parsed_day.isoformat()} {clock}")


def day_window(value: str) -> Tuple[str, str]:
    """Half-open ``[00:00:00, next day 00:00:00)`` window of the day containing ``value``."""
    start = parse_wall_clock(value).replace(hour=0, minute=0, second=0)
    return format_wall_clock(start), format_wall_clock(start + timedelta(days=1))


def minutes_between(start: str, end: str) -> int:
    delta = parse_wall_clock(end) - parse_wall_clock(start)
    return int(delta.total_seconds() // 60)


def hour_of(value: str) -> int:
    return parse_wall_clock(value).hour
