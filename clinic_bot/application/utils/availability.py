from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

DATE_FORMAT = "%d-%m-%Y"

DEFAULT_TIME_SLOTS: tuple[str, ...] = ("15:00", "15:30", "16:00", "16:30", "17:00", "17:30")

_SATURDAY = 5
_SUNDAY = 6


def next_business_days(start_exclusive: date, count: int) -> list[date]:
    """
    Return the next `count` weekdays strictly after `start_exclusive`.

    Saturdays and Sundays are skipped; the result is in chronological order.
    """
    days: list[date] = []
    current = start_exclusive
    while len(days) < count:
        current += timedelta(days=1)
        if current.weekday() in (_SATURDAY, _SUNDAY):
            continue
        days.append(current)
    return days


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def parse_date(value: str) -> date | None:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


def today_in(timezone: str) -> date:
    try:
        tz = ZoneInfo(timezone)
    except Exception:
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date()


def render_options(items: Iterable[str]) -> str:
    """Number items from 1 for display: '1. a\\n2. b'."""
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start=1))


def pick_option(text: str, options: tuple | list) -> int | None:
    """Map a 1-indexed user choice to a list index, or None when out of range."""
    choice = (text or "").strip()
    if not (choice.isascii() and choice.isdigit()):
        return None
    index = int(choice) - 1
    if 0 <= index < len(options):
        return index
    return None
