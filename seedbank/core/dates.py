"""
Calendar helpers and the ``registry.dates.<key>`` vocabulary.

Weekday numbering follows ``date.weekday()`` (Monday = 0).
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from .errors import ErrorKind, ParsingError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

Clock = Callable[[], date]


def current_date() -> date:
    return date.today()


def weekday_number(weekday: str) -> int:
    try:
        return WEEKDAYS.index(str(weekday).lower())
    except ValueError:
        raise ValueError(f"Invalid weekday: {weekday}") from None


def next_occurring(weekday: str, today: Optional[date] = None) -> date:
    """Next date falling on ``weekday``; strictly after ``today``."""
    today = today or current_date()
    days_until = (weekday_number(weekday) - today.weekday()) % 7
    if days_until == 0:
        days_until = 7
    return today + timedelta(days=days_until)


def beginning_of_week(start_day: str = "monday", today: Optional[date] = None) -> date:
    today = today or current_date()
    days_back = (today.weekday() - weekday_number(start_day)) % 7
    return today - timedelta(days=days_back)


def add_days(d: date, num_days: int) -> date:
    return d + timedelta(days=num_days)


def add_weeks(d: date, num_weeks: int) -> date:
    return d + timedelta(weeks=num_weeks)


def add_months(d: date, num_months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = d.month - 1 + num_months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return d.replace(year=year, month=month, day=min(d.day, last_day))


def beginning_of_month(d: date) -> date:
    return d.replace(day=1)


_SUGGESTIONS = (
    "Basic dates: today, tomorrow, next_week, next_month",
    "Next weekdays: next_monday, next_tuesday, ..., next_sunday",
    "This week: this_week_monday, this_week_tuesday, ..., this_week_sunday",
    "Month dates: first_of_this_month, first_of_next_month",
    "Legacy: monday_of_this_week, fifteenth_of_this_month",
    "Example: registry.dates.next_friday",
)


def _build_vocabulary() -> Dict[str, Callable[[date], date]]:
    vocab: Dict[str, Callable[[date], date]] = {
        "today": lambda t: t,
        "tomorrow": lambda t: add_days(t, 1),
        "next_week": lambda t: add_weeks(t, 1),
        "next_month": lambda t: add_months(t, 1),
        "first_of_this_month": beginning_of_month,
        "first_of_next_month": lambda t: beginning_of_month(add_months(t, 1)),
        # legacy aliases
        "monday_of_this_week": lambda t: beginning_of_week("monday", t),
        "fifteenth_of_this_month": lambda t: add_days(beginning_of_month(t), 14),
    }
    for offset, day in enumerate(WEEKDAYS):
        vocab[f"next_{day}"] = lambda t, day=day: next_occurring(day, t)
        vocab[f"this_week_{day}"] = lambda t, offset=offset: add_days(beginning_of_week("monday", t), offset)
    return vocab


DATE_KEYWORDS: Dict[str, Callable[[date], date]] = _build_vocabulary()


class DateResolver:
    """Resolves date keywords relative to an injectable clock."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or current_date

    def keywords(self) -> List[str]:
        return list(DATE_KEYWORDS.keys())

    def resolve(self, key: str) -> date:
        fn = DATE_KEYWORDS.get(key)
        if fn is None:
            raise ParsingError(
                f"Unknown date key '{key}' in registry.dates.{key}.",
                kind=ErrorKind.INVALID_DATE_KEY,
                suggestions=_SUGGESTIONS + (f"Valid keys: {', '.join(DATE_KEYWORDS)}",),
            )
        return fn(self.clock())
