"""Weekday and time-of-day helpers shared by schedules and reminders.

Weekdays are numbered 0 = Sunday .. 6 = Saturday everywhere in FamilyHub:
in stored schedules, in the reminder resolver and in day-name formatting.
"""

import re
from datetime import date, datetime
from typing import Iterable, Union

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
ALL_DAYS = (0, 1, 2, 3, 4, 5, 6)
WEEKDAYS = (1, 2, 3, 4, 5)
WEEKEND = (0, 6)

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


def weekday_index(moment: Union[date, datetime]) -> int:
    """Return weekday of ``moment`` with 0 = Sunday and 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def parse_schedule_time(time_str: str) -> tuple[int, int]:
    """Parse a schedule time in strict 24-hour "HH:MM" form.
    
    Args:
        time_str: Time string such as "08:00" or "20:30"
        
    Returns:
        Tuple of (hour, minute)
        
    Raises:
        ValueError: If the string is not zero-padded HH:MM or out of range
    """
    if not isinstance(time_str, str):
        raise ValueError(f"Invalid schedule time: {time_str!r}")
    
    match = _TIME_RE.match(time_str)
    if match is None:
        raise ValueError(f"Invalid schedule time format: {time_str!r} (expected HH:MM)")
    
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Schedule time out of range: {time_str!r}")
    
    return hour, minute


def format_days_of_week(days: Iterable[int]) -> str:
    """Format a set of weekday indexes for display.
    
    Examples:
        >>> format_days_of_week([0, 1, 2, 3, 4, 5, 6])
        'Every day'
        >>> format_days_of_week([1, 3])
        'Mon, Wed'
    """
    valid = sorted({day for day in days if 0 <= day <= 6})
    
    if not valid:
        return "Never"
    if tuple(valid) == ALL_DAYS:
        return "Every day"
    if tuple(valid) == WEEKDAYS:
        return "Weekdays"
    if tuple(valid) == WEEKEND:
        return "Weekends"
    
    # Monday first, Sunday last
    ordered = sorted(valid, key=lambda day: (day + 6) % 7)
    return ", ".join(DAY_NAMES[day] for day in ordered)
