"""Timezone helpers.

FamilyHub stores a fixed UTC offset (e.g. "+03:00") rather than a zone
name. Reminders are resolved in that offset; intake timestamps may carry
any offset and are converted before comparison.
"""

import re
from datetime import datetime, timedelta, timezone

from loguru import logger

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")
MAX_OFFSET_HOURS = 14


def parse_timezone_offset(offset_str: str) -> timedelta:
    """Parse a "+HH:MM" / "-HH:MM" offset.

    Raises:
        ValueError: If the string is malformed or out of range

    Examples:
        >>> parse_timezone_offset("+03:00")
        datetime.timedelta(seconds=10800)
    """
    match = _OFFSET_RE.match(offset_str.strip()) if isinstance(offset_str, str) else None
    if match is None:
        logger.error(f"Invalid timezone offset: {offset_str!r}")
        raise ValueError(f"Invalid timezone offset format: {offset_str!r}")

    sign, hours, minutes = match.group(1), int(match.group(2)), int(match.group(3))
    if hours > MAX_OFFSET_HOURS or minutes > 59:
        logger.error(f"Timezone offset out of range: {offset_str!r}")
        raise ValueError(f"Timezone offset out of range: {offset_str!r}")

    offset = timedelta(hours=hours, minutes=minutes)
    return -offset if sign == "-" else offset


def tzinfo_for_offset(offset_str: str) -> timezone:
    """Fixed-offset tzinfo for an offset string."""
    return timezone(parse_timezone_offset(offset_str))


def get_current_time(timezone_offset: str) -> datetime:
    """Current time as an aware datetime in ``timezone_offset``."""
    now = datetime.now(timezone.utc).astimezone(tzinfo_for_offset(timezone_offset))
    logger.debug(f"Now is {now.isoformat(timespec='seconds')}")
    return now


def to_reference_timezone(moment: datetime, reference: datetime) -> datetime:
    """Express ``moment`` in the same timezone as ``reference``.

    Naive datetimes are read as wall-clock time in the other value's zone:
    a naive ``moment`` is assumed to already be in the reference zone, and
    an aware ``moment`` compared against a naive ``reference`` is converted
    to system local time and made naive.

    Args:
        moment: Datetime to convert
        reference: Datetime whose timezone is used

    Returns:
        Datetime comparable with ``reference``
    """
    if reference.tzinfo is None:
        if moment.tzinfo is None:
            return moment
        return moment.astimezone().replace(tzinfo=None)

    if moment.tzinfo is None:
        return moment.replace(tzinfo=reference.tzinfo)
    return moment.astimezone(reference.tzinfo)
