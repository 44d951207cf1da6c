"""Utility functions for FamilyHub."""

from .error_handler import (
    format_error_for_user,
    handle_errors,
    log_operation,
    log_performance,
    timed_operation,
)
from .logger import get_logger, logger, setup_logger
from .timezone import (
    get_current_time,
    parse_timezone_offset,
    to_reference_timezone,
    tzinfo_for_offset,
)
from .weekdays import (
    DAY_NAMES,
    format_days_of_week,
    parse_schedule_time,
    weekday_index,
)

__all__ = [
    # Timezone utilities
    "parse_timezone_offset",
    "get_current_time",
    "to_reference_timezone",
    "tzinfo_for_offset",
    # Weekday utilities
    "DAY_NAMES",
    "weekday_index",
    "parse_schedule_time",
    "format_days_of_week",
    # Logger utilities
    "setup_logger",
    "get_logger",
    "logger",
    # Error handling utilities
    "handle_errors",
    "format_error_for_user",
    "log_operation",
    "log_performance",
    "timed_operation",
]
