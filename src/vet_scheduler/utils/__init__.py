"""
Utility functions and helper modules.

This module provides common utility functions for datetime handling,
validation and configuration management.
"""

from .config import (
    DatabaseURLValidator,
    EnvironmentConfig,
    LoggingConfigurator,
    LogLevel,
    SchedulerSettings,
)
from .datetime_utils import (
    DayOfWeek,
    add_minutes,
    combine_local,
    format_duration,
    format_time_of_day,
    get_current_local,
    get_current_utc,
    intervals_overlap,
    minutes_to_time,
    parse_calendar_date,
    parse_time_of_day,
    time_interval,
    time_to_minutes,
    to_timezone,
)
from .validation import (
    coerce_uuid,
    coerce_with,
    require_min_length,
    sanitize_string,
    validate_schema,
)

__all__ = [
    # DateTime utilities
    "DayOfWeek",
    "get_current_utc",
    "get_current_local",
    "parse_time_of_day",
    "format_time_of_day",
    "parse_calendar_date",
    "time_to_minutes",
    "minutes_to_time",
    "time_interval",
    "intervals_overlap",
    "combine_local",
    "to_timezone",
    "add_minutes",
    "format_duration",
    # Validation helpers
    "sanitize_string",
    "require_min_length",
    "coerce_uuid",
    "coerce_with",
    "validate_schema",
    # Configuration utilities
    "LogLevel",
    "EnvironmentConfig",
    "DatabaseURLValidator",
    "LoggingConfigurator",
    "SchedulerSettings",
]
