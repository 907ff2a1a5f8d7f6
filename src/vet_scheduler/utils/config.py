"""
Configuration management utilities.

This module provides environment variable handling with type conversion,
database URL validation, logging configuration utilities and the
SchedulerSettings object that wires the engine together.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qs, urlparse

from ..exceptions import ConfigurationException
from .datetime_utils import is_valid_timezone

ENV_PREFIX = "VET_SCHEDULER_"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./vet_scheduler.db"
PACKAGE_LOGGER = "vet_scheduler"


class LogLevel(Enum):
    """Enumeration for log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentConfig:
    """Utility class for handling environment variables with type conversion."""

    @staticmethod
    def get_str(
        key: str, default: Optional[str] = None, required: bool = False
    ) -> Optional[str]:
        """
        Get a string environment variable.

        Args:
            key: Environment variable key
            default: Default value if not found
            required: Whether the variable is required

        Returns:
            String value or default

        Raises:
            ConfigurationException: If required variable is missing
        """
        value = os.getenv(key, default)

        if required and value is None:
            raise ConfigurationException(
                f"Required environment variable '{key}' is not set", config_key=key
            )

        return value

    @staticmethod
    def get_int(
        key: str, default: Optional[int] = None, required: bool = False
    ) -> Optional[int]:
        """
        Get an integer environment variable.

        Args:
            key: Environment variable key
            default: Default value if not found
            required: Whether the variable is required

        Returns:
            Integer value or default

        Raises:
            ConfigurationException: If required variable is missing or invalid
        """
        value = os.getenv(key)

        if value is None:
            if required:
                raise ConfigurationException(
                    f"Required environment variable '{key}' is not set",
                    config_key=key,
                )
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigurationException(
                f"Environment variable '{key}' must be an integer, got: {value}",
                config_key=key,
                config_value=value,
            )

    @staticmethod
    def get_bool(
        key: str, default: Optional[bool] = None, required: bool = False
    ) -> Optional[bool]:
        """
        Get a boolean environment variable.

        Args:
            key: Environment variable key
            default: Default value if not found
            required: Whether the variable is required

        Returns:
            Boolean value or default

        Raises:
            ConfigurationException: If required variable is missing
        """
        value = os.getenv(key)

        if value is None:
            if required:
                raise ConfigurationException(
                    f"Required environment variable '{key}' is not set",
                    config_key=key,
                )
            return default

        return value.lower() in ("true", "1", "yes", "on", "enabled")


class DatabaseURLValidator:
    """Utility class for validating database URLs."""

    # Plain postgresql:// URLs are switched to asyncpg by DatabaseConfig
    SUPPORTED_SCHEMES = ("postgresql", "postgresql+asyncpg", "sqlite+aiosqlite")

    @classmethod
    def validate_url(cls, url: str) -> Dict[str, Any]:
        """
        Validate a database URL and return parsed components.

        Args:
            url: Database URL to validate

        Returns:
            Dictionary with validation results and parsed components

        Raises:
            ConfigurationException: If URL is invalid
        """
        if not url:
            raise ConfigurationException("Database URL cannot be empty")

        parsed = urlparse(url)

        if not parsed.scheme:
            raise ConfigurationException(
                "Database URL must include a scheme (e.g., postgresql+asyncpg://)"
            )

        if parsed.scheme not in cls.SUPPORTED_SCHEMES:
            raise ConfigurationException(
                f"Unsupported database driver '{parsed.scheme}'. "
                f"Supported: {', '.join(cls.SUPPORTED_SCHEMES)}"
            )

        is_sqlite = parsed.scheme.startswith("sqlite")

        if not is_sqlite and not parsed.hostname:
            raise ConfigurationException("Database URL must include a hostname")

        if not is_sqlite and not parsed.path.lstrip("/"):
            raise ConfigurationException("Database URL must include a database name")

        return {
            "valid": True,
            "scheme": parsed.scheme,
            "dialect": "sqlite" if is_sqlite else "postgresql",
            "hostname": parsed.hostname,
            "port": parsed.port,
            "database": parsed.path.lstrip("/") if parsed.path else "",
            "username": parsed.username,
            "query": dict(parse_qs(parsed.query)),
        }


class LoggingConfigurator:
    """Utility class for configuring logging."""

    DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    HANDLER_NAME = "vet_scheduler"

    @staticmethod
    def configure_package_logging(
        level: Union[str, LogLevel] = LogLevel.INFO,
        format_string: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> logging.Handler:
        """
        Attach a handler to the ``vet_scheduler`` logger.

        Records still propagate to the root logger, so the host application
        keeps its own handlers. Calling this again replaces the handler it
        attached before.

        Args:
            level: Logging level
            format_string: Custom format string
            log_file: Optional log file path; stderr when omitted

        Returns:
            The attached handler
        """
        if isinstance(level, LogLevel):
            level = level.value

        logger = logging.getLogger(PACKAGE_LOGGER)
        for existing in list(logger.handlers):
            if existing.get_name() == LoggingConfigurator.HANDLER_NAME:
                logger.removeHandler(existing)
                existing.close()

        handler: logging.Handler
        if log_file:
            handler = logging.FileHandler(log_file, mode="a")
        else:
            handler = logging.StreamHandler()
        handler.set_name(LoggingConfigurator.HANDLER_NAME)
        handler.setFormatter(
            logging.Formatter(
                format_string or LoggingConfigurator.DEFAULT_FORMAT,
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(level)
        return handler


@dataclass
class SchedulerSettings:
    """Runtime settings of the scheduling engine."""

    database_url: str = DEFAULT_DATABASE_URL
    timezone: str = "UTC"
    min_reason_length: int = 5
    confirmation_display_seconds: int = 5
    notification_channel: str = "email"
    reminder_hours: int = 24
    log_level: LogLevel = LogLevel.INFO

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check that the settings are usable.

        Raises:
            ConfigurationException: If any setting is invalid
        """
        DatabaseURLValidator.validate_url(self.database_url)

        if not is_valid_timezone(self.timezone):
            raise ConfigurationException(
                f"Unknown timezone '{self.timezone}'",
                config_key="timezone",
                config_value=self.timezone,
            )
        if self.min_reason_length < 1:
            raise ConfigurationException(
                "Minimum reason length must be positive",
                config_key="min_reason_length",
                config_value=str(self.min_reason_length),
            )
        if self.confirmation_display_seconds < 0:
            raise ConfigurationException(
                "Confirmation display interval cannot be negative",
                config_key="confirmation_display_seconds",
                config_value=str(self.confirmation_display_seconds),
            )
        if self.reminder_hours <= 0:
            raise ConfigurationException(
                "Reminder horizon must be positive",
                config_key="reminder_hours",
                config_value=str(self.reminder_hours),
            )

    @property
    def database_dialect(self) -> str:
        return DatabaseURLValidator.validate_url(self.database_url)["dialect"]

    @classmethod
    def from_environment(cls, prefix: str = ENV_PREFIX) -> "SchedulerSettings":
        """
        Build settings from ``VET_SCHEDULER_*`` environment variables.

        Raises:
            ConfigurationException: If a variable holds an invalid value
        """
        level_name = (EnvironmentConfig.get_str(f"{prefix}LOG_LEVEL", "INFO") or "INFO").upper()
        try:
            log_level = LogLevel(level_name)
        except ValueError:
            raise ConfigurationException(
                f"Invalid log level '{level_name}'",
                config_key=f"{prefix}LOG_LEVEL",
                config_value=level_name,
            )

        return cls(
            database_url=EnvironmentConfig.get_str(
                f"{prefix}DATABASE_URL", DEFAULT_DATABASE_URL
            ),
            timezone=EnvironmentConfig.get_str(f"{prefix}TIMEZONE", "UTC"),
            min_reason_length=EnvironmentConfig.get_int(
                f"{prefix}MIN_REASON_LENGTH", 5
            ),
            confirmation_display_seconds=EnvironmentConfig.get_int(
                f"{prefix}CONFIRMATION_DISPLAY_SECONDS", 5
            ),
            notification_channel=EnvironmentConfig.get_str(
                f"{prefix}NOTIFICATION_CHANNEL", "email"
            ),
            reminder_hours=EnvironmentConfig.get_int(f"{prefix}REMINDER_HOURS", 24),
            log_level=log_level,
        )

    def configure_logging(self, log_file: Optional[str] = None) -> logging.Handler:
        """Send the package's log records to stderr or a file at the configured level."""
        return LoggingConfigurator.configure_package_logging(
            level=self.log_level, log_file=log_file
        )
