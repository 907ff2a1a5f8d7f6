"""
Core exceptions for the vet-scheduler package.

This module defines the exception hierarchy used by the scheduling engine.
Guard failures raised by the lifecycle and the availability resolver are
typed so that callers can decide how to recover:

- ValidationException: fix the input and try again
- BusinessRuleException: the operation is not allowed in the current state
- ConflictException: the slot was taken, re-resolve availability
- AuthorizationException: the actor may not perform the operation
- NotFoundException: an unknown practitioner, appointment, pet or service

Every class carries the HTTP status a transport layer should answer with.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


class VetSchedulerException(Exception):
    """
    Base exception class for all vet-scheduler exceptions.

    Provides a consistent interface for error handling across the package.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DatabaseException(VetSchedulerException):
    """Raised when the scheduler database cannot be reached or set up."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, error_code or "DATABASE_ERROR", details)
        self.original_error = original_error
        if original_error is not None:
            self.details.setdefault("original_error", str(original_error))


class ConnectionException(DatabaseException):
    """Raised when the database engine cannot be created."""

    def __init__(
        self,
        message: str = "Database connection failed",
        database_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if database_url:
            details["database_url"] = self._hide_password(database_url)

        super().__init__(
            message=message,
            error_code="DATABASE_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
        )

    @staticmethod
    def _hide_password(url: str) -> str:
        try:
            return make_url(url).render_as_string(hide_password=True)
        except ArgumentError:
            return "[UNPARSEABLE_URL]"


class ValidationException(VetSchedulerException):
    """Malformed or out-of-range input; the caller should fix it and retry."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        value: Optional[Any] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize validation exception.

        Args:
            message: Error message
            field: Field that failed validation
            value: Value that failed validation
            validation_errors: Field-level messages, see format_validation_errors
        """
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        if validation_errors:
            details["validation_errors"] = validation_errors

        super().__init__(message=message, error_code="VALIDATION_ERROR", details=details)
        self.field = field


class SchemaValidationException(ValidationException):
    """Raised when input does not match a Pydantic schema."""

    def __init__(
        self,
        message: str = "Schema validation failed",
        schema_name: Optional[str] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, validation_errors=validation_errors)
        self.error_code = "SCHEMA_VALIDATION_ERROR"
        if schema_name:
            self.details["schema_name"] = schema_name


class BusinessRuleException(ValidationException):
    """
    Raised when a well-formed operation is not allowed in the current state.

    ``rule_name`` identifies the rule, e.g. ``appointment_status_transition``
    or ``no_show_after_start``.
    """

    status_code = 422

    def __init__(
        self,
        message: str = "Business rule validation failed",
        rule_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message)
        self.error_code = "BUSINESS_RULE_ERROR"
        self.rule_name = rule_name
        if rule_name:
            self.details["rule_name"] = rule_name
        if context:
            self.details["context"] = context


class ConflictException(VetSchedulerException):
    """
    Exception raised when a requested slot is no longer free.

    The caller is expected to resolve availability again and let the user
    pick another slot.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "The requested time slot is no longer available",
        practitioner_id: Optional[Any] = None,
        appointment_date: Optional[Any] = None,
        appointment_time: Optional[Any] = None,
        conflicting_appointment_id: Optional[Any] = None,
    ):
        """
        Initialize conflict exception.

        Args:
            message: Error message
            practitioner_id: Practitioner whose agenda holds the conflict
            appointment_date: Date of the requested slot
            appointment_time: Start time of the requested slot
            conflicting_appointment_id: Appointment occupying the slot, if known
        """
        details: Dict[str, Any] = {"retry_hint": "resolve_availability"}
        if practitioner_id is not None:
            details["practitioner_id"] = str(practitioner_id)
        if appointment_date is not None:
            details["date"] = str(appointment_date)
        if appointment_time is not None:
            details["time"] = str(appointment_time)
        if conflicting_appointment_id is not None:
            details["conflicting_appointment_id"] = str(conflicting_appointment_id)

        super().__init__(message=message, error_code="CONFLICT_ERROR", details=details)


class AuthorizationException(VetSchedulerException):
    """Exception raised when an actor lacks the role to perform an operation."""

    status_code = 403

    def __init__(
        self,
        message: str = "Actor is not allowed to perform this operation",
        actor_role: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        details = {}
        if actor_role:
            details["actor_role"] = actor_role
        if operation:
            details["operation"] = operation

        super().__init__(message=message, error_code="AUTHORIZATION_ERROR", details=details)


class NotFoundException(VetSchedulerException):
    """Exception raised when a referenced entity does not exist."""

    status_code = 404

    def __init__(
        self,
        entity: str,
        entity_id: Optional[Any] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"{entity} not found"
            if entity_id is not None:
                message = f"{entity} '{entity_id}' not found"

        details: Dict[str, Any] = {"entity": entity}
        if entity_id is not None:
            details["entity_id"] = str(entity_id)

        super().__init__(message=message, error_code="NOT_FOUND", details=details)
        self.entity = entity


class ConfigurationException(VetSchedulerException):
    """Raised for invalid scheduler settings."""

    def __init__(
        self,
        message: str = "Configuration error",
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        """
        Initialize configuration exception.

        Args:
            message: Error message
            config_key: Setting that caused the error
            config_value: Offending value; redacted for secret-looking keys
        """
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value:
            details["config_value"] = self._redact(config_key, config_value)

        super().__init__(message=message, error_code="CONFIGURATION_ERROR", details=details)

    @staticmethod
    def _redact(key: Optional[str], value: str) -> str:
        if not key:
            return "[REDACTED]"
        sensitive_keys = ("password", "secret", "key", "token", "credential", "url")
        if any(sensitive in key.lower() for sensitive in sensitive_keys):
            return "[REDACTED]"
        return value


def format_validation_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Format Pydantic validation errors into a user-friendly structure.

    Args:
        errors: List of Pydantic validation errors

    Returns:
        Dictionary mapping field names to lists of error messages
    """
    formatted_errors: Dict[str, List[str]] = {}

    for error in errors:
        field_path = ".".join(str(loc) for loc in error.get("loc", [])) or "root"
        message = error.get("msg", "Validation error")
        error_type = error.get("type", "unknown")

        if error_type == "value_error":
            formatted_message = message
        elif error_type == "missing":
            formatted_message = "This field is required"
        else:
            formatted_message = f"{message} (type: {error_type})"

        formatted_errors.setdefault(field_path, []).append(formatted_message)

    return formatted_errors


def create_error_response(exception: VetSchedulerException) -> Dict[str, Any]:
    """
    Build the error body a transport layer returns for a scheduler exception.

    The ``status`` entry is the HTTP status of the exception class.
    """
    response: Dict[str, Any] = {
        "success": False,
        "status": exception.status_code,
        "error": {
            "type": exception.__class__.__name__,
            "code": exception.error_code,
            "message": exception.message,
        },
    }
    if exception.details:
        response["error"]["details"] = exception.details
    return response


def log_exception_context(
    exception: Exception,
    context: Dict[str, Any],
    logger: Optional[logging.Logger] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with additional context information.

    Args:
        exception: The exception to log
        context: Additional context information
        logger: Logger instance to use
        level: Logging level
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    if isinstance(exception, VetSchedulerException):
        log_data = exception.to_dict()
        log_data["context"] = context
        logger.log(
            level,
            f"Exception with context: {exception.message}",
            extra={"exception_data": log_data},
        )
    else:
        logger.log(
            level,
            f"Non-scheduler exception: {exception}",
            extra={
                "exception_type": exception.__class__.__name__,
                "exception_message": str(exception),
                "context": context,
            },
        )
