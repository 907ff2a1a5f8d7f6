"""
Validation and data processing utilities for scheduling operations.

This module provides the small set of input checks shared by the lifecycle,
the schedule store and the booking workflow. Every helper raises
ValidationException so that callers get the package's typed error.
"""

import re
import unicodedata
import uuid
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    SchemaValidationException,
    ValidationException,
    format_validation_errors,
)

T = TypeVar("T")


def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize a string by normalizing unicode and trimming whitespace.

    Args:
        value: The string to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    normalized = unicodedata.normalize("NFKC", value)
    sanitized = re.sub(r"\s+", " ", normalized.strip())

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length].rstrip()

    return sanitized


def require_min_length(
    value: Optional[str], min_length: int, field: str, label: Optional[str] = None
) -> str:
    """
    Ensure a free-text value has at least ``min_length`` non-blank characters.

    Args:
        value: The text to check
        min_length: Minimum number of characters after trimming
        field: Field name reported in the error
        label: Human-readable name used in the message

    Returns:
        The sanitized text

    Raises:
        ValidationException: If the value is missing or too short
    """
    label = label or field.replace("_", " ").capitalize()
    text = sanitize_string(value or "")
    if not text:
        raise ValidationException(f"{label} is required", field=field)
    if len(text) < min_length:
        raise ValidationException(
            f"{label} must be at least {min_length} characters long",
            field=field,
            value=text,
        )
    return text


def coerce_uuid(value: Any, field: str) -> uuid.UUID:
    """
    Convert a UUID or its string form into ``uuid.UUID``.

    Raises:
        ValidationException: If the value is not a valid UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        try:
            return uuid.UUID(value.strip())
        except ValueError:
            pass
    raise ValidationException(f"Invalid identifier for {field}", field=field, value=value)


def coerce_with(parser: Callable[[Any], T], value: Any, field: str) -> T:
    """
    Run a parser and translate its ValueError into ValidationException.

    Used for the date and time parsers so that malformed boundary values
    surface as validation failures.
    """
    try:
        return parser(value)
    except (TypeError, ValueError) as e:
        raise ValidationException(str(e), field=field, value=value) from e


def validate_schema(schema_cls: Any, data: Any) -> Any:
    """
    Validate data against a Pydantic schema.

    Raises:
        SchemaValidationException: With field-level messages when invalid
    """
    try:
        if isinstance(data, schema_cls):
            return data
        return schema_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = format_validation_errors(e.errors())
        first_field, messages = next(iter(errors.items()))
        raise SchemaValidationException(
            f"Invalid {schema_cls.__name__}: {first_field}: {messages[0]}",
            schema_name=schema_cls.__name__,
            validation_errors=errors,
        ) from e
