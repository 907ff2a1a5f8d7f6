"""
Custom exceptions for the vet-scheduler package.

This module defines the exception hierarchy and custom exceptions
used throughout the scheduling engine.
"""

from .core_exceptions import (
    AuthorizationException,
    BusinessRuleException,
    ConfigurationException,
    ConflictException,
    ConnectionException,
    DatabaseException,
    NotFoundException,
    SchemaValidationException,
    ValidationException,
    VetSchedulerException,
    create_error_response,
    format_validation_errors,
    log_exception_context,
)

__all__ = [
    # Exception classes
    "VetSchedulerException",
    "DatabaseException",
    "ConnectionException",
    "ValidationException",
    "SchemaValidationException",
    "BusinessRuleException",
    "ConflictException",
    "AuthorizationException",
    "NotFoundException",
    "ConfigurationException",
    # Utility functions
    "format_validation_errors",
    "create_error_response",
    "log_exception_context",
]
