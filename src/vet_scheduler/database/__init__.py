"""
Database connection and session management utilities.

This module provides async SQLAlchemy engine configuration and session
management for the scheduling engine.
"""

from .connection import (
    DatabaseConfig,
    check_connection,
    close_engine,
    create_engine,
    get_database_url,
)
from .session import SessionManager

__all__ = [
    # Connection utilities
    "DatabaseConfig",
    "create_engine",
    "get_database_url",
    "check_connection",
    "close_engine",
    # Session management
    "SessionManager",
]
