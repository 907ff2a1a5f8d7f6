"""
Database session management utilities for the vet-scheduler package.

This module provides async session factory, session management, and
transaction utilities for database operations.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import MetaData, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..exceptions import DatabaseException, VetSchedulerException
from .connection import SQLITE_IMMEDIATE_OPTION

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages database sessions and provides transaction utilities."""

    def __init__(
        self, engine: AsyncEngine, session_config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize session manager with database engine.

        Args:
            engine: SQLAlchemy async engine
            session_config: Optional session configuration overrides
        """
        self.engine = engine
        self._is_initialized = False

        default_config = {
            "expire_on_commit": False,
            "autoflush": True,
        }
        if session_config:
            default_config.update(session_config)

        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=default_config["autoflush"],
            expire_on_commit=default_config["expire_on_commit"],
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database sessions with automatic cleanup.

        Yields:
            Database session

        Example:
            async with session_manager.get_session() as session:
                result = await session.execute(select(Appointment))
        """
        session = self.session_factory()
        try:
            yield session
        except VetSchedulerException as e:
            await session.rollback()
            logger.debug(f"Rolled back session after {e.__class__.__name__}: {e.message}")
            raise
        except Exception as e:
            await session.rollback()
            logger.error(f"Session error, rolling back: {e}")
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database transactions with automatic commit/rollback.

        Transactions are opened for writing: on SQLite they begin with
        BEGIN IMMEDIATE so every read inside them happens under the write
        lock. Other backends ignore the option.

        Yields:
            Database session within a transaction

        Example:
            async with session_manager.get_transaction() as session:
                session.add(window)
                # Transaction is committed when the block exits cleanly
        """
        async with self.get_session() as session:
            async with session.begin():
                await session.connection(
                    execution_options={SQLITE_IMMEDIATE_OPTION: True}
                )
                yield session

    @asynccontextmanager
    async def use_session(
        self, session: Optional[AsyncSession] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """
        Reuse the caller's session when given one, otherwise open a new one.

        Lets read helpers join a transaction that is already in progress.
        """
        if session is not None:
            yield session
            return
        async with self.get_session() as new_session:
            yield new_session

    async def initialize_database(self, metadata: Optional[MetaData] = None) -> None:
        """
        Verify connectivity and create the schema.

        Args:
            metadata: SQLAlchemy metadata object containing table definitions

        Raises:
            DatabaseException: If the database cannot be reached or set up
        """
        logger.info("Starting database initialization...")
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if metadata is not None:
                    await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise DatabaseException(
                "Database initialization failed",
                error_code="DATABASE_INITIALIZATION_ERROR",
                original_error=e,
            ) from e

        self._is_initialized = True
        logger.info("Database initialization completed successfully")

    async def close_all_sessions(self) -> None:
        """Close all active sessions and dispose of the engine."""
        await self.engine.dispose()
        logger.info("All database sessions and connections closed")

    @property
    def is_initialized(self) -> bool:
        """Check if the database has been initialized."""
        return self._is_initialized

