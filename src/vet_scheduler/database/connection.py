"""
Database connection utilities for the vet-scheduler package.

This module provides async SQLAlchemy engine configuration and connection
management utilities. PostgreSQL (asyncpg) is the production backend and
SQLite (aiosqlite) is supported for local runs and the test suite.
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from ..exceptions import ConfigurationException, ConnectionException
from ..utils.config import DatabaseURLValidator

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30

# Execution option asking SQLite to take the write lock when the transaction begins
SQLITE_IMMEDIATE_OPTION = "sqlite_begin_immediate"


class DatabaseConfig:
    """Configuration class for database connections."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        echo: bool = False,
    ):
        """
        Initialize database configuration.

        Args:
            database_url: PostgreSQL or SQLite connection URL
            pool_size: Number of connections to maintain in the pool
            max_overflow: Maximum number of connections that can overflow the pool
            pool_timeout: Timeout for getting connection from pool
            pool_recycle: Time in seconds to recycle connections
            echo: Whether to echo SQL statements

        Raises:
            ConfigurationException: If the URL is invalid or unsupported
        """
        self.database_url = database_url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle
        self.echo = echo

        self.url_info = DatabaseURLValidator.validate_url(database_url)

    @property
    def is_sqlite(self) -> bool:
        return self.url_info["dialect"] == "sqlite"

    def get_async_url(self) -> str:
        """Convert database URL to async format if needed."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.database_url


def create_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
    pool_pre_ping: bool = True,
    echo: bool = False,
    use_null_pool: bool = False,
    connect_args: Optional[dict] = None,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine with proper configuration.

    Args:
        database_url: PostgreSQL or SQLite connection URL
        pool_size: Number of connections to maintain in the pool
        max_overflow: Maximum number of connections that can overflow the pool
        pool_timeout: Timeout for getting connection from pool
        pool_recycle: Time in seconds to recycle connections
        pool_pre_ping: Whether to validate connections before use
        echo: Whether to echo SQL statements
        use_null_pool: Whether to use NullPool (useful for testing)
        connect_args: Additional connection arguments

    Returns:
        Configured async SQLAlchemy engine

    Raises:
        ConfigurationException: If database URL is invalid
        ConnectionException: If the engine cannot be created
    """
    config = DatabaseConfig(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        echo=echo,
    )

    async_url = config.get_async_url()

    engine_kwargs: Dict[str, Any] = {"echo": config.echo}

    merged_connect_args: Dict[str, Any] = {}
    if config.is_sqlite:
        merged_connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS
    if connect_args:
        merged_connect_args.update(connect_args)
    if merged_connect_args:
        engine_kwargs["connect_args"] = merged_connect_args

    # SQLite keeps its own file locking; pooling options only apply to PostgreSQL
    if use_null_pool or config.is_sqlite:
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(
            {
                "poolclass": AsyncAdaptedQueuePool,
                "pool_size": config.pool_size,
                "max_overflow": config.max_overflow,
                "pool_timeout": config.pool_timeout,
                "pool_recycle": config.pool_recycle,
                "pool_pre_ping": pool_pre_ping,
            }
        )

    try:
        engine = create_async_engine(async_url, **engine_kwargs)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise ConnectionException(
            "Failed to create database engine",
            database_url=async_url,
            original_error=e,
        ) from e

    if config.is_sqlite:
        install_sqlite_transaction_control(engine)

    target = urlparse(async_url).hostname or config.url_info["database"]
    logger.info(f"Created async {config.url_info['dialect']} engine for {target}")
    return engine


def install_sqlite_transaction_control(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy emit BEGIN on SQLite connections.

    The driver otherwise defers BEGIN until the first write, so reads made
    earlier in a write transaction are not covered by the database lock.
    Connections carrying the ``sqlite_begin_immediate`` execution option
    start with BEGIN IMMEDIATE and hold the write lock from the first
    statement.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(SQLITE_IMMEDIATE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


async def check_connection(
    engine: AsyncEngine, max_retries: int = 3, retry_delay: float = 1.0
) -> bool:
    """
    Test database connection health with retry logic.

    Args:
        engine: SQLAlchemy async engine
        max_retries: Maximum number of retry attempts
        retry_delay: Delay between retries in seconds

    Returns:
        True if connection is healthy, False otherwise
    """
    for attempt in range(max_retries + 1):
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
        except Exception as e:
            if attempt < max_retries:
                logger.warning(
                    f"Database connection test failed (attempt {attempt + 1}/{max_retries + 1}): {e}"
                )
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                logger.error(
                    f"Database connection test failed after {max_retries + 1} attempts: {e}"
                )
    return False


async def close_engine(engine: AsyncEngine) -> None:
    """
    Properly close the database engine and all connections.

    Args:
        engine: SQLAlchemy async engine to close
    """
    await engine.dispose()
    logger.info("Database engine closed successfully")


def get_database_url(
    host: str,
    port: int = 5432,
    database: str = "vet_scheduler",
    username: str = "postgres",
    password: str = "",  # nosec B107
    driver: str = "asyncpg",
) -> str:
    """
    Construct a PostgreSQL database URL.

    Raises:
        ConfigurationException: If host or database is missing
    """
    if not host or not database:
        raise ConfigurationException("Host and database name are required")

    auth = f"{username}:{password}" if password else username
    return f"postgresql+{driver}://{auth}@{host}:{port}/{database}"
