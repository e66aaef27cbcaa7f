"""Database module for managing the PostgreSQL connection pool and document stores.

This module handles:
- Database connection pool initialization with retries
- Schema management
- Connection lifecycle
- Document store construction
"""

import logging
from typing import Optional

import asyncpg
import backoff

from .exceptions import DatabaseError, DatabaseSchemaError, DuplicateKeyError, StoreUnavailableError
from .lib.schema_manager import SchemaManager
from .memory import MemoryStore
from .store import DocumentStore, PostgresStore

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None


@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(db_url: str, command_timeout: float = 10.0) -> asyncpg.Pool:
    """Initialize the database connection pool and schema.

    Args:
        db_url: Database connection URL
        command_timeout: Per-statement timeout applied by the pool

    Returns:
        The connection pool

    Raises:
        ValueError: If database URL is not provided
        DatabaseSchemaError: If the schema cannot be applied
    """
    global _pool

    if not db_url:
        raise ValueError("Database URL not provided")

    if _pool:
        return _pool

    try:
        _pool = await asyncpg.create_pool(
            db_url,
            min_size=2,
            max_size=20,
            max_inactive_connection_lifetime=300.0,
            command_timeout=command_timeout
        )
        await SchemaManager(_pool).initialize()
        logger.info("Database pool initialized")
        return _pool

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if _pool:
            await _pool.close()
            _pool = None
        raise


async def close() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


async def create_store(settings) -> DocumentStore:
    """Build the PostgreSQL document store described by settings."""
    pool = await init_db(settings['db_url'], command_timeout=settings['store_timeout'])
    return PostgresStore(pool, timeout=settings['store_timeout'])


# Export public interface
__all__ = [
    'init_db', 'close', 'create_store',
    'DocumentStore', 'PostgresStore', 'MemoryStore',
    'DatabaseError', 'DatabaseSchemaError', 'DuplicateKeyError', 'StoreUnavailableError'
]
