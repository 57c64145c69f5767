#!/usr/bin/env python3
"""Database utilities for the sync engine's PostgreSQL backing store.

Provides:
    - Transaction and plain-connection context managers over an asyncpg pool
    - Pool creation/shutdown helpers used by the application lifespan
    - Translation of driver errors into the DatabaseError family

Example:
    async with database_transaction(pool) as conn:
        await conn.execute("INSERT INTO export_history ...")
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from .exceptions import (
    ConnectionPoolError,
    DatabaseError,
    IntegrityError,
    TransactionError,
)

logger = logging.getLogger(__name__)

ACQUIRE_TIMEOUT_SECONDS = 30.0


async def _acquire(pool):
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")
    try:
        return await asyncio.wait_for(pool.acquire(), timeout=ACQUIRE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ConnectionPoolError(
            "Timeout acquiring database connection",
            details={"timeout_seconds": ACQUIRE_TIMEOUT_SECONDS},
        )
    except Exception as e:
        raise ConnectionPoolError(
            f"Failed to acquire database connection: {e}",
            cause=e,
        )


@asynccontextmanager
async def database_transaction(pool, isolation: str = "read_committed") -> AsyncIterator[Any]:
    """Run the enclosed statements in one transaction.

    Commits on clean exit, rolls back and re-raises as a DatabaseError
    subtype otherwise.

    Raises:
        ConnectionPoolError: If a connection cannot be acquired
        TransactionError: If the transaction cannot be started or fails
        IntegrityError: If a constraint is violated
    """
    conn = await _acquire(pool)
    try:
        transaction = conn.transaction(isolation=isolation)
        try:
            await transaction.start()
        except Exception as e:
            raise TransactionError(f"Failed to start transaction: {e}", cause=e)

        try:
            yield conn
            await transaction.commit()
        except Exception as e:
            try:
                await transaction.rollback()
                logger.debug("Transaction rolled back due to exception")
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")
            raise _convert_db_exception(e)
    finally:
        await pool.release(conn)


@asynccontextmanager
async def database_connection(pool) -> AsyncIterator[Any]:
    """Acquire a connection for reads, without a transaction."""
    conn = await _acquire(pool)
    try:
        yield conn
    finally:
        await pool.release(conn)


def _convert_db_exception(e: Exception) -> DatabaseError:
    """Convert a driver exception to the matching DatabaseError subtype."""
    if isinstance(e, DatabaseError):
        return e

    if isinstance(e, asyncpg.UniqueViolationError):
        return IntegrityError(f"Duplicate entry: {e}", constraint="unique", cause=e)
    if isinstance(e, asyncpg.NotNullViolationError):
        return IntegrityError(f"Not null violation: {e}", constraint="not_null", cause=e)
    if isinstance(e, asyncpg.DeadlockDetectedError):
        return TransactionError(f"Deadlock detected: {e}", operation="transaction", cause=e)

    error_str = str(e).lower()
    if "timeout" in error_str or "timed out" in error_str:
        return TransactionError(
            f"Database operation timed out: {e}",
            operation="query",
            cause=e,
        )

    return DatabaseError(f"Database operation failed: {e}", cause=e)


async def create_pool(
    database_url: str,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
):
    """Create the asyncpg pool, wrapping failures in ConnectionPoolError."""
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )
    except Exception as e:
        raise ConnectionPoolError(f"Failed to create database pool: {e}", cause=e)
    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


async def close_pool(pool, timeout: float = 10.0):
    """Close the pool, terminating it if connections do not drain in time."""
    if pool is None:
        return

    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
        logger.info("Database pool closed")
    except asyncio.TimeoutError:
        logger.warning(f"Pool close timed out after {timeout}s, terminating")
        pool.terminate()


async def check_database_health(pool) -> dict[str, Any]:
    """Report whether the pool answers a trivial query."""
    if pool is None:
        return {"healthy": False, "error": "Pool not initialized"}

    try:
        async with database_connection(pool) as conn:
            result = await conn.fetchval("SELECT 1")
            return {
                "healthy": result == 1,
                "pool_size": pool.get_size(),
                "pool_free": pool.get_idle_size(),
            }
    except Exception as e:
        return {"healthy": False, "error": str(e)}


__all__ = [
    "database_transaction",
    "database_connection",
    "create_pool",
    "close_pool",
    "check_database_health",
]
