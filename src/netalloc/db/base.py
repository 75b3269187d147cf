"""
Database base configuration and utilities.

This module provides the foundation for the SQLite store driver using
Peewee ORM.

Components:
    - db: Global SQLite database instance
    - BaseModel: Base class for all netalloc database models
    - initialize_database: Database setup function
    - run_in_executor: Async wrapper for blocking DB operations
"""

import asyncio
import os

import peewee

from netalloc.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Database Instance
# =============================================================================

# Global database instance - path set via initialize_database()
db = peewee.SqliteDatabase(None)


# =============================================================================
# Base Model
# =============================================================================


class BaseModel(peewee.Model):
    """
    Base model for all netalloc database models.

    All models inherit from this class to share the database connection.
    """

    class Meta:
        database = db


# =============================================================================
# Database Lifecycle
# =============================================================================


def initialize_database(db_path: str) -> None:
    """
    Connect to the database and create tables.

    Must be called from the thread that will run all later queries, since
    peewee connections are per-thread.

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        peewee.OperationalError: If database connection fails.
    """
    # Import models here to avoid circular imports
    from netalloc.db.record import Bucket, Record

    logger.debug(f"Initializing database at: {db_path}")

    parent = os.path.dirname(db_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    try:
        db.init(db_path, pragmas={"journal_mode": "wal", "foreign_keys": 1})
        db.connect(reuse_if_open=True)
        db.create_tables([Bucket, Record], safe=True)

        logger.info(f"Database initialized: {db_path}")

        bucket_count = Bucket.select().count()
        record_count = Record.select().count()
        logger.debug(f"Database contains {bucket_count} buckets, {record_count} records")

    except peewee.OperationalError as e:
        logger.error(f"Failed to initialize database '{db_path}': {e}")
        raise


def close_database() -> None:
    """Close the database connection if open."""
    if not db.is_closed():
        db.close()
        logger.debug("Database connection closed")


# =============================================================================
# Async Utilities
# =============================================================================


async def run_in_executor(func, *args, executor=None, **kwargs):
    """
    Run a blocking database function in a thread pool executor.

    Use this in async contexts to avoid blocking the event loop.

    Args:
        func: The blocking function to execute.
        *args: Positional arguments for the function.
        executor: Executor to use (None for the loop's default).
        **kwargs: Keyword arguments for the function.

    Returns:
        The return value of the function.

    Example:
        row = await run_in_executor(Record.get_or_none, Record.row_key == key)
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, lambda: func(*args, **kwargs))
