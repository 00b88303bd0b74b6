"""
Shared MongoDB client.

One pooled ``AsyncMongoClient`` is created on first use and reused by every
request; the application closes it on shutdown.  The database name is fixed
by configuration, callers can only pick a collection inside it.
"""

from typing import Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from config import Settings
from logger import logger

_client: Optional[AsyncMongoClient] = None


def get_client(settings: Settings) -> AsyncMongoClient:
    """Return the shared client, creating it on first call.

    The driver connects lazily, so this never blocks; connection errors
    surface on the first real command.
    """
    global _client
    if _client is None:
        _client = AsyncMongoClient(
            settings.mongo_uri,
            maxPoolSize=settings.max_pool_size,
            minPoolSize=settings.min_pool_size,
            maxIdleTimeMS=settings.max_idle_time_ms,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
        logger.info(
            "[CLIENT] Created MongoDB client (pool %d-%d) for database %s",
            settings.min_pool_size, settings.max_pool_size, settings.database_name,
        )
    return _client


def get_database(settings: Settings) -> AsyncDatabase:
    return get_client(settings)[settings.database_name]


async def close_client() -> None:
    """Close the shared client if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
        logger.info("[CLIENT] MongoDB client closed")
