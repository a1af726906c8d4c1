"""
sessiontab/db/mongo.py

Purpose: MongoDB connection lifecycle

- One Motor client per process, opened at startup and closed at shutdown
- Connect retries with exponential backoff
- Warns when the server cannot run multi-document transactions
  (attendance record/revert need a replica set)
"""

import asyncio
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from sessiontab.core.config import settings
from sessiontab.core.logging import get_logger

logger = get_logger(__name__)

CONNECT_ATTEMPTS = 3
FIRST_RETRY_DELAY_SECONDS = 2

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


def _new_client(url: str) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        url,
        maxPoolSize=50,
        minPoolSize=5,
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=10000,
        retryWrites=True,
        retryReads=True,
        tz_aware=True,
    )


async def _warn_without_replica_set(client: AsyncIOMotorClient) -> None:
    hello = await client.admin.command("hello")
    if not hello.get("setName") and hello.get("msg") != "isdbgrid":
        logger.warning(
            "MongoDB is a standalone server; attendance transactions will fail. "
            "Run it as a (single-node) replica set."
        )


async def connect_to_mongo(url: Optional[str] = None, db_name: Optional[str] = None):
    """
    Opens the process-wide client and verifies it with a ping.

    Args:
        url: Connection string (defaults to MONGODB_URL)
        db_name: Database name (defaults to MONGODB_DB_NAME)

    Raises:
        ConnectionError: If every attempt failed
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    url = url or settings.MONGODB_URL
    db_name = db_name or settings.MONGODB_DB_NAME
    delay = FIRST_RETRY_DELAY_SECONDS

    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        client = _new_client(url)
        try:
            await client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            client.close()
            logger.error(f"MongoDB connect attempt {attempt}/{CONNECT_ATTEMPTS} failed: {e}")
            if attempt == CONNECT_ATTEMPTS:
                logger.critical("Giving up on MongoDB")
                raise ConnectionError("Could not establish MongoDB connection") from e
            await asyncio.sleep(delay)
            delay *= 2
            continue

        _client, _database = client, client[db_name]
        await _warn_without_replica_set(client)
        logger.info(f"Connected to MongoDB database '{db_name}'")
        return


async def close_mongo_connection():
    """Closes the client; a no-op when it was never opened."""
    global _client, _database

    if _client is None:
        return
    _client.close()
    _client, _database = None, None
    logger.info("MongoDB connection closed")


def get_client() -> AsyncIOMotorClient:
    """
    Returns the Motor client (needed to open transaction sessions).

    Raises:
        RuntimeError: If connect_to_mongo() has not run
    """
    if _client is None:
        raise RuntimeError("MongoDB client not initialized. Call connect_to_mongo() during startup.")
    return _client


def get_database() -> AsyncIOMotorDatabase:
    if _database is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongo() during startup.")
    return _database
