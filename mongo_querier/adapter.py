"""
MongoDB connection management.

This module provides:
- MongoDB client connection via Motor (async driver)
- Database and collection handles
- Health check utilities
"""

from __future__ import annotations

import logging
from typing import Any

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class MongoAdapter:
    """Owns a Motor client bound to a single database."""

    def __init__(self, client: AsyncIOMotorClient, database: str, url: str = ""):
        self._client: AsyncIOMotorClient | None = client
        self.database = database
        self.url = url

    @classmethod
    async def connect(
        cls,
        uri: str,
        database: str,
        **client_options: Any,
    ) -> MongoAdapter:
        """
        Connect to MongoDB and verify the connection with a ping.

        Raises:
            PyMongoError: If the URI is invalid or the server does not answer
        """
        try:
            client = AsyncIOMotorClient(uri, **client_options)
        except PyMongoError as e:
            logger.error(f"Unable to connect to MongoDB at {_sanitize_mongodb_url(uri)}: {e}")
            raise

        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"Unable to ping MongoDB at {_sanitize_mongodb_url(uri)}: {e}")
            client.close()
            raise

        logger.debug(f"Connected to MongoDB (database={database})")
        return cls(client, database, url=uri)

    async def __aenter__(self) -> MongoAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        self.disconnect()

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("MongoAdapter is disconnected")
        return self._client

    def get_database(self) -> AsyncIOMotorDatabase:
        return self.client[self.database]

    def get_collection(self, name: str, **options: Any) -> AsyncIOMotorCollection:
        return self.get_database().get_collection(name, **options)

    def disconnect(self) -> None:
        """Close the client. Safe to call more than once."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.debug("Closed MongoDB client")

    async def ping(self) -> bool:
        """Check if MongoDB connection is healthy."""
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def describe(self) -> dict:
        """Get database connection information and status."""
        return {
            "status": "connected" if self._client is not None else "disconnected",
            "url": _sanitize_mongodb_url(self.url),
            "database": self.database,
        }


async def create_mongo_adapter(settings: Settings | None = None) -> MongoAdapter:
    settings = settings or get_settings()
    return await MongoAdapter.connect(
        settings.mongodb_url,
        settings.mongodb_database,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


def _sanitize_mongodb_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url or "://" not in url:
        return url

    protocol, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    if ":" in credentials:
        username = credentials.split(":", 1)[0]
        return f"{protocol}://{username}:***@{host}"
    return url
