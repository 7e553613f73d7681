"""MongoDB client handle used by the GridFS blob store.

One handle per application, created in the lifespan and closed on shutdown.
The underlying motor client is built on first use and then reused.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from secure_uploader.config import Settings
from secure_uploader.errors import StoreUnavailable

logger = logging.getLogger(__name__)

_PASSWORD_RE = re.compile(r":([^:@/]+)@")


def mask_uri(uri: str) -> str:
    """Hide the password part of a mongodb:// URI for logging."""
    return _PASSWORD_RE.sub(":****@", uri)


class MongoConnection:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: AsyncIOMotorClient | None = None
        self._status: dict[str, Any] = {
            "isConnected": False,
            "host": None,
            "database": settings.MONGODB_DB,
            "lastConnected": None,
        }

    def _connect(self) -> AsyncIOMotorClient:
        s = self.settings
        if not s.MONGODB_URI:
            raise StoreUnavailable("MONGODB_URI is not defined")

        logger.info("Connecting to MongoDB: %s", mask_uri(s.MONGODB_URI))
        return AsyncIOMotorClient(
            s.MONGODB_URI,
            serverSelectionTimeoutMS=s.STORE_CONNECT_TIMEOUT_MS,
            connectTimeoutMS=s.STORE_CONNECT_TIMEOUT_MS,
            socketTimeoutMS=s.STORE_SOCKET_TIMEOUT_MS,
            maxPoolSize=s.MONGODB_MAX_POOL_SIZE,
            minPoolSize=s.MONGODB_MIN_POOL_SIZE,
            maxIdleTimeMS=s.MONGODB_MAX_IDLE_TIME_MS,
            retryWrites=True,
            retryReads=True,
        )

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            self._client = self._connect()
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self.client[self.settings.MONGODB_DB]

    async def ping(self) -> None:
        """Round-trip to the server; updates the status snapshot."""
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            self._status["isConnected"] = False
            logger.error("MongoDB ping failed: %s", e)
            raise StoreUnavailable(f"MongoDB unreachable: {e}") from e

        if not self._status["isConnected"]:
            address = self.client.address
            self._status.update(
                isConnected=True,
                host=f"{address[0]}:{address[1]}" if address else None,
                lastConnected=datetime.now(timezone.utc).isoformat(),
            )
            logger.info("MongoDB connected: %s", self._status["host"])

    def status(self) -> dict[str, Any]:
        return {**self._status, "initialized": self._client is not None}

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._status["isConnected"] = False
