"""Redis connection shared by the rate limiter, one-time state and token deny-list."""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as redis

from wpmcp_core.config.models import RedisConfig

logger = logging.getLogger(__name__)


class RedisConnection:
    """Lazily connected redis.asyncio client.

    Example:
        conn = RedisConnection(RedisConfig(enabled=True))
        if await conn.connect():
            await conn.client.set(conn.key("state", "abc"), "1", ex=600)
    """

    def __init__(self, config: RedisConfig | None = None, client: Any | None = None):
        """Initialize the connection.

        Args:
            config: Connection options
            client: Pre-built client (tests inject a mock here)
        """
        self._config = config or RedisConfig()
        self._client: Any | None = client
        self._connected = client is not None

    @property
    def connected(self) -> bool:
        """Return whether the client is connected to Redis."""
        return self._connected

    @property
    def client(self) -> Any | None:
        return self._client

    def key(self, *parts: str) -> str:
        """Build a namespaced key: ``<prefix>:<part>:<part>``."""
        return ":".join((self._config.key_prefix, *parts))

    async def connect(self) -> bool:
        """Connect to Redis.

        Returns:
            True if connection successful, False otherwise.
        """
        if self._connected:
            return True

        try:
            self._client = redis.from_url(
                self._config.url,
                socket_connect_timeout=self._config.connect_timeout,
                socket_timeout=self._config.socket_timeout,
                decode_responses=True,
            )
            await self._client.ping()
            self._connected = True
            logger.info(f"Connected to Redis at {self._sanitize_url(self._config.url)}")
            return True
        except (redis.RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._connected = False
            return False

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            try:
                await self._client.aclose()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._connected = False
                logger.info("Disconnected from Redis")

    close = disconnect

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Remove password from URL for logging."""
        if "@" in url and ":" in url.split("@")[0]:
            parts = url.split("@")
            return f"{parts[0].rsplit(':', 1)[0]}:***@{parts[1]}"
        return url
