"""One-time state for OAuth/SSO CSRF values and the token deny-list.

Values expire after a TTL and are deleted on first read, so a state value
can never be replayed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from wpmcp_core.crypto import random_token

from .redis import RedisConnection

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


class OneTimeStateStore(ABC):
    """Short-lived values consumed at most once."""

    def __init__(self, default_ttl: int = DEFAULT_TTL_SECONDS) -> None:
        self._default_ttl = default_ttl

    @abstractmethod
    async def put(self, namespace: str, key: str, value: str, ttl: int | None = None) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    async def consume(self, namespace: str, key: str) -> str | None:
        """Read and delete a value. A second call returns None."""
        ...

    @abstractmethod
    async def exists(self, namespace: str, key: str) -> bool:
        """Check presence without consuming."""
        ...

    async def issue(self, namespace: str, value: str = "1", ttl: int | None = None) -> str:
        """Store a value under a fresh random key and return the key."""
        key = random_token(32)
        await self.put(namespace, key, value, ttl)
        return key


class MemoryStateStore(OneTimeStateStore):
    """In-process state store with monotonic-clock expiry."""

    def __init__(self, default_ttl: int = DEFAULT_TTL_SECONDS) -> None:
        super().__init__(default_ttl)
        self._values: dict[tuple[str, str], tuple[str, float]] = {}
        self._lock = asyncio.Lock()

    async def put(self, namespace: str, key: str, value: str, ttl: int | None = None) -> None:
        expires = time.monotonic() + (ttl if ttl is not None else self._default_ttl)
        async with self._lock:
            self._values[(namespace, key)] = (value, expires)

    async def consume(self, namespace: str, key: str) -> str | None:
        async with self._lock:
            entry = self._values.pop((namespace, key), None)
        if entry is None:
            return None
        value, expires = entry
        if time.monotonic() >= expires:
            return None
        return value

    async def exists(self, namespace: str, key: str) -> bool:
        async with self._lock:
            entry = self._values.get((namespace, key))
            if entry is None:
                return False
            if time.monotonic() >= entry[1]:
                del self._values[(namespace, key)]
                return False
            return True


class RedisStateStore(OneTimeStateStore):
    """Redis-backed state store: SET with EX, then GETDEL on read.

    Unlike the rate limiter this store fails closed: if Redis is unreachable
    the error propagates and the flow that needed the state is rejected.
    """

    def __init__(self, connection: RedisConnection, default_ttl: int = DEFAULT_TTL_SECONDS):
        super().__init__(default_ttl)
        self._redis = connection

    def _client(self):
        if not self._redis.connected or self._redis.client is None:
            raise ConnectionError("Redis is not connected")
        return self._redis.client

    async def put(self, namespace: str, key: str, value: str, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        await self._client().set(self._redis.key("state", namespace, key), value, ex=max(ttl, 1))

    async def consume(self, namespace: str, key: str) -> str | None:
        return await self._client().getdel(self._redis.key("state", namespace, key))

    async def exists(self, namespace: str, key: str) -> bool:
        return bool(await self._client().exists(self._redis.key("state", namespace, key)))
