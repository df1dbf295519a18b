"""Per-tenant request rate limiting.

- Fixed window per tenant (default 60 seconds)
- Counters stored in Redis
- Atomic check-and-increment via Lua script

The limit comes from the tenant's plan (requests per minute).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from redis.exceptions import NoScriptError, RedisError

if TYPE_CHECKING:
    from wpmcp_core.storage.redis import RedisConnection

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 60
DEFAULT_WINDOW_SECONDS = 60

# Redis Lua script for atomic fixed-window counting
# Returns {allowed, count, ttl}
RATE_LIMIT_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])

local count = tonumber(redis.call('GET', key) or '0')
if count >= limit then
    return {0, count, redis.call('TTL', key)}
end

count = redis.call('INCR', key)
if count == 1 then
    redis.call('EXPIRE', key, window)
end
return {1, count, redis.call('TTL', key)}
"""


class RateLimiter:
    """Per-tenant fixed-window rate limiter.

    Uses Redis for distributed rate limiting with atomic operations.
    Falls back to allowing requests if Redis is unavailable (fail-open).
    """

    def __init__(
        self,
        redis_conn: RedisConnection,
        default_limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
    ):
        """Initialize rate limiter.

        Args:
            redis_conn: Shared Redis connection
            default_limit: Requests per window when no plan limit is given
            window_seconds: Window length in seconds
        """
        self._redis = redis_conn
        self._default_limit = default_limit
        self._window_seconds = window_seconds
        self._script_sha: str | None = None

    async def _ensure_script(self) -> str | None:
        """Load Lua script into Redis and cache SHA."""
        if self._script_sha:
            return self._script_sha

        if not self._redis.connected or not self._redis.client:
            return None

        try:
            self._script_sha = await self._redis.client.script_load(RATE_LIMIT_SCRIPT)
            return self._script_sha
        except RedisError as e:
            logger.warning(f"Failed to load rate limit script: {e}")
            return None

    def _window_key(self, tenant_id: str) -> str:
        window = int(time.time()) // self._window_seconds
        return self._redis.key("rate", tenant_id, str(window))

    async def check_rate_limit(
        self,
        tenant_id: str,
        limit: int | None = None,
    ) -> tuple[bool, int]:
        """Check if a request is allowed in the current window.

        Args:
            tenant_id: Tenant to check
            limit: Requests per window (from the tenant's plan)

        Returns:
            Tuple of (allowed: bool, retry_after_seconds: int)
            retry_after is 0 if allowed
        """
        if not self._redis.connected:
            logger.warning("[AUTH] Redis unavailable. Rate limiting disabled.")
            return (True, 0)

        limit = limit or self._default_limit
        key = self._window_key(tenant_id)

        try:
            script_sha = await self._ensure_script()
            if not script_sha:
                return (True, 0)  # Fail-open

            try:
                result = await self._redis.client.evalsha(
                    script_sha, 1, key, limit, self._window_seconds
                )
            except NoScriptError:
                # Redis restarted and lost the script cache
                self._script_sha = None
                script_sha = await self._ensure_script()
                if not script_sha:
                    return (True, 0)
                result = await self._redis.client.evalsha(
                    script_sha, 1, key, limit, self._window_seconds
                )

            allowed, _count, ttl = (int(v) for v in result)
            if allowed == 1:
                return (True, 0)
            retry_after = ttl if ttl > 0 else self._window_seconds
            return (False, retry_after)

        except (RedisError, OSError) as e:
            logger.warning(f"Rate limit check failed: {e}")
            return (True, 0)  # Fail-open

    async def get_remaining(self, tenant_id: str, limit: int | None = None) -> int | None:
        """Get remaining requests in the current window.

        Returns None if Redis unavailable.
        """
        if not self._redis.connected or not self._redis.client:
            return None

        limit = limit or self._default_limit
        try:
            data = await self._redis.client.get(self._window_key(tenant_id))
            used = int(data) if data else 0
            return max(limit - used, 0)
        except (RedisError, OSError):
            return None
