"""Unit tests for the per-tenant rate limiter."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoScriptError

from wpmcp_core.auth import RateLimiter
from wpmcp_core.storage import RedisConnection


@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.script_load.return_value = "sha-1"
    return client


@pytest.fixture
def limiter(redis_client):
    return RateLimiter(RedisConnection(client=redis_client), default_limit=60, window_seconds=60)


class TestCheckRateLimit:
    """Tests for check_rate_limit."""

    @pytest.mark.asyncio
    async def test_allowed(self, limiter, redis_client):
        redis_client.evalsha.return_value = [1, 1, 60]
        assert await limiter.check_rate_limit("cust_1", 10) == (True, 0)

    @pytest.mark.asyncio
    async def test_denied_returns_ttl(self, limiter, redis_client):
        redis_client.evalsha.return_value = [0, 10, 42]
        assert await limiter.check_rate_limit("cust_1", 10) == (False, 42)

    @pytest.mark.asyncio
    async def test_denied_without_ttl_uses_window(self, limiter, redis_client):
        redis_client.evalsha.return_value = [0, 10, -1]
        assert await limiter.check_rate_limit("cust_1", 10) == (False, 60)

    @pytest.mark.asyncio
    async def test_key_is_namespaced_per_tenant(self, limiter, redis_client):
        redis_client.evalsha.return_value = [1, 1, 60]
        await limiter.check_rate_limit("cust_1", 10)

        sha, numkeys, key, limit, window = redis_client.evalsha.call_args.args
        assert sha == "sha-1"
        assert numkeys == 1
        assert key.startswith("wpmcp:rate:cust_1:")
        assert (limit, window) == (10, 60)

    @pytest.mark.asyncio
    async def test_default_limit(self, limiter, redis_client):
        redis_client.evalsha.return_value = [1, 1, 60]
        await limiter.check_rate_limit("cust_1")
        assert redis_client.evalsha.call_args.args[3] == 60

    @pytest.mark.asyncio
    async def test_script_reloaded_after_noscript(self, limiter, redis_client):
        """Test the script is reloaded when Redis lost its cache."""
        redis_client.evalsha.side_effect = [NoScriptError("gone"), [1, 1, 60]]
        assert await limiter.check_rate_limit("cust_1", 10) == (True, 0)
        assert redis_client.script_load.await_count == 2


class TestFailOpen:
    """The limiter never blocks traffic because Redis is unhealthy."""

    @pytest.mark.asyncio
    async def test_not_connected(self):
        limiter = RateLimiter(RedisConnection())
        assert await limiter.check_rate_limit("cust_1", 1) == (True, 0)

    @pytest.mark.asyncio
    async def test_redis_error(self, limiter, redis_client):
        redis_client.evalsha.side_effect = RedisConnectionError("down")
        assert await limiter.check_rate_limit("cust_1", 1) == (True, 0)

    @pytest.mark.asyncio
    async def test_script_load_error(self, limiter, redis_client):
        redis_client.script_load.side_effect = RedisConnectionError("down")
        assert await limiter.check_rate_limit("cust_1", 1) == (True, 0)


class TestGetRemaining:
    """Tests for get_remaining."""

    @pytest.mark.asyncio
    async def test_remaining(self, limiter, redis_client):
        redis_client.get.return_value = "7"
        assert await limiter.get_remaining("cust_1", 10) == 3

    @pytest.mark.asyncio
    async def test_never_negative(self, limiter, redis_client):
        redis_client.get.return_value = "70"
        assert await limiter.get_remaining("cust_1", 10) == 0

    @pytest.mark.asyncio
    async def test_unavailable(self):
        assert await RateLimiter(RedisConnection()).get_remaining("cust_1") is None
