"""Tests for TrustLayer wiring."""

import io
from unittest.mock import AsyncMock

import pytest

from wpmcp_core.application import TrustLayer
from wpmcp_core.auth.models import Customer
from wpmcp_core.config import TrustLayerConfig
from wpmcp_core.errors import WpmcpError
from wpmcp_core.storage import MemoryStateStore, MemoryTrustStore, RedisStateStore, SQLiteTrustStore
from wpmcp_core.types import StorageBackend, Tier


@pytest.mark.asyncio
async def test_initialize_builds_components(trust_config):
    layer = TrustLayer(config=trust_config, log_output=io.StringIO())
    await layer.initialize()
    try:
        assert layer.initialized
        assert isinstance(layer.store, MemoryTrustStore)
        assert isinstance(layer.state_store, MemoryStateStore)
        assert layer.redis is None
        assert layer.rate_limiter is None
        for component in (
            layer.secret_box,
            layer.dispatcher,
            layer.webhook_service,
            layer.vault,
            layer.tokens,
            layer.usage_gate,
            layer.resolver,
        ):
            assert component is not None
    finally:
        await layer.shutdown()
    assert not layer.initialized


@pytest.mark.asyncio
async def test_initialize_is_idempotent(trust_config):
    layer = TrustLayer(config=trust_config, log_output=io.StringIO())
    await layer.initialize()
    vault = layer.vault
    await layer.initialize()
    assert layer.vault is vault
    await layer.shutdown()
    await layer.shutdown()


@pytest.mark.asyncio
@pytest.mark.parametrize("section,name", [("crypto", "master_key"), ("tokens", "secret")])
async def test_missing_secret_fails_startup(trust_config, section, name):
    setattr(getattr(trust_config, section), name, "")
    layer = TrustLayer(config=trust_config, log_output=io.StringIO())

    with pytest.raises(WpmcpError) as exc_info:
        await layer.initialize()

    assert exc_info.value.code == "CONFIG_INVALID"
    assert f"{section}.{name}" in str(exc_info.value.detail)
    assert not layer.initialized


@pytest.mark.asyncio
async def test_default_config_has_no_secrets():
    layer = TrustLayer(config=TrustLayerConfig(), log_output=io.StringIO())
    with pytest.raises(WpmcpError):
        await layer.initialize()


@pytest.mark.asyncio
async def test_sqlite_backend(trust_config, tmp_path):
    trust_config.storage.backend = StorageBackend.SQLITE
    trust_config.storage.sqlite_path = str(tmp_path / "trust.db")
    layer = TrustLayer(config=trust_config, log_output=io.StringIO())
    await layer.initialize()
    try:
        assert isinstance(layer.store, SQLiteTrustStore)
        await layer.store.create_customer(Customer(id="t1", email="t1@example.com"))
        assert (await layer.store.get_customer("t1")).email == "t1@example.com"
    finally:
        await layer.shutdown()


@pytest.mark.asyncio
async def test_redis_client_enables_rate_limiting(trust_config):
    client = AsyncMock()
    layer = TrustLayer(config=trust_config, redis_client=client, log_output=io.StringIO())
    await layer.initialize()

    assert layer.redis is not None and layer.redis.connected
    assert isinstance(layer.state_store, RedisStateStore)
    assert layer.rate_limiter is not None

    await layer.shutdown()
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_rate_limiting_can_be_disabled(trust_config):
    trust_config.usage.rate_limiting_enabled = False
    layer = TrustLayer(config=trust_config, redis_client=AsyncMock(), log_output=io.StringIO())
    await layer.initialize()
    assert layer.rate_limiter is None
    await layer.shutdown()


@pytest.mark.asyncio
async def test_issued_token_resolves(trust_config):
    """A token issued by the layer resolves through the layer's resolver."""
    store = MemoryTrustStore()
    await store.create_customer(Customer(id="cust_9", email="nine@example.com", tier=Tier.PRO))
    layer = TrustLayer(config=trust_config, store=store, log_output=io.StringIO())
    await layer.initialize()
    try:
        token = layer.tokens.issue_tenant_token("cust_9", "nine@example.com", Tier.PRO)
        identity = await layer.resolver.resolve({"Authorization": f"Bearer {token}"})
        assert identity.tenant_id == "cust_9"
        assert identity.tier == Tier.PRO
    finally:
        await layer.shutdown()


@pytest.mark.asyncio
async def test_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("WPMCP_MASTER_KEY", "file-master-key-0123456789abcdef")
    config_file = tmp_path / "wpmcp-config.yaml"
    config_file.write_text(
        "crypto:\n"
        "  master_key: ${WPMCP_MASTER_KEY}\n"
        "tokens:\n"
        "  secret: file-token-secret-0123456789abcdef\n"
        "logging:\n"
        "  level: WARN\n"
    )
    layer = TrustLayer(config_path=config_file, log_output=io.StringIO())
    await layer.initialize()
    try:
        assert layer.config.crypto.master_key == "file-master-key-0123456789abcdef"
    finally:
        await layer.shutdown()
