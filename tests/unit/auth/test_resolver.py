"""Unit tests for AuthResolver."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from wpmcp_core.auth import (
    AuthResolver,
    IdentityKind,
    Permission,
    ResolvedIdentity,
    TokenPayload,
    TokenScope,
    TokenService,
    require_permission,
    require_tier,
)
from wpmcp_core.errors import WpmcpError
from wpmcp_core.storage import MemoryStateStore
from wpmcp_core.types import AdminRole, TenantStatus, Tier
from wpmcp_core.usage import current_period

LEGACY_HEADERS = {
    "X-WordPress-URL": "https://legacy.example.com",
    "X-WordPress-Username": "admin",
    "X-WordPress-Password": "abcd efgh",
}


@pytest.fixture
def resolver(token_service, vault, store, plans):
    return AuthResolver(token_service, vault, store, plans)


@pytest.fixture
async def api_key(vault, customer):
    connection = await vault.create_connection(
        customer.id, "Blog", "https://blog.example.com", "admin", "secret"
    )
    return await vault.create_api_key(customer.id, connection.id)


async def _error_code(resolver, headers) -> str:
    with pytest.raises(WpmcpError) as exc_info:
        await resolver.resolve(headers)
    return exc_info.value.code


class TestTokenResolution:
    """Tests for bearer token resolution."""

    @pytest.mark.asyncio
    async def test_tenant_token(self, resolver, token_service, customer):
        token = token_service.issue_tenant_token(customer.id, customer.email, customer.tier)
        identity = await resolver.resolve({"Authorization": f"Bearer {token}"})

        assert identity.kind == IdentityKind.TENANT
        assert identity.tenant_id == customer.id
        assert identity.has_permission(Permission.KEYS_MANAGE)
        assert identity.usage_period == current_period()
        assert identity.usage_limit == 1000

    @pytest.mark.asyncio
    async def test_tier_comes_from_account_not_token(self, resolver, token_service, customer):
        """Test a stale tier claim does not override the stored plan."""
        token = token_service.issue_tenant_token(customer.id, customer.email, Tier.ENTERPRISE)
        identity = await resolver.resolve({"authorization": f"Bearer {token}"})
        assert identity.tier == Tier.FREE

    @pytest.mark.asyncio
    async def test_admin_token(self, resolver, token_service):
        token = token_service.issue_admin_token("admin_1", AdminRole.ADMIN)
        identity = await resolver.resolve({"Authorization": f"Bearer {token}"})

        assert identity.kind == IdentityKind.ADMIN
        assert identity.role == AdminRole.ADMIN
        assert identity.tenant_id is None
        assert identity.has_permission(Permission.CUSTOMERS_MANAGE)
        assert not identity.has_permission(Permission.ADMINS_MANAGE)

    @pytest.mark.asyncio
    async def test_admin_scope_without_role_is_invalid(self, resolver, token_service, monkeypatch):
        now = datetime.now(UTC)
        payload = TokenPayload(
            subject="admin_1",
            scope=TokenScope.ADMIN,
            issued_at=now,
            expires_at=now + timedelta(hours=1),
        )
        monkeypatch.setattr(token_service, "verify_token", lambda token: payload)

        assert await _error_code(resolver, {"Authorization": "Bearer a.b.c"}) == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_forged_token_is_invalid_token(self, resolver):
        """Test a JWT-shaped bearer that fails verification is never downgraded."""
        forged = jwt.encode({"sub": "x", "iat": 1, "exp": 2}, "wrong-secret-0123456789abcdef0")
        assert await _error_code(resolver, {"Authorization": f"Bearer {forged}"}) == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_invalid_bearer_does_not_fall_back_to_legacy(self, resolver, token_service, vault, store, plans):
        legacy_resolver = AuthResolver(token_service, vault, store, plans, legacy_headers_enabled=True)
        headers = {"Authorization": "Bearer a.b.c", **LEGACY_HEADERS}
        assert await _error_code(legacy_resolver, headers) == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_revoked_token(self, vault, store, plans, customer):
        tokens = TokenService("revocation-secret-0123456789abcdef", deny_list=MemoryStateStore())
        resolver = AuthResolver(tokens, vault, store, plans)
        token = tokens.issue_tenant_token(customer.id, customer.email, customer.tier)
        await tokens.revoke(tokens.verify_token(token))

        assert await _error_code(resolver, {"Authorization": f"Bearer {token}"}) == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_suspended_account(self, resolver, token_service, store, customer):
        customer.status = TenantStatus.SUSPENDED
        await store.update_customer(customer)
        token = token_service.issue_tenant_token(customer.id, customer.email, customer.tier)

        with pytest.raises(WpmcpError) as exc_info:
            await resolver.resolve({"Authorization": f"Bearer {token}"})
        assert exc_info.value.code == "ACCOUNT_INACTIVE"
        assert exc_info.value.http_status == 403
        assert "suspended" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_deleted_account(self, resolver, token_service):
        token = token_service.issue_tenant_token("gone", "g@example.com", Tier.FREE)
        assert await _error_code(resolver, {"Authorization": f"Bearer {token}"}) == "ACCOUNT_INACTIVE"


class TestApiKeyResolution:
    """Tests for API key resolution."""

    @pytest.mark.asyncio
    async def test_api_key_as_bearer(self, resolver, api_key, customer):
        identity = await resolver.resolve({"Authorization": f"Bearer {api_key.plaintext_key}"})

        assert identity.kind == IdentityKind.API_KEY
        assert identity.tenant_id == customer.id
        assert identity.connection_id == api_key.record.connection_id
        assert identity.api_key_prefix == api_key.record.key_prefix
        assert identity.permissions == {Permission.MCP_CALL}

    @pytest.mark.asyncio
    async def test_api_key_header(self, resolver, api_key):
        identity = await resolver.resolve({"X-API-Key": api_key.plaintext_key})
        assert identity.kind == IdentityKind.API_KEY

    @pytest.mark.asyncio
    async def test_resolution_touches_last_used(self, resolver, api_key, store):
        await resolver.resolve({"X-API-Key": api_key.plaintext_key})
        record = await store.get_api_key(api_key.record.id)
        assert record.last_used_at is not None

    @pytest.mark.asyncio
    async def test_revoked_key(self, resolver, vault, api_key, customer):
        await vault.revoke_api_key(api_key.record.id, customer.id)
        headers = {"Authorization": f"Bearer {api_key.plaintext_key}"}
        assert await _error_code(resolver, headers) == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_unknown_key(self, resolver):
        headers = {"X-API-Key": "wpm_live_" + "Z" * 32}
        assert await _error_code(resolver, headers) == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_unknown_key_does_not_fall_back_to_legacy(self, token_service, vault, store, plans):
        resolver = AuthResolver(token_service, vault, store, plans, legacy_headers_enabled=True)
        headers = {"X-API-Key": "wpm_live_" + "Z" * 32, **LEGACY_HEADERS}
        assert await _error_code(resolver, headers) == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_key_of_suspended_account(self, resolver, api_key, store, customer):
        customer.status = TenantStatus.SUSPENDED
        await store.update_customer(customer)
        headers = {"X-API-Key": api_key.plaintext_key}
        assert await _error_code(resolver, headers) == "ACCOUNT_INACTIVE"


class TestLegacyResolution:
    """Tests for raw WordPress credential headers."""

    @pytest.mark.asyncio
    async def test_enabled(self, token_service, vault, store, plans):
        resolver = AuthResolver(token_service, vault, store, plans, legacy_headers_enabled=True)
        identity = await resolver.resolve(LEGACY_HEADERS)

        assert identity.kind == IdentityKind.LEGACY
        assert not identity.is_metered
        assert identity.legacy_credentials.url == "https://legacy.example.com"

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, resolver):
        assert await _error_code(resolver, LEGACY_HEADERS) == "MISSING_TOKEN"

    @pytest.mark.asyncio
    async def test_incomplete_headers(self, token_service, vault, store, plans):
        resolver = AuthResolver(token_service, vault, store, plans, legacy_headers_enabled=True)
        headers = {"X-WordPress-URL": "https://legacy.example.com"}
        assert await _error_code(resolver, headers) == "MISSING_TOKEN"


class TestMissingCredentials:
    """Tests for requests without any credential."""

    @pytest.mark.asyncio
    async def test_no_headers(self, resolver):
        assert await _error_code(resolver, {}) == "MISSING_TOKEN"

    @pytest.mark.asyncio
    async def test_non_bearer_scheme_ignored(self, resolver):
        assert await _error_code(resolver, {"Authorization": "Basic abc"}) == "MISSING_TOKEN"

    @pytest.mark.asyncio
    async def test_opaque_bearer(self, resolver):
        """Test a non-JWT, non-key bearer is reported as bad credentials."""
        assert await _error_code(resolver, {"Authorization": "Bearer nonsense"}) == "INVALID_CREDENTIALS"


class TestGuards:
    """Tests for require_permission / require_tier."""

    def test_require_permission(self):
        identity = ResolvedIdentity(
            kind=IdentityKind.API_KEY, subject_id="k", permissions=frozenset({Permission.MCP_CALL})
        )
        require_permission(identity, Permission.MCP_CALL)
        with pytest.raises(WpmcpError) as exc_info:
            require_permission(identity, Permission.WEBHOOKS_MANAGE)
        assert exc_info.value.code == "PERMISSION_DENIED"

    def test_require_tier(self):
        identity = ResolvedIdentity(kind=IdentityKind.TENANT, subject_id="t", tier=Tier.STARTER)
        require_tier(identity, Tier.FREE)
        require_tier(identity, Tier.STARTER)
        with pytest.raises(WpmcpError) as exc_info:
            require_tier(identity, Tier.PRO)
        assert exc_info.value.code == "TIER_REQUIRED"
        assert "pro" in exc_info.value.message
