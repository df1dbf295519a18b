"""Unit tests for TokenService."""

import time

import jwt
import pytest

from wpmcp_core.auth import TokenScope, TokenService
from wpmcp_core.storage import MemoryStateStore
from wpmcp_core.types import AdminRole, Tier

SECRET = "tenant-secret-0123456789abcdef0123456789"
ADMIN_SECRET = "admin-secret-0123456789abcdef0123456789"


@pytest.fixture
def service() -> TokenService:
    return TokenService(SECRET, admin_secret=ADMIN_SECRET)


def _claims(**overrides):
    now = int(time.time())
    claims = {"sub": "cust_1", "email": "a@example.com", "tier": "pro", "iat": now, "exp": now + 60}
    claims.update(overrides)
    return claims


class TestTenantTokens:
    """Tests for tenant-context tokens."""

    def test_roundtrip(self, service):
        """Test an issued tenant token verifies with its claims."""
        token = service.issue_tenant_token("cust_1", "a@example.com", Tier.PRO)
        payload = service.verify_token(token)

        assert payload is not None
        assert payload.scope == TokenScope.TENANT
        assert payload.subject == "cust_1"
        assert payload.email == "a@example.com"
        assert payload.tier == Tier.PRO
        assert payload.token_id
        assert not payload.is_admin

    def test_lifetime_is_24_hours(self, service):
        payload = service.verify_token(service.issue_tenant_token("c", "e@x.io", "free"))
        assert (payload.expires_at - payload.issued_at).total_seconds() == 24 * 60 * 60

    def test_expired_token_rejected(self):
        """Test a token past its exp is refused."""
        expired = TokenService(SECRET, tenant_ttl=-10)
        token = expired.issue_tenant_token("cust_1", "a@example.com", "free")
        assert expired.verify_token(token) is None

    def test_forged_signature_rejected(self, service):
        token = jwt.encode(_claims(), "some-other-secret-0123456789abcdef", algorithm="HS256")
        assert service.verify_token(token) is None

    def test_is_admin_claim_in_tenant_context_rejected(self, service):
        """Test a tenant-signed token carrying isAdmin at all is refused."""
        for flag in (True, False):
            token = jwt.encode(_claims(isAdmin=flag, role="admin"), SECRET, algorithm="HS256")
            assert service.verify_token(token) is None

    def test_missing_required_claim_rejected(self, service):
        claims = _claims()
        del claims["exp"]
        assert service.verify_token(jwt.encode(claims, SECRET, algorithm="HS256")) is None

    def test_unknown_tier_rejected(self, service):
        token = jwt.encode(_claims(tier="platinum"), SECRET, algorithm="HS256")
        assert service.verify_token(token) is None

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "wpm_live_" + "a" * 32])
    def test_malformed_rejected(self, service, token):
        """Test anything without exactly three segments is refused."""
        assert service.verify_token(token) is None

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestAdminTokens:
    """Tests for operator-context tokens."""

    def test_roundtrip(self, service):
        token = service.issue_admin_token("admin_1", AdminRole.SUPPORT)
        payload = service.verify_token(token)

        assert payload is not None
        assert payload.is_admin
        assert payload.role == AdminRole.SUPPORT
        assert payload.subject == "admin_1"

    def test_lifetime_is_8_hours(self, service):
        payload = service.verify_token(service.issue_admin_token("a", "admin"))
        assert (payload.expires_at - payload.issued_at).total_seconds() == 8 * 60 * 60

    def test_admin_claims_under_tenant_secret_rejected(self, service):
        """Test isAdmin only counts when signed with the admin secret."""
        token = jwt.encode(_claims(isAdmin=True, role="super_admin"), SECRET, algorithm="HS256")
        assert service.verify_token(token) is None

    def test_admin_secret_without_is_admin_rejected(self, service):
        """Test a token under the admin secret lacking isAdmin is not a tenant token."""
        token = jwt.encode(_claims(), ADMIN_SECRET, algorithm="HS256")
        assert service.verify_token(token) is None

    def test_unknown_role_rejected(self, service):
        token = jwt.encode(_claims(isAdmin=True, role="owner"), ADMIN_SECRET, algorithm="HS256")
        assert service.verify_token(token) is None

    def test_is_admin_must_be_true(self, service):
        token = jwt.encode(_claims(isAdmin="yes", role="admin"), ADMIN_SECRET, algorithm="HS256")
        assert service.verify_token(token) is None


class TestRevocation:
    """Tests for the token deny-list."""

    @pytest.mark.asyncio
    async def test_revoked_token_is_reported(self):
        service = TokenService(SECRET, deny_list=MemoryStateStore())
        payload = service.verify_token(service.issue_tenant_token("c", "e@x.io", "free"))

        assert not await service.is_revoked(payload)
        assert await service.revoke(payload)
        assert await service.is_revoked(payload)

    @pytest.mark.asyncio
    async def test_revoke_without_deny_list(self, service):
        payload = service.verify_token(service.issue_tenant_token("c", "e@x.io", "free"))
        assert await service.revoke(payload) is False
        assert await service.is_revoked(payload) is False
