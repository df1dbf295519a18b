"""Unit tests for auth models."""

import base64

from wpmcp_core.auth import (
    ADMIN_ROLE_PERMISSIONS,
    API_KEY_PERMISSIONS,
    TENANT_PERMISSIONS,
    ApiKeyRecord,
    Connection,
    CreatedApiKey,
    Customer,
    IdentityKind,
    Permission,
    ResolvedIdentity,
    WordPressCredentials,
)
from wpmcp_core.types import AdminRole, TenantStatus, Tier


class TestWordPressCredentials:
    """Tests for decrypted connection credentials."""

    def test_api_base(self):
        """Test REST base is derived from the site URL."""
        creds = WordPressCredentials(url="https://blog.example.com/", username="u", password="p")
        assert creds.api_base == "https://blog.example.com/wp-json/wp/v2"

    def test_basic_auth_strips_spaces(self):
        """Test application password groups are joined before encoding."""
        creds = WordPressCredentials(
            url="https://blog.example.com", username="admin", password="abcd efgh ijkl"
        )
        header = creds.basic_auth_header()
        assert header.startswith("Basic ")
        assert base64.b64decode(header[6:]).decode() == "admin:abcdefghijkl"

    def test_repr_hides_password(self):
        creds = WordPressCredentials(url="https://x.test", username="u", password="hunter2")
        assert "hunter2" not in repr(creds)


class TestStoredModels:
    """Tests for stored record serialization."""

    def test_connection_public_dict_has_no_secrets(self):
        conn = Connection(
            id="c1",
            tenant_id="t1",
            name="Blog",
            url="https://blog.example.com",
            encrypted_username="ENC-U",
            encrypted_password="ENC-P",
        )
        public = conn.to_public_dict()
        assert "ENC-P" not in str(public)
        assert "ENC-U" not in repr(conn)
        assert public["status"] == "active"

    def test_api_key_public_dict_has_no_hash(self):
        record = ApiKeyRecord(
            id="k1", tenant_id="t1", connection_id="c1", key_hash="deadbeef", key_prefix="wpm_live_abc"
        )
        public = record.to_public_dict()
        assert "key_hash" not in public
        assert "deadbeef" not in repr(record)
        assert public["last_used_at"] is None

    def test_created_key_repr_hides_plaintext(self):
        record = ApiKeyRecord(
            id="k1", tenant_id="t1", connection_id="c1", key_hash="h", key_prefix="wpm_live_abc"
        )
        created = CreatedApiKey(plaintext_key="wpm_live_" + "x" * 32, record=record)
        assert "x" * 32 not in repr(created)

    def test_customer_is_active(self):
        assert Customer(id="t", email="a@b.c").is_active
        assert not Customer(id="t", email="a@b.c", status=TenantStatus.SUSPENDED).is_active


class TestPermissions:
    """Tests for permission sets."""

    def test_api_keys_can_only_call_mcp(self):
        assert API_KEY_PERMISSIONS == {Permission.MCP_CALL}

    def test_tenants_have_no_admin_permissions(self):
        assert all(not p.value.startswith("admin:") for p in TENANT_PERMISSIONS)

    def test_super_admin_has_every_admin_permission(self):
        admin_perms = {p for p in Permission if p.value.startswith("admin:")}
        assert ADMIN_ROLE_PERMISSIONS[AdminRole.SUPER_ADMIN] == admin_perms

    def test_support_is_read_only(self):
        assert ADMIN_ROLE_PERMISSIONS[AdminRole.SUPPORT] == {Permission.LOGS_VIEW}

    def test_only_super_admin_manages_admins(self):
        holders = [r for r, perms in ADMIN_ROLE_PERMISSIONS.items() if Permission.ADMINS_MANAGE in perms]
        assert holders == [AdminRole.SUPER_ADMIN]


class TestResolvedIdentity:
    """Tests for ResolvedIdentity helpers."""

    def test_metered_identities(self):
        """Test tenant and API key identities are metered; admin and legacy are not."""
        tenant = ResolvedIdentity(kind=IdentityKind.TENANT, subject_id="t", tenant_id="t", tier=Tier.FREE)
        key = ResolvedIdentity(kind=IdentityKind.API_KEY, subject_id="k", tenant_id="t")
        admin = ResolvedIdentity(kind=IdentityKind.ADMIN, subject_id="a", role=AdminRole.ADMIN)
        legacy = ResolvedIdentity(kind=IdentityKind.LEGACY, subject_id="legacy")

        assert tenant.is_metered
        assert key.is_metered
        assert not admin.is_metered
        assert not legacy.is_metered
        assert admin.is_admin

    def test_has_permission(self):
        identity = ResolvedIdentity(
            kind=IdentityKind.API_KEY, subject_id="k", permissions=API_KEY_PERMISSIONS
        )
        assert identity.has_permission(Permission.MCP_CALL)
        assert not identity.has_permission(Permission.KEYS_MANAGE)
