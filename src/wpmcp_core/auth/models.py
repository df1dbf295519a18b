"""Tenant, credential and identity models for the trust layer.

Core concepts:
- Customer: a tenant account with a plan tier and a status
- Connection: one WordPress site, credentials stored encrypted
- ApiKeyRecord: long-lived credential bound to a (tenant, connection) pair
- ResolvedIdentity: who is calling, attached to request.state by the auth middleware
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from wpmcp_core.types import AdminRole, ApiKeyStatus, ConnectionStatus, TenantStatus, Tier


def utc_now() -> datetime:
    return datetime.now(UTC)


class Permission(str, Enum):
    """Operations an identity can perform."""

    # Tenant permissions
    MCP_CALL = "mcp:call"
    KEYS_MANAGE = "keys:manage"
    CONNECTIONS_MANAGE = "connections:manage"
    WEBHOOKS_MANAGE = "webhooks:manage"
    USAGE_VIEW = "usage:view"

    # Operator permissions
    CUSTOMERS_MANAGE = "admin:customers"
    SUBSCRIPTIONS_MANAGE = "admin:subscriptions"
    ADMINS_MANAGE = "admin:admins"
    LOGS_VIEW = "admin:logs"
    INCIDENTS_MANAGE = "admin:incidents"
    BILLING_ACCESS = "admin:billing"


TENANT_PERMISSIONS: frozenset[Permission] = frozenset(
    {
        Permission.MCP_CALL,
        Permission.KEYS_MANAGE,
        Permission.CONNECTIONS_MANAGE,
        Permission.WEBHOOKS_MANAGE,
        Permission.USAGE_VIEW,
    }
)

API_KEY_PERMISSIONS: frozenset[Permission] = frozenset({Permission.MCP_CALL})

ADMIN_ROLE_PERMISSIONS: dict[AdminRole, frozenset[Permission]] = {
    AdminRole.SUPER_ADMIN: frozenset(
        {
            Permission.CUSTOMERS_MANAGE,
            Permission.SUBSCRIPTIONS_MANAGE,
            Permission.ADMINS_MANAGE,
            Permission.LOGS_VIEW,
            Permission.INCIDENTS_MANAGE,
            Permission.BILLING_ACCESS,
        }
    ),
    AdminRole.ADMIN: frozenset(
        {
            Permission.CUSTOMERS_MANAGE,
            Permission.SUBSCRIPTIONS_MANAGE,
            Permission.LOGS_VIEW,
            Permission.INCIDENTS_MANAGE,
        }
    ),
    AdminRole.SUPPORT: frozenset({Permission.LOGS_VIEW}),
}


@dataclass
class Customer:
    """Tenant account."""

    id: str
    email: str
    tier: Tier = Tier.FREE
    status: TenantStatus = TenantStatus.ACTIVE
    name: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE


@dataclass
class Connection:
    """A WordPress site owned by a tenant.

    Username and application password are stored encrypted; the plaintext
    only exists inside WordPressCredentials for the duration of a request.
    """

    id: str
    tenant_id: str
    name: str
    url: str
    encrypted_username: str = field(repr=False)
    encrypted_password: str = field(repr=False)
    status: ConnectionStatus = ConnectionStatus.ACTIVE
    created_at: datetime = field(default_factory=utc_now)

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize without any credential material."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class WordPressCredentials:
    """Decrypted connection credentials. Never persisted, never logged."""

    url: str
    username: str
    password: str = field(repr=False)

    @property
    def api_base(self) -> str:
        """WordPress REST root for the site."""
        return f"{self.url.rstrip('/')}/wp-json/wp/v2"

    def basic_auth_header(self) -> str:
        """Build the Authorization header value.

        WordPress shows application passwords in space-separated groups;
        the spaces are not part of the secret.
        """
        password = "".join(self.password.split())
        token = base64.b64encode(f"{self.username}:{password}".encode()).decode("ascii")
        return f"Basic {token}"


@dataclass
class ApiKeyRecord:
    """Stored form of an API key. Only the SHA-256 hash is kept."""

    id: str
    tenant_id: str
    connection_id: str
    key_hash: str = field(repr=False)
    key_prefix: str
    name: str = "Default"
    status: ApiKeyStatus = ApiKeyStatus.ACTIVE
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ApiKeyStatus.ACTIVE

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize for listing. Never includes the hash."""
        return {
            "id": self.id,
            "connection_id": self.connection_id,
            "key_prefix": self.key_prefix,
            "name": self.name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }


@dataclass
class CreatedApiKey:
    """Result of key creation: the one place the plaintext key exists."""

    plaintext_key: str = field(repr=False)
    record: ApiKeyRecord


class TokenScope(str, Enum):
    """Which signing context a token belongs to."""

    TENANT = "tenant"
    ADMIN = "admin"


@dataclass
class TokenPayload:
    """Verified identity token claims."""

    subject: str
    scope: TokenScope
    issued_at: datetime
    expires_at: datetime
    token_id: str | None = None
    email: str | None = None
    tier: Tier | None = None
    role: AdminRole | None = None

    @property
    def is_admin(self) -> bool:
        return self.scope == TokenScope.ADMIN


class IdentityKind(str, Enum):
    """How the caller authenticated."""

    TENANT = "tenant"  # Dashboard session token
    ADMIN = "admin"  # Operator session token
    API_KEY = "api_key"  # MCP client key
    LEGACY = "legacy"  # Raw WordPress credentials in headers


@dataclass
class ResolvedIdentity:
    """Request context with the resolved caller.

    Attached to request.state.identity after the auth middleware runs.
    """

    kind: IdentityKind
    subject_id: str
    tenant_id: str | None = None
    tier: Tier | None = None
    role: AdminRole | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    connection_id: str | None = None
    api_key_id: str | None = None
    api_key_prefix: str | None = None  # For logging (never log full key)
    usage_period: str | None = None
    usage_limit: int | None = None
    legacy_credentials: WordPressCredentials | None = None
    authenticated_at: datetime = field(default_factory=utc_now)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    @property
    def is_admin(self) -> bool:
        return self.kind == IdentityKind.ADMIN

    @property
    def is_metered(self) -> bool:
        """Whether requests from this identity count against a tenant quota."""
        return self.kind in (IdentityKind.TENANT, IdentityKind.API_KEY) and self.tenant_id is not None
