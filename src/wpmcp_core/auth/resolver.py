"""Auth resolver: turns request headers into a ResolvedIdentity.

Resolution order:
1. ``Authorization: Bearer <token>`` that verifies as a signed token
2. Bearer value or API-key header matching an active API key
3. Raw WordPress credentials in ``x-wordpress-*`` headers, when enabled
4. Otherwise an error: a presented credential that failed is never
   retried against a weaker path
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from wpmcp_core.errors import create_error
from wpmcp_core.types import TenantStatus, Tier
from wpmcp_core.usage.period import current_period
from wpmcp_core.usage.plans import PlanCatalog

from .models import (
    ADMIN_ROLE_PERMISSIONS,
    API_KEY_PERMISSIONS,
    TENANT_PERMISSIONS,
    ApiKeyRecord,
    Customer,
    IdentityKind,
    Permission,
    ResolvedIdentity,
    TokenPayload,
    WordPressCredentials,
)

if TYPE_CHECKING:
    from wpmcp_core.storage.base import TrustStore

    from .tokens import TokenService
    from .vault import CredentialVault

logger = logging.getLogger(__name__)

LEGACY_URL_HEADER = "x-wordpress-url"
LEGACY_USERNAME_HEADER = "x-wordpress-username"
LEGACY_PASSWORD_HEADER = "x-wordpress-password"


def _extract_bearer(headers: Mapping[str, str]) -> str | None:
    auth = headers.get("authorization", "")
    if not auth:
        return None
    scheme, _, value = auth.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def looks_like_jwt(value: str) -> bool:
    """Three dot-separated segments, as a signed token would have."""
    return value.count(".") == 2 and all(value.split("."))


class AuthResolver:
    """Resolves the caller of a request."""

    def __init__(
        self,
        tokens: TokenService,
        vault: CredentialVault,
        store: TrustStore,
        plans: PlanCatalog | None = None,
        legacy_headers_enabled: bool = False,
        api_key_header: str = "X-API-Key",
    ):
        self._tokens = tokens
        self._vault = vault
        self._store = store
        self._plans = plans or PlanCatalog()
        self._legacy_enabled = legacy_headers_enabled
        self._api_key_header = api_key_header.lower()

    async def resolve(self, headers: Mapping[str, str]) -> ResolvedIdentity:
        """Resolve request headers to an identity.

        Raises:
            WpmcpError: MISSING_TOKEN, INVALID_TOKEN, INVALID_CREDENTIALS or
                ACCOUNT_INACTIVE
        """
        h = {k.lower(): v for k, v in headers.items()}
        bearer = _extract_bearer(h)

        if bearer:
            payload = self._tokens.verify_token(bearer)
            if payload is not None:
                if await self._tokens.is_revoked(payload):
                    logger.info(f"[AUTH] Revoked token presented for '{payload.subject}'")
                    raise create_error("INVALID_TOKEN")
                return await self._from_token(payload)

            record = await self._vault.find_api_key_by_plaintext(bearer)
            if record is not None and record.is_active:
                return await self._from_api_key(record)

            if looks_like_jwt(bearer):
                raise create_error("INVALID_TOKEN")
            raise create_error("INVALID_CREDENTIALS")

        presented_key = h.get(self._api_key_header)
        if presented_key:
            record = await self._vault.find_api_key_by_plaintext(presented_key.strip())
            if record is not None and record.is_active:
                return await self._from_api_key(record)
            raise create_error("INVALID_CREDENTIALS")

        legacy = self._legacy_credentials(h)
        if legacy is not None:
            if self._legacy_enabled:
                return ResolvedIdentity(
                    kind=IdentityKind.LEGACY,
                    subject_id="legacy",
                    permissions=frozenset({Permission.MCP_CALL}),
                    legacy_credentials=legacy,
                )
            logger.info("[AUTH] WordPress credential headers ignored: legacy auth disabled")

        raise create_error("MISSING_TOKEN")

    async def _from_token(self, payload: TokenPayload) -> ResolvedIdentity:
        if payload.is_admin:
            if payload.role is None:
                raise create_error("INVALID_TOKEN")
            return ResolvedIdentity(
                kind=IdentityKind.ADMIN,
                subject_id=payload.subject,
                role=payload.role,
                permissions=ADMIN_ROLE_PERMISSIONS.get(payload.role, frozenset()),
            )

        customer = await self._active_customer(payload.subject)
        return ResolvedIdentity(
            kind=IdentityKind.TENANT,
            subject_id=customer.id,
            tenant_id=customer.id,
            tier=customer.tier,
            permissions=TENANT_PERMISSIONS,
            usage_period=current_period(),
            usage_limit=self._plans.monthly_limit(customer.tier),
        )

    async def _from_api_key(self, record: ApiKeyRecord) -> ResolvedIdentity:
        customer = await self._active_customer(record.tenant_id)
        await self._vault.touch_last_used(record.id)
        return ResolvedIdentity(
            kind=IdentityKind.API_KEY,
            subject_id=record.id,
            tenant_id=customer.id,
            tier=customer.tier,
            permissions=API_KEY_PERMISSIONS,
            connection_id=record.connection_id,
            api_key_id=record.id,
            api_key_prefix=record.key_prefix,
            usage_period=current_period(),
            usage_limit=self._plans.monthly_limit(customer.tier),
        )

    async def _active_customer(self, tenant_id: str) -> Customer:
        customer = await self._store.get_customer(tenant_id)
        if customer is None:
            raise create_error(
                "ACCOUNT_INACTIVE", status=TenantStatus.DELETED.value, tenant_id=tenant_id
            )
        if not customer.is_active:
            raise create_error(
                "ACCOUNT_INACTIVE", status=customer.status.value, tenant_id=tenant_id
            )
        return customer

    @staticmethod
    def _legacy_credentials(headers: Mapping[str, str]) -> WordPressCredentials | None:
        url = headers.get(LEGACY_URL_HEADER)
        username = headers.get(LEGACY_USERNAME_HEADER)
        password = headers.get(LEGACY_PASSWORD_HEADER)
        if not (url and username and password):
            return None
        return WordPressCredentials(url=url, username=username, password=password)


def require_permission(identity: ResolvedIdentity, permission: Permission) -> None:
    """Raise PERMISSION_DENIED unless the identity holds the permission."""
    if not identity.has_permission(permission):
        raise create_error(
            "PERMISSION_DENIED", permission=permission.value, tenant_id=identity.tenant_id
        )


def require_tier(identity: ResolvedIdentity, minimum: Tier) -> None:
    """Raise TIER_REQUIRED unless the identity's plan is at least ``minimum``."""
    if identity.tier is None or not identity.tier.at_least(minimum):
        raise create_error(
            "TIER_REQUIRED",
            required_tier=minimum.value,
            current_tier=identity.tier.value if identity.tier else "none",
            tenant_id=identity.tenant_id,
        )
