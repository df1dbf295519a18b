"""Signed identity tokens for dashboard sessions and operators.

Tokens are HS256 JWTs. Tenant and admin tokens are signed under separate
secrets; an admin token is only honoured when it verifies under the admin
secret and carries ``isAdmin: true``, and a tenant-context token carrying
``isAdmin`` at all is rejected.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import jwt

from wpmcp_core.crypto import generate_uuid
from wpmcp_core.types import AdminRole, Tier

from .models import TokenPayload, TokenScope

if TYPE_CHECKING:
    from wpmcp_core.storage.state import OneTimeStateStore

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
TENANT_TOKEN_TTL = 24 * 60 * 60
ADMIN_TOKEN_TTL = 8 * 60 * 60
REVOKED_NAMESPACE = "revoked_jti"


class TokenService:
    """Issues and verifies tenant and admin tokens."""

    def __init__(
        self,
        secret: str,
        admin_secret: str | None = None,
        tenant_ttl: int = TENANT_TOKEN_TTL,
        admin_ttl: int = ADMIN_TOKEN_TTL,
        deny_list: OneTimeStateStore | None = None,
    ):
        """Initialize token service.

        Args:
            secret: Tenant signing secret
            admin_secret: Operator signing secret (defaults to the tenant secret)
            tenant_ttl: Tenant token lifetime in seconds
            admin_ttl: Admin token lifetime in seconds
            deny_list: Optional store of revoked token ids
        """
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self._admin_secret = admin_secret or secret
        self._tenant_ttl = tenant_ttl
        self._admin_ttl = admin_ttl
        self._deny_list = deny_list

    def issue_tenant_token(self, tenant_id: str, email: str, tier: Tier | str) -> str:
        """Issue a dashboard session token."""
        now = int(time.time())
        claims = {
            "sub": tenant_id,
            "email": email,
            "tier": Tier(tier).value,
            "iat": now,
            "exp": now + self._tenant_ttl,
            "jti": generate_uuid(),
        }
        return jwt.encode(claims, self._secret, algorithm=JWT_ALGORITHM)

    def issue_admin_token(self, admin_id: str, role: AdminRole | str) -> str:
        """Issue an operator session token under the admin secret."""
        now = int(time.time())
        claims = {
            "sub": admin_id,
            "role": AdminRole(role).value,
            "isAdmin": True,
            "iat": now,
            "exp": now + self._admin_ttl,
            "jti": generate_uuid(),
        }
        return jwt.encode(claims, self._admin_secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> TokenPayload | None:
        """Verify a token and return its payload.

        Returns None for anything malformed, forged, expired or issued in the
        wrong context. Never raises.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            return None

        claims = self._decode(token, self._admin_secret)
        if claims is not None and claims.get("isAdmin") is True:
            return self._admin_payload(claims)

        claims = self._decode(token, self._secret)
        if claims is None or "isAdmin" in claims:
            return None
        return self._tenant_payload(claims)

    async def revoke(self, payload: TokenPayload) -> bool:
        """Deny a token until it would have expired anyway.

        Returns:
            False if no deny-list is configured or the token has no id
        """
        if self._deny_list is None or not payload.token_id:
            return False
        remaining = int((payload.expires_at - datetime.now(UTC)).total_seconds())
        if remaining <= 0:
            return True
        await self._deny_list.put(REVOKED_NAMESPACE, payload.token_id, "1", ttl=remaining)
        logger.info(f"[AUTH] Token revoked for subject '{payload.subject}'")
        return True

    async def is_revoked(self, payload: TokenPayload) -> bool:
        if self._deny_list is None or not payload.token_id:
            return False
        return await self._deny_list.exists(REVOKED_NAMESPACE, payload.token_id)

    @staticmethod
    def _decode(token: str, secret: str) -> dict[str, Any] | None:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.PyJWTError:
            return None

    @staticmethod
    def _times(claims: dict[str, Any]) -> tuple[datetime, datetime]:
        return (
            datetime.fromtimestamp(int(claims["iat"]), UTC),
            datetime.fromtimestamp(int(claims["exp"]), UTC),
        )

    def _admin_payload(self, claims: dict[str, Any]) -> TokenPayload | None:
        try:
            role = AdminRole(claims.get("role"))
        except ValueError:
            logger.warning("[AUTH] Admin token with unknown role rejected")
            return None
        issued_at, expires_at = self._times(claims)
        return TokenPayload(
            subject=str(claims["sub"]),
            scope=TokenScope.ADMIN,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=claims.get("jti"),
            role=role,
        )

    def _tenant_payload(self, claims: dict[str, Any]) -> TokenPayload | None:
        tier = None
        if claims.get("tier") is not None:
            try:
                tier = Tier(claims["tier"])
            except ValueError:
                return None
        issued_at, expires_at = self._times(claims)
        return TokenPayload(
            subject=str(claims["sub"]),
            scope=TokenScope.TENANT,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=claims.get("jti"),
            email=claims.get("email"),
            tier=tier,
        )
