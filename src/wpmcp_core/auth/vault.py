"""Credential vault: API keys and encrypted WordPress connection secrets.

The vault is the only component that ever holds a plaintext API key (at
creation) or a plaintext WordPress password (at connection creation and
while a request is being served). Neither is logged.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from wpmcp_core.crypto import InvalidTag, SecretBox, generate_uuid
from wpmcp_core.errors import WpmcpError, create_error
from wpmcp_core.types import ApiKeyStatus
from wpmcp_core.usage.plans import UNLIMITED, Plan, PlanCatalog
from wpmcp_core.webhooks.events import WebhookEventType

from .api_key import extract_key_prefix, generate_api_key, hash_api_key, validate_api_key_format
from .models import ApiKeyRecord, Connection, CreatedApiKey, WordPressCredentials

if TYPE_CHECKING:
    from wpmcp_core.storage.base import TrustStore
    from wpmcp_core.webhooks.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


def _connection_limit(plan: Plan, tenant_id: str) -> WpmcpError:
    return create_error(
        "CONNECTION_LIMIT",
        limit=plan.max_connections,
        tier=plan.tier.value,
        tenant_id=tenant_id,
    )


class CredentialVault:
    """Creates, looks up and revokes API keys; seals connection credentials."""

    def __init__(
        self,
        store: TrustStore,
        secret_box: SecretBox,
        plans: PlanCatalog | None = None,
        dispatcher: WebhookDispatcher | None = None,
    ):
        self._store = store
        self._box = secret_box
        self._plans = plans or PlanCatalog()
        self._dispatcher = dispatcher

    # ── API keys ──

    async def create_api_key(
        self,
        tenant_id: str,
        connection_id: str,
        name: str = "Default",
        environment: str = "live",
    ) -> CreatedApiKey:
        """Create an API key bound to one of the tenant's connections.

        The plaintext is returned exactly once, inside the result.

        Raises:
            WpmcpError: RESOURCE_NOT_FOUND if the connection is not the tenant's
        """
        connection = await self._store.get_connection(connection_id)
        if connection is None or connection.tenant_id != tenant_id:
            raise create_error("RESOURCE_NOT_FOUND", resource="Connection", tenant_id=tenant_id)
        if environment not in ("live", "test"):
            raise create_error("VALIDATION_ERROR", message="environment must be 'live' or 'test'")

        plaintext = generate_api_key(environment)
        record = ApiKeyRecord(
            id=generate_uuid(),
            tenant_id=tenant_id,
            connection_id=connection_id,
            key_hash=hash_api_key(plaintext),
            key_prefix=extract_key_prefix(plaintext),
            name=name or "Default",
        )
        await self._store.create_api_key(record)
        logger.info(f"[AUTH] API key created for tenant '{tenant_id}': {record.key_prefix}...")

        self._emit(
            tenant_id,
            WebhookEventType.API_KEY_CREATED,
            {"key_id": record.id, "key_prefix": record.key_prefix, "name": record.name},
        )
        return CreatedApiKey(plaintext_key=plaintext, record=record)

    async def find_api_key_by_plaintext(self, candidate: str) -> ApiKeyRecord | None:
        """Look up a presented API key.

        Returns None for malformed input, unknown keys and lookup failures.
        Status is not checked here; callers decide what a revoked key means.
        """
        if not isinstance(candidate, str) or not validate_api_key_format(candidate):
            return None
        try:
            return await self._store.get_api_key_by_hash(hash_api_key(candidate))
        except Exception as e:  # noqa: BLE001
            logger.warning(f"[AUTH] API key lookup failed: {type(e).__name__}")
            return None

    async def revoke_api_key(self, key_id: str, tenant_id: str) -> bool:
        """Mark a key revoked. Keys of other tenants are treated as absent."""
        record = await self._store.get_api_key(key_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        if record.status == ApiKeyStatus.REVOKED:
            return True

        await self._store.set_api_key_status(key_id, ApiKeyStatus.REVOKED)
        logger.info(f"[AUTH] API key revoked for tenant '{tenant_id}': {record.key_prefix}...")
        self._emit(
            tenant_id,
            WebhookEventType.API_KEY_REVOKED,
            {"key_id": record.id, "key_prefix": record.key_prefix, "name": record.name},
        )
        return True

    async def delete_api_key(self, key_id: str, tenant_id: str) -> bool:
        """Permanently remove a key row."""
        record = await self._store.get_api_key(key_id)
        if record is None or record.tenant_id != tenant_id:
            return False
        return await self._store.delete_api_key(key_id)

    async def list_api_keys(self, tenant_id: str) -> list[ApiKeyRecord]:
        return await self._store.list_api_keys(tenant_id)

    async def touch_last_used(self, key_id: str) -> None:
        await self._store.touch_api_key(key_id, datetime.now(UTC))

    # ── Connection secrets ──

    def encrypt_connection_secret(self, plaintext: str) -> str:
        return self._box.encrypt(plaintext)

    def decrypt_connection_secret(self, ciphertext: str) -> str:
        """Decrypt a stored connection secret.

        Raises:
            CredentialDecryptionFailed: On tampering, truncation or a key mismatch
        """
        try:
            return self._box.decrypt(ciphertext)
        except (InvalidTag, ValueError, UnicodeDecodeError):
            logger.error("[AUTH] Stored connection secret could not be decrypted")
            raise create_error("CREDENTIAL_DECRYPTION_FAILED") from None

    # ── Connections ──

    async def create_connection(
        self,
        tenant_id: str,
        name: str,
        url: str,
        username: str,
        password: str,
    ) -> Connection:
        """Register a WordPress site for a tenant.

        Raises:
            WpmcpError: VALIDATION_ERROR for a bad URL or empty credentials,
                RESOURCE_NOT_FOUND for an unknown tenant, CONNECTION_LIMIT
                when the plan allowance is used up
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise create_error("VALIDATION_ERROR", message="WordPress URL must be http(s)")
        password = "".join(password.split())
        if not username or not password:
            raise create_error("VALIDATION_ERROR", message="Username and password are required")

        customer = await self._store.get_customer(tenant_id)
        if customer is None:
            raise create_error("RESOURCE_NOT_FOUND", resource="Customer", tenant_id=tenant_id)

        plan = self._plans.get(customer.tier)
        current = await self._store.count_connections(tenant_id)
        if not plan.allows_connections(current):
            raise _connection_limit(plan, tenant_id)

        connection = Connection(
            id=generate_uuid(),
            tenant_id=tenant_id,
            name=name,
            url=url.rstrip("/"),
            encrypted_username=self.encrypt_connection_secret(username),
            encrypted_password=self.encrypt_connection_secret(password),
        )
        cap = None if plan.max_connections == UNLIMITED else plan.max_connections
        if not await self._store.create_connection(connection, max_per_tenant=cap):
            raise _connection_limit(plan, tenant_id)
        logger.info(f"[AUTH] Connection '{name}' added for tenant '{tenant_id}'")
        return connection

    async def open_connection(self, connection_id: str, tenant_id: str) -> WordPressCredentials:
        """Decrypt a connection's credentials for the current request.

        Raises:
            WpmcpError: RESOURCE_NOT_FOUND if the connection is not the tenant's
            CredentialDecryptionFailed: If either field fails to decrypt
        """
        connection = await self._store.get_connection(connection_id)
        if connection is None or connection.tenant_id != tenant_id:
            raise create_error("RESOURCE_NOT_FOUND", resource="Connection", tenant_id=tenant_id)

        return WordPressCredentials(
            url=connection.url,
            username=self.decrypt_connection_secret(connection.encrypted_username),
            password=self.decrypt_connection_secret(connection.encrypted_password),
        )

    async def list_connections(self, tenant_id: str) -> list[Connection]:
        return await self._store.list_connections(tenant_id)

    async def delete_connection(self, connection_id: str, tenant_id: str) -> bool:
        """Delete a connection and every API key bound to it."""
        connection = await self._store.get_connection(connection_id)
        if connection is None or connection.tenant_id != tenant_id:
            return False
        return await self._store.delete_connection(connection_id)

    def _emit(self, tenant_id: str, event_type: WebhookEventType, data: dict[str, Any]) -> None:
        if self._dispatcher is not None:
            self._dispatcher.dispatch_event(tenant_id, event_type, data)
