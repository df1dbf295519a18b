"""Webhook registration for tenants."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from wpmcp_core.crypto import generate_uuid, random_hex
from wpmcp_core.errors import create_error

from .events import WebhookEventType, parse_event_types
from .models import Webhook, WebhookDelivery

if TYPE_CHECKING:
    from wpmcp_core.storage.base import TrustStore

logger = logging.getLogger(__name__)

MAX_WEBHOOKS_PER_TENANT = 10
SECRET_BYTES = 32
DEFAULT_DELIVERY_LIMIT = 50


def _validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise create_error("VALIDATION_ERROR", message="Webhook URL must use HTTPS")
    return url


def _validate_events(events: Iterable[str | WebhookEventType]) -> list[WebhookEventType]:
    parsed = parse_event_types(events)
    if not parsed:
        raise create_error("VALIDATION_ERROR", message="At least one event type is required")
    return parsed


class WebhookService:
    """Create, inspect and manage a tenant's webhook subscriptions."""

    def __init__(self, store: TrustStore, max_per_tenant: int = MAX_WEBHOOKS_PER_TENANT):
        self._store = store
        self._max_per_tenant = max_per_tenant

    async def create_webhook(
        self,
        tenant_id: str,
        url: str,
        events: Iterable[str | WebhookEventType],
        description: str | None = None,
    ) -> Webhook:
        """Register a webhook. The generated secret is returned on the model.

        Raises:
            WpmcpError: VALIDATION_ERROR, INVALID_EVENT_TYPE, WEBHOOK_LIMIT or
                DUPLICATE_WEBHOOK
        """
        _validate_url(url)
        parsed_events = _validate_events(events)

        existing = await self._store.list_webhooks(tenant_id)
        if len(existing) >= self._max_per_tenant:
            raise create_error("WEBHOOK_LIMIT", limit=self._max_per_tenant, tenant_id=tenant_id)
        if any(w.url == url for w in existing):
            raise create_error("DUPLICATE_WEBHOOK", tenant_id=tenant_id)

        webhook = Webhook(
            id=generate_uuid(),
            tenant_id=tenant_id,
            url=url,
            secret=random_hex(SECRET_BYTES),
            events=parsed_events,
            description=description,
        )
        if not await self._store.create_webhook(webhook, max_per_tenant=self._max_per_tenant):
            # Lost a race with a concurrent create; report whichever check now fails
            existing = await self._store.list_webhooks(tenant_id)
            if any(w.url == url for w in existing):
                raise create_error("DUPLICATE_WEBHOOK", tenant_id=tenant_id)
            raise create_error("WEBHOOK_LIMIT", limit=self._max_per_tenant, tenant_id=tenant_id)
        logger.info(f"[WEBHOOK] Webhook '{webhook.id}' created for tenant '{tenant_id}'")
        return webhook

    async def get_webhook(self, tenant_id: str, webhook_id: str) -> Webhook:
        """Get one of the tenant's webhooks.

        Raises:
            WpmcpError: WEBHOOK_NOT_FOUND, also for another tenant's webhook
        """
        webhook = await self._store.get_webhook(webhook_id)
        if webhook is None or webhook.tenant_id != tenant_id:
            raise create_error("WEBHOOK_NOT_FOUND", tenant_id=tenant_id)
        return webhook

    async def list_webhooks(self, tenant_id: str) -> list[Webhook]:
        return await self._store.list_webhooks(tenant_id)

    async def update_webhook(
        self,
        tenant_id: str,
        webhook_id: str,
        url: str | None = None,
        events: Iterable[str | WebhookEventType] | None = None,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Webhook:
        """Change a webhook. Reactivating it clears its failure count.

        Only the given fields are written. The breaker state (is_active and
        failure_count) is changed solely through set_webhook_active, so
        failures recorded by concurrent deliveries are never overwritten.
        """
        webhook = await self.get_webhook(tenant_id, webhook_id)

        if url is not None and url != webhook.url:
            _validate_url(url)
            others = await self._store.list_webhooks(tenant_id)
            if any(w.url == url and w.id != webhook.id for w in others):
                raise create_error("DUPLICATE_WEBHOOK", tenant_id=tenant_id)
        else:
            url = None
        parsed_events = _validate_events(events) if events is not None else None

        if url is not None or parsed_events is not None or description is not None:
            await self._store.update_webhook(
                webhook.id, url=url, events=parsed_events, description=description
            )
        if is_active is not None:
            await self._store.set_webhook_active(webhook.id, is_active)

        return await self.get_webhook(tenant_id, webhook.id)

    async def delete_webhook(self, tenant_id: str, webhook_id: str) -> None:
        webhook = await self.get_webhook(tenant_id, webhook_id)
        await self._store.delete_webhook(webhook.id)
        logger.info(f"[WEBHOOK] Webhook '{webhook.id}' deleted for tenant '{tenant_id}'")

    async def get_secret(self, tenant_id: str, webhook_id: str) -> str:
        webhook = await self.get_webhook(tenant_id, webhook_id)
        return webhook.secret

    async def regenerate_secret(self, tenant_id: str, webhook_id: str) -> str:
        """Replace the signing secret. The old secret stops verifying immediately."""
        webhook = await self.get_webhook(tenant_id, webhook_id)
        secret = random_hex(SECRET_BYTES)
        await self._store.update_webhook(webhook.id, secret=secret)
        logger.info(f"[WEBHOOK] Secret regenerated for webhook '{webhook.id}'")
        return secret

    async def list_deliveries(
        self, tenant_id: str, webhook_id: str, limit: int = DEFAULT_DELIVERY_LIMIT
    ) -> list[WebhookDelivery]:
        """Recent delivery attempts, newest first."""
        webhook = await self.get_webhook(tenant_id, webhook_id)
        return await self._store.list_deliveries(webhook.id, limit=max(1, min(limit, 100)))
