"""In-memory trust store.

Data is lost on restart. Suitable for development/testing. Mutations are
serialised with an asyncio.Lock so counter updates stay atomic under
concurrent tasks.
"""

from __future__ import annotations

import asyncio
import copy
from datetime import UTC, datetime

from wpmcp_core.auth.models import ApiKeyRecord, Connection, Customer
from wpmcp_core.types import ApiKeyStatus
from wpmcp_core.usage.models import IncrementResult, UsageCounter
from wpmcp_core.webhooks.events import WebhookEventType
from wpmcp_core.webhooks.models import Webhook, WebhookDelivery

from .base import TrustStore


def _copy(obj):
    return copy.deepcopy(obj)


class MemoryTrustStore(TrustStore):
    """In-memory trust store. Returned objects are copies."""

    def __init__(self) -> None:
        self._customers: dict[str, Customer] = {}
        self._connections: dict[str, Connection] = {}
        self._api_keys: dict[str, ApiKeyRecord] = {}
        self._key_hash_index: dict[str, str] = {}
        self._usage: dict[tuple[str, str], UsageCounter] = {}
        self._webhooks: dict[str, Webhook] = {}
        # Tenant id is kept beside each delivery; the webhook row may be gone
        self._deliveries: list[tuple[str | None, WebhookDelivery]] = []
        self._lock = asyncio.Lock()

    # ── Customers ──

    async def create_customer(self, customer: Customer) -> None:
        async with self._lock:
            self._customers[customer.id] = _copy(customer)

    async def get_customer(self, customer_id: str) -> Customer | None:
        return _copy(self._customers.get(customer_id))

    async def update_customer(self, customer: Customer) -> None:
        async with self._lock:
            customer.updated_at = datetime.now(UTC)
            self._customers[customer.id] = _copy(customer)

    async def delete_customer(self, customer_id: str) -> bool:
        async with self._lock:
            if self._customers.pop(customer_id, None) is None:
                return False

            for conn_id in [c.id for c in self._connections.values() if c.tenant_id == customer_id]:
                del self._connections[conn_id]
            for key in [k for k in self._api_keys.values() if k.tenant_id == customer_id]:
                self._drop_key(key.id)
            hook_ids = {w.id for w in self._webhooks.values() if w.tenant_id == customer_id}
            for hook_id in hook_ids:
                del self._webhooks[hook_id]
            self._deliveries = [
                (tenant, d)
                for tenant, d in self._deliveries
                if tenant != customer_id and d.webhook_id not in hook_ids
            ]
            for usage_key in [k for k in self._usage if k[0] == customer_id]:
                del self._usage[usage_key]
            return True

    # ── Connections ──

    async def create_connection(
        self, connection: Connection, max_per_tenant: int | None = None
    ) -> bool:
        async with self._lock:
            if max_per_tenant is not None:
                tenant_id = connection.tenant_id
                owned = sum(1 for c in self._connections.values() if c.tenant_id == tenant_id)
                if owned >= max_per_tenant:
                    return False
            self._connections[connection.id] = _copy(connection)
            return True

    async def get_connection(self, connection_id: str) -> Connection | None:
        return _copy(self._connections.get(connection_id))

    async def list_connections(self, tenant_id: str) -> list[Connection]:
        conns = [_copy(c) for c in self._connections.values() if c.tenant_id == tenant_id]
        return sorted(conns, key=lambda c: c.created_at)

    async def count_connections(self, tenant_id: str) -> int:
        return sum(1 for c in self._connections.values() if c.tenant_id == tenant_id)

    async def delete_connection(self, connection_id: str) -> bool:
        async with self._lock:
            if self._connections.pop(connection_id, None) is None:
                return False
            for key in [k for k in self._api_keys.values() if k.connection_id == connection_id]:
                self._drop_key(key.id)
            return True

    # ── API keys ──

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        async with self._lock:
            self._api_keys[record.id] = _copy(record)
            self._key_hash_index[record.key_hash] = record.id

    async def get_api_key(self, key_id: str) -> ApiKeyRecord | None:
        return _copy(self._api_keys.get(key_id))

    async def get_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None:
        key_id = self._key_hash_index.get(key_hash)
        if key_id is None:
            return None
        return _copy(self._api_keys.get(key_id))

    async def list_api_keys(self, tenant_id: str) -> list[ApiKeyRecord]:
        keys = [_copy(k) for k in self._api_keys.values() if k.tenant_id == tenant_id]
        return sorted(keys, key=lambda k: k.created_at, reverse=True)

    async def set_api_key_status(self, key_id: str, status: ApiKeyStatus) -> bool:
        async with self._lock:
            record = self._api_keys.get(key_id)
            if record is None:
                return False
            record.status = status
            return True

    async def touch_api_key(self, key_id: str, used_at: datetime) -> None:
        async with self._lock:
            record = self._api_keys.get(key_id)
            if record is not None:
                record.last_used_at = used_at

    async def delete_api_key(self, key_id: str) -> bool:
        async with self._lock:
            return self._drop_key(key_id)

    def _drop_key(self, key_id: str) -> bool:
        record = self._api_keys.pop(key_id, None)
        if record is None:
            return False
        self._key_hash_index.pop(record.key_hash, None)
        return True

    # ── Usage ──

    async def ensure_usage(self, tenant_id: str, period: str) -> UsageCounter:
        async with self._lock:
            return _copy(self._ensure_usage(tenant_id, period))

    def _ensure_usage(self, tenant_id: str, period: str) -> UsageCounter:
        counter = self._usage.get((tenant_id, period))
        if counter is None:
            counter = UsageCounter(tenant_id=tenant_id, period=period)
            self._usage[(tenant_id, period)] = counter
        return counter

    async def increment_usage_if_below(
        self, tenant_id: str, period: str, limit: int
    ) -> IncrementResult:
        async with self._lock:
            counter = self._ensure_usage(tenant_id, period)
            if counter.request_count >= limit:
                return IncrementResult(applied=False, request_count=counter.request_count)
            counter.request_count += 1
            counter.updated_at = datetime.now(UTC)
            return IncrementResult(applied=True, request_count=counter.request_count)

    async def record_usage_outcome(self, tenant_id: str, period: str, success: bool) -> None:
        async with self._lock:
            counter = self._ensure_usage(tenant_id, period)
            if success:
                counter.success_count += 1
            else:
                counter.error_count += 1
            counter.updated_at = datetime.now(UTC)

    async def get_usage(self, tenant_id: str, period: str) -> UsageCounter | None:
        return _copy(self._usage.get((tenant_id, period)))

    async def list_usage(self, tenant_id: str, limit: int = 12) -> list[UsageCounter]:
        rows = [_copy(c) for (t, _), c in self._usage.items() if t == tenant_id]
        rows.sort(key=lambda c: c.period, reverse=True)
        return rows[:limit]

    async def reset_usage(self, tenant_id: str, period: str) -> None:
        async with self._lock:
            counter = self._ensure_usage(tenant_id, period)
            counter.request_count = 0
            counter.success_count = 0
            counter.error_count = 0
            counter.updated_at = datetime.now(UTC)

    # ── Webhooks ──

    async def create_webhook(self, webhook: Webhook, max_per_tenant: int | None = None) -> bool:
        async with self._lock:
            owned = [w for w in self._webhooks.values() if w.tenant_id == webhook.tenant_id]
            if max_per_tenant is not None and len(owned) >= max_per_tenant:
                return False
            if any(w.url == webhook.url for w in owned):
                return False
            self._webhooks[webhook.id] = _copy(webhook)
            return True

    async def get_webhook(self, webhook_id: str) -> Webhook | None:
        return _copy(self._webhooks.get(webhook_id))

    async def list_webhooks(self, tenant_id: str) -> list[Webhook]:
        hooks = [_copy(w) for w in self._webhooks.values() if w.tenant_id == tenant_id]
        return sorted(hooks, key=lambda w: w.created_at, reverse=True)

    async def list_deliverable_webhooks(
        self, tenant_id: str, event_type: WebhookEventType, max_failures: int
    ) -> list[Webhook]:
        return [
            _copy(w)
            for w in self._webhooks.values()
            if w.tenant_id == tenant_id
            and w.is_active
            and w.failure_count < max_failures
            and w.subscribes_to(event_type)
        ]

    async def update_webhook(
        self,
        webhook_id: str,
        *,
        url: str | None = None,
        events: list[WebhookEventType] | None = None,
        description: str | None = None,
        secret: str | None = None,
    ) -> bool:
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return False
            if url is not None:
                webhook.url = url
            if events is not None:
                webhook.events = list(events)
            if description is not None:
                webhook.description = description
            if secret is not None:
                webhook.secret = secret
            webhook.updated_at = datetime.now(UTC)
            return True

    async def set_webhook_active(self, webhook_id: str, active: bool) -> bool:
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return False
            if active:
                if webhook.is_active:
                    return False
                webhook.failure_count = 0
            webhook.is_active = active
            webhook.updated_at = datetime.now(UTC)
            return True

    async def delete_webhook(self, webhook_id: str) -> bool:
        async with self._lock:
            return self._webhooks.pop(webhook_id, None) is not None

    async def record_webhook_success(
        self, webhook_id: str, status_code: int, at: datetime
    ) -> None:
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return
            webhook.failure_count = 0
            webhook.last_status_code = status_code
            webhook.last_triggered_at = at
            webhook.updated_at = at

    async def record_webhook_failure(
        self, webhook_id: str, status_code: int | None, at: datetime, max_failures: int
    ) -> int:
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            if webhook is None:
                return 0
            webhook.failure_count += 1
            if webhook.failure_count >= max_failures:
                webhook.is_active = False
            webhook.last_status_code = status_code
            webhook.last_triggered_at = at
            webhook.updated_at = at
            return webhook.failure_count

    async def add_delivery(self, delivery: WebhookDelivery) -> None:
        async with self._lock:
            webhook = self._webhooks.get(delivery.webhook_id)
            self._deliveries.append((webhook.tenant_id if webhook else None, delivery))

    async def list_deliveries(self, webhook_id: str, limit: int = 50) -> list[WebhookDelivery]:
        rows = [d for _, d in self._deliveries if d.webhook_id == webhook_id]
        rows.sort(key=lambda d: d.created_at, reverse=True)
        return rows[:limit]
