"""Trust store abstract base class.

All durable state of the trust layer sits behind this interface. Every
counter change is a single atomic operation at this layer; callers never
read-modify-write.

Implementations:
- MemoryTrustStore: in-process, asyncio.Lock serialised (dev/testing)
- SQLiteTrustStore: SQLite file, conditional UPDATE statements
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from wpmcp_core.auth.models import ApiKeyRecord, Connection, Customer
from wpmcp_core.types import ApiKeyStatus
from wpmcp_core.usage.models import IncrementResult, UsageCounter
from wpmcp_core.webhooks.events import WebhookEventType
from wpmcp_core.webhooks.models import Webhook, WebhookDelivery


class TrustStore(ABC):
    """Abstract interface for tenant, credential, usage and webhook state."""

    async def close(self) -> None:  # noqa: B027
        """Release resources."""

    # ── Customers ──

    @abstractmethod
    async def create_customer(self, customer: Customer) -> None: ...

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Customer | None: ...

    @abstractmethod
    async def update_customer(self, customer: Customer) -> None: ...

    @abstractmethod
    async def delete_customer(self, customer_id: str) -> bool:
        """Delete an account and cascade to every row it owns.

        Removes connections, API keys, webhooks, webhook deliveries and usage.
        """
        ...

    # ── Connections ──

    @abstractmethod
    async def create_connection(
        self, connection: Connection, max_per_tenant: int | None = None
    ) -> bool:
        """Insert a connection unless the tenant already has max_per_tenant.

        The count and the insert are one atomic step. None means no cap.

        Returns:
            False when the cap rejected the insert
        """
        ...

    @abstractmethod
    async def get_connection(self, connection_id: str) -> Connection | None: ...

    @abstractmethod
    async def list_connections(self, tenant_id: str) -> list[Connection]: ...

    @abstractmethod
    async def count_connections(self, tenant_id: str) -> int: ...

    @abstractmethod
    async def delete_connection(self, connection_id: str) -> bool:
        """Delete a connection and the API keys bound to it."""
        ...

    # ── API keys ──

    @abstractmethod
    async def create_api_key(self, record: ApiKeyRecord) -> None: ...

    @abstractmethod
    async def get_api_key(self, key_id: str) -> ApiKeyRecord | None: ...

    @abstractmethod
    async def get_api_key_by_hash(self, key_hash: str) -> ApiKeyRecord | None: ...

    @abstractmethod
    async def list_api_keys(self, tenant_id: str) -> list[ApiKeyRecord]: ...

    @abstractmethod
    async def set_api_key_status(self, key_id: str, status: ApiKeyStatus) -> bool: ...

    @abstractmethod
    async def touch_api_key(self, key_id: str, used_at: datetime) -> None: ...

    @abstractmethod
    async def delete_api_key(self, key_id: str) -> bool: ...

    # ── Usage ──

    @abstractmethod
    async def ensure_usage(self, tenant_id: str, period: str) -> UsageCounter:
        """Get the period row, creating a zeroed one if absent."""
        ...

    @abstractmethod
    async def increment_usage_if_below(
        self, tenant_id: str, period: str, limit: int
    ) -> IncrementResult:
        """Atomically add one request when the count is below the limit.

        A rejected increment leaves the counter unchanged.
        """
        ...

    @abstractmethod
    async def record_usage_outcome(self, tenant_id: str, period: str, success: bool) -> None: ...

    @abstractmethod
    async def get_usage(self, tenant_id: str, period: str) -> UsageCounter | None: ...

    @abstractmethod
    async def list_usage(self, tenant_id: str, limit: int = 12) -> list[UsageCounter]:
        """Most recent periods first."""
        ...

    @abstractmethod
    async def reset_usage(self, tenant_id: str, period: str) -> None: ...

    # ── Webhooks ──

    @abstractmethod
    async def create_webhook(self, webhook: Webhook, max_per_tenant: int | None = None) -> bool:
        """Insert a webhook unless the cap is reached or the URL is taken.

        Both checks and the insert are one atomic step. None means no cap.

        Returns:
            False when the insert was rejected
        """
        ...

    @abstractmethod
    async def get_webhook(self, webhook_id: str) -> Webhook | None: ...

    @abstractmethod
    async def list_webhooks(self, tenant_id: str) -> list[Webhook]: ...

    @abstractmethod
    async def list_deliverable_webhooks(
        self, tenant_id: str, event_type: WebhookEventType, max_failures: int
    ) -> list[Webhook]:
        """Active webhooks under the failure threshold subscribed to an event."""
        ...

    @abstractmethod
    async def update_webhook(
        self,
        webhook_id: str,
        *,
        url: str | None = None,
        events: list[WebhookEventType] | None = None,
        description: str | None = None,
        secret: str | None = None,
    ) -> bool:
        """Write only the given fields. Breaker state is never touched here.

        Returns:
            False if the webhook does not exist
        """
        ...

    @abstractmethod
    async def set_webhook_active(self, webhook_id: str, active: bool) -> bool:
        """Switch a webhook on or off.

        Activation is conditional on the webhook being inactive and clears
        failure_count in the same statement. Deactivation leaves the count.

        Returns:
            Whether the row changed
        """
        ...

    @abstractmethod
    async def delete_webhook(self, webhook_id: str) -> bool:
        """Delete a subscription. Its delivery history is kept."""
        ...

    @abstractmethod
    async def record_webhook_success(
        self, webhook_id: str, status_code: int, at: datetime
    ) -> None:
        """Reset failure_count to 0 and store the last status."""
        ...

    @abstractmethod
    async def record_webhook_failure(
        self, webhook_id: str, status_code: int | None, at: datetime, max_failures: int
    ) -> int:
        """Atomically increment failure_count, deactivating at max_failures.

        Returns:
            The failure count after the increment
        """
        ...

    @abstractmethod
    async def add_delivery(self, delivery: WebhookDelivery) -> None: ...

    @abstractmethod
    async def list_deliveries(self, webhook_id: str, limit: int = 50) -> list[WebhookDelivery]:
        """Most recent attempts first."""
        ...
