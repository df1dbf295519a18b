"""Webhook dispatcher.

``dispatch_event`` returns as soon as the delivery task is scheduled; the
caller's request never waits on subscriber endpoints. Deliveries to all
subscribed webhooks run concurrently, each bounded by a timeout. Every
attempt is appended to the delivery log, and repeated failures deactivate
the webhook.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from wpmcp_core.crypto import generate_uuid
from wpmcp_core.errors import create_error

from .events import WebhookEventType, parse_event_type
from .models import DeliveryResult, Webhook, WebhookDelivery, WebhookPayload
from .signing import compute_signature

if TYPE_CHECKING:
    from wpmcp_core.storage.base import TrustStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
MAX_FAILURE_COUNT = 5
RESPONSE_BODY_LIMIT = 1000
USER_AGENT = "WordPress-MCP-Webhook/1.0"
TRUNCATION_MARKER = "... (truncated)"

TEST_EVENT_DATA = {"test": True, "message": "This is a test webhook delivery"}


def truncate_body(body: str, limit: int = RESPONSE_BODY_LIMIT) -> str:
    if len(body) <= limit:
        return body
    return body[:limit] + TRUNCATION_MARKER


class WebhookDispatcher:
    """Delivers signed event payloads to tenant webhooks."""

    def __init__(
        self,
        store: TrustStore,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_failures: int = MAX_FAILURE_COUNT,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = USER_AGENT,
        response_body_limit: int = RESPONSE_BODY_LIMIT,
    ):
        """Initialize dispatcher.

        Args:
            store: Trust store holding webhooks and the delivery log
            timeout: Per-delivery timeout in seconds
            max_failures: Consecutive failures before a webhook is deactivated
            transport: Optional httpx transport (tests pass a MockTransport)
            user_agent: User-Agent header for deliveries
            response_body_limit: Characters of response body kept in the log
        """
        self._store = store
        self._timeout = timeout
        self._max_failures = max_failures
        self._transport = transport
        self._user_agent = user_agent
        self._body_limit = response_body_limit
        self._client: httpx.AsyncClient | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def max_failures(self) -> int:
        return self._max_failures

    @property
    def pending(self) -> int:
        """Number of event tasks still running."""
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            )
        return self._client

    async def aclose(self) -> None:
        """Wait for in-flight deliveries, then close the HTTP client."""
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def dispatch_event(
        self,
        tenant_id: str,
        event_type: WebhookEventType | str,
        data: dict[str, Any],
    ) -> asyncio.Task[Any]:
        """Schedule delivery of an event to the tenant's subscribed webhooks.

        Must be called from a running event loop. Returns immediately.

        Raises:
            WpmcpError: INVALID_EVENT_TYPE for an unknown event type
        """
        event = parse_event_type(event_type)
        task = asyncio.get_running_loop().create_task(
            self._run_event(tenant_id, event, data),
            name=f"webhook:{event.value}:{tenant_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every scheduled event task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_event(
        self, tenant_id: str, event: WebhookEventType, data: dict[str, Any]
    ) -> list[DeliveryResult]:
        try:
            webhooks = await self._store.list_deliverable_webhooks(
                tenant_id, event, self._max_failures
            )
        except Exception as e:  # noqa: BLE001
            logger.error(f"[WEBHOOK] Failed to load webhooks for '{tenant_id}': {e}")
            return []

        if not webhooks:
            return []

        body = self._build_payload(event, data)
        results = await asyncio.gather(
            *(self._deliver(w, event, body) for w in webhooks),
            return_exceptions=True,
        )

        delivered: list[DeliveryResult] = []
        for webhook, result in zip(webhooks, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    f"[WEBHOOK] Delivery bookkeeping failed for webhook '{webhook.id}': {result}"
                )
                continue
            delivered.append(result)
        return delivered

    @staticmethod
    def _build_payload(event: WebhookEventType, data: dict[str, Any]) -> str:
        payload = WebhookPayload(
            id=generate_uuid(),
            type=event,
            timestamp=datetime.now(UTC),
            data=data,
        )
        return payload.model_dump_json()

    async def _send(self, webhook: Webhook, body: str) -> DeliveryResult:
        """POST one signed body. Network errors become a failed result."""
        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-ID": webhook.id,
            "X-Webhook-Timestamp": str(timestamp),
            "X-Webhook-Signature": compute_signature(webhook.secret, timestamp, body),
            "User-Agent": self._user_agent,
        }

        start = time.monotonic()
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._get_client().post(
                    webhook.url, content=body.encode("utf-8"), headers=headers
                )
                response_body = response.text
        except TimeoutError:
            return DeliveryResult(
                success=False,
                response_time_ms=int((time.monotonic() - start) * 1000),
                error=f"Request timed out after {self._timeout:g}s",
            )
        except httpx.HTTPError as e:
            return DeliveryResult(
                success=False,
                response_time_ms=int((time.monotonic() - start) * 1000),
                error=str(e) or type(e).__name__,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        success = 200 <= response.status_code < 300
        return DeliveryResult(
            success=success,
            status_code=response.status_code,
            response_body=truncate_body(response_body, self._body_limit),
            response_time_ms=elapsed_ms,
            error=None if success else f"HTTP {response.status_code}",
        )

    async def _deliver(
        self,
        webhook: Webhook,
        event: WebhookEventType,
        body: str,
        track_status: bool = True,
    ) -> DeliveryResult:
        result = await self._send(webhook, body)

        await self._store.add_delivery(
            WebhookDelivery(
                id=generate_uuid(),
                webhook_id=webhook.id,
                event_type=event.value,
                payload=body,
                status_code=result.status_code,
                response_body=result.response_body,
                response_time_ms=result.response_time_ms,
                error=result.error,
            )
        )

        if not track_status:
            return result

        now = datetime.now(UTC)
        if result.success and result.status_code is not None:
            await self._store.record_webhook_success(webhook.id, result.status_code, now)
            logger.debug(f"[WEBHOOK] {event.value} delivered to webhook '{webhook.id}'")
        else:
            failures = await self._store.record_webhook_failure(
                webhook.id, result.status_code, now, self._max_failures
            )
            failure = create_error("WEBHOOK_DELIVERY_FAILED", reason=result.error or "unknown")
            logger.warning(
                f"[WEBHOOK] {event.value} to webhook '{webhook.id}' failed "
                f"({failures}/{self._max_failures}): {failure.detail}"
            )
            if failures >= self._max_failures:
                logger.warning(
                    f"[WEBHOOK] Webhook '{webhook.id}' disabled after {failures} failures"
                )
        return result

    async def test_webhook(self, tenant_id: str, webhook_id: str) -> DeliveryResult:
        """Send one synthetic event and wait for the result.

        The attempt is logged but does not change failure_count or status.

        Raises:
            WpmcpError: WEBHOOK_NOT_FOUND if the webhook is not the tenant's
        """
        webhook = await self._store.get_webhook(webhook_id)
        if webhook is None or webhook.tenant_id != tenant_id:
            raise create_error("WEBHOOK_NOT_FOUND", tenant_id=tenant_id)

        event = WebhookEventType.SUBSCRIPTION_UPDATED
        body = self._build_payload(event, dict(TEST_EVENT_DATA))
        return await self._deliver(webhook, event, body, track_status=False)
