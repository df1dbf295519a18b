"""Webhook router."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Query

from wpmcp_core.api.deps import get_layer, requires, tenant_of
from wpmcp_core.api.models import (
    WebhookCreateRequest,
    WebhookCreateResponse,
    WebhookSecretResponse,
    WebhookUpdateRequest,
)
from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import Permission, ResolvedIdentity
from wpmcp_core.webhooks import WebhookEventType

webhook_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

Identity = Annotated[ResolvedIdentity, Depends(requires(Permission.WEBHOOKS_MANAGE))]
Layer = Annotated[TrustLayer, Depends(get_layer)]
WebhookId = Annotated[str, Path()]

EVENT_DESCRIPTIONS = {
    WebhookEventType.SUBSCRIPTION_CREATED: "When a new subscription is created",
    WebhookEventType.SUBSCRIPTION_UPDATED: "When a subscription plan changes",
    WebhookEventType.SUBSCRIPTION_CANCELLED: "When a subscription is cancelled",
    WebhookEventType.SUBSCRIPTION_RENEWED: "When a subscription renews",
    WebhookEventType.USAGE_LIMIT_WARNING: "When 80% of usage limit is reached",
    WebhookEventType.USAGE_LIMIT_EXCEEDED: "When 100% of usage limit is reached",
    WebhookEventType.API_KEY_CREATED: "When a new API key is created",
    WebhookEventType.API_KEY_REVOKED: "When an API key is revoked",
    WebhookEventType.API_KEY_EXPIRED: "When an API key expires",
    WebhookEventType.MCP_REQUEST: "When an MCP request is made",
    WebhookEventType.MCP_ERROR: "When an MCP request fails",
}


@webhook_router.get("/events")
async def list_event_types(identity: Identity) -> dict[str, Any]:
    """Event types a webhook can subscribe to."""
    return {
        "events": [
            {"type": e.value, "description": EVENT_DESCRIPTIONS[e]} for e in WebhookEventType
        ]
    }


@webhook_router.get("")
async def list_webhooks(identity: Identity, layer: Layer) -> dict[str, Any]:
    webhooks = await layer.webhook_service.list_webhooks(tenant_of(identity))
    return {"webhooks": [w.to_public_dict() for w in webhooks]}


@webhook_router.post("", status_code=201, response_model=WebhookCreateResponse)
async def create_webhook(
    body: WebhookCreateRequest, identity: Identity, layer: Layer
) -> WebhookCreateResponse:
    webhook = await layer.webhook_service.create_webhook(
        tenant_of(identity), body.url, body.events, body.description
    )
    return WebhookCreateResponse(webhook=webhook.to_public_dict(), secret=webhook.secret)


@webhook_router.get("/{webhook_id}")
async def get_webhook(webhook_id: WebhookId, identity: Identity, layer: Layer) -> dict[str, Any]:
    webhook = await layer.webhook_service.get_webhook(tenant_of(identity), webhook_id)
    return webhook.to_public_dict()


@webhook_router.patch("/{webhook_id}")
async def update_webhook(
    webhook_id: WebhookId, body: WebhookUpdateRequest, identity: Identity, layer: Layer
) -> dict[str, Any]:
    webhook = await layer.webhook_service.update_webhook(
        tenant_of(identity),
        webhook_id,
        url=body.url,
        events=body.events,
        description=body.description,
        is_active=body.is_active,
    )
    return webhook.to_public_dict()


@webhook_router.delete("/{webhook_id}")
async def delete_webhook(
    webhook_id: WebhookId, identity: Identity, layer: Layer
) -> dict[str, Any]:
    await layer.webhook_service.delete_webhook(tenant_of(identity), webhook_id)
    return {"deleted": True, "id": webhook_id}


@webhook_router.post("/{webhook_id}/test")
async def test_webhook(webhook_id: WebhookId, identity: Identity, layer: Layer) -> dict[str, Any]:
    """Send a synthetic event and report the endpoint's response."""
    result = await layer.dispatcher.test_webhook(tenant_of(identity), webhook_id)
    return result.to_dict()


@webhook_router.get("/{webhook_id}/deliveries")
async def list_deliveries(
    webhook_id: WebhookId,
    identity: Identity,
    layer: Layer,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> dict[str, Any]:
    deliveries = await layer.webhook_service.list_deliveries(
        tenant_of(identity), webhook_id, limit=limit
    )
    return {"deliveries": [d.to_dict() for d in deliveries]}


@webhook_router.get("/{webhook_id}/secret", response_model=WebhookSecretResponse)
async def get_secret(
    webhook_id: WebhookId, identity: Identity, layer: Layer
) -> WebhookSecretResponse:
    secret = await layer.webhook_service.get_secret(tenant_of(identity), webhook_id)
    return WebhookSecretResponse(secret=secret)


@webhook_router.post("/{webhook_id}/secret", response_model=WebhookSecretResponse)
async def regenerate_secret(
    webhook_id: WebhookId, identity: Identity, layer: Layer
) -> WebhookSecretResponse:
    secret = await layer.webhook_service.regenerate_secret(tenant_of(identity), webhook_id)
    return WebhookSecretResponse(secret=secret)
