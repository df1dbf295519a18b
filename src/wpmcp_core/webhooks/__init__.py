"""Tenant webhooks: event types, registration, signing and delivery."""

from .dispatcher import WebhookDispatcher, truncate_body
from .events import ALL_EVENT_TYPES, WebhookEventType, parse_event_type, parse_event_types
from .models import DeliveryResult, Webhook, WebhookDelivery, WebhookPayload
from .service import WebhookService
from .signing import compute_signature, verify_signature

__all__ = [
    "ALL_EVENT_TYPES",
    "DeliveryResult",
    "Webhook",
    "WebhookDelivery",
    "WebhookDispatcher",
    "WebhookEventType",
    "WebhookPayload",
    "WebhookService",
    "compute_signature",
    "parse_event_type",
    "parse_event_types",
    "truncate_body",
    "verify_signature",
]
