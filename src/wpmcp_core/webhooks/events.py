"""Webhook event types. The set is closed; subscriptions are validated against it."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from wpmcp_core.errors import create_error


class WebhookEventType(str, Enum):
    """Events a tenant can subscribe to."""

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    USAGE_LIMIT_WARNING = "usage.limit_warning"
    USAGE_LIMIT_EXCEEDED = "usage.limit_exceeded"
    API_KEY_CREATED = "api_key.created"
    API_KEY_REVOKED = "api_key.revoked"
    API_KEY_EXPIRED = "api_key.expired"
    MCP_REQUEST = "mcp.request"
    MCP_ERROR = "mcp.error"


ALL_EVENT_TYPES: tuple[str, ...] = tuple(e.value for e in WebhookEventType)


def parse_event_type(value: str | WebhookEventType) -> WebhookEventType:
    """Parse a single event type.

    Raises:
        WpmcpError: INVALID_EVENT_TYPE for anything outside the closed set
    """
    return parse_event_types([value])[0]


def parse_event_types(values: Iterable[str | WebhookEventType]) -> list[WebhookEventType]:
    """Parse and de-duplicate a list of event types, keeping order.

    Raises:
        WpmcpError: INVALID_EVENT_TYPE naming every unknown value
    """
    parsed: list[WebhookEventType] = []
    invalid: list[str] = []
    for value in values:
        try:
            event = WebhookEventType(value)
        except ValueError:
            invalid.append(str(value))
            continue
        if event not in parsed:
            parsed.append(event)

    if invalid:
        raise create_error("INVALID_EVENT_TYPE", invalid=", ".join(invalid))
    return parsed
