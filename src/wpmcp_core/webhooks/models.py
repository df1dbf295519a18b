"""Webhook subscription, delivery log and wire payload models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .events import WebhookEventType


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Webhook:
    """A tenant's webhook subscription."""

    id: str
    tenant_id: str
    url: str
    secret: str = field(repr=False)
    events: list[WebhookEventType] = field(default_factory=list)
    is_active: bool = True
    failure_count: int = 0
    description: str | None = None
    last_triggered_at: datetime | None = None
    last_status_code: int | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def subscribes_to(self, event_type: WebhookEventType) -> bool:
        return event_type in self.events

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize for API responses. The signing secret is never included."""
        return {
            "id": self.id,
            "url": self.url,
            "events": [e.value for e in self.events],
            "is_active": self.is_active,
            "failure_count": self.failure_count,
            "description": self.description,
            "last_triggered_at": (
                self.last_triggered_at.isoformat() if self.last_triggered_at else None
            ),
            "last_status_code": self.last_status_code,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class WebhookDelivery:
    """One delivery attempt. Append-only."""

    id: str
    webhook_id: str
    event_type: str
    payload: str
    status_code: int | None = None
    response_body: str | None = None
    response_time_ms: int | None = None
    error: str | None = None
    attempt_number: int = 1
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def succeeded(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "webhook_id": self.webhook_id,
            "event_type": self.event_type,
            "status_code": self.status_code,
            "response_body": self.response_body,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "attempt_number": self.attempt_number,
            "created_at": self.created_at.isoformat(),
        }


class WebhookPayload(BaseModel):
    """Body posted to a subscriber."""

    id: str = Field(description="Unique event id")
    type: WebhookEventType = Field(description="Event type")
    timestamp: datetime = Field(description="When the event was emitted")
    data: dict[str, Any] = Field(default_factory=dict, description="Event data")


@dataclass
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    success: bool
    status_code: int | None = None
    response_body: str | None = None
    response_time_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status_code": self.status_code,
            "response_body": self.response_body,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
        }
