"""REST API request and response models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# ─────────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────────


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthCheck(BaseModel):
    """Health check response."""

    status: HealthStatus
    version: str
    checks: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime


# ─────────────────────────────────────────────────────────────────
# API keys
# ─────────────────────────────────────────────────────────────────


class ApiKeyCreateRequest(BaseModel):
    """Create an API key for a connection."""

    connection_id: str
    name: str = Field(default="Default", max_length=100)
    environment: str = Field(default="live", pattern="^(live|test)$")


class ApiKeyCreateResponse(BaseModel):
    """The only response that carries a plaintext key."""

    key: str = Field(description="Shown once; store it securely")
    api_key: dict[str, Any]


# ─────────────────────────────────────────────────────────────────
# Connections
# ─────────────────────────────────────────────────────────────────


class ConnectionCreateRequest(BaseModel):
    """Register a WordPress site."""

    name: str = Field(min_length=1, max_length=100)
    url: str
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, description="WordPress application password")


# ─────────────────────────────────────────────────────────────────
# Webhooks
# ─────────────────────────────────────────────────────────────────


class WebhookCreateRequest(BaseModel):
    """Register a webhook."""

    url: str
    events: list[str] = Field(min_length=1)
    description: str | None = Field(default=None, max_length=500)


class WebhookUpdateRequest(BaseModel):
    """Partial webhook update."""

    url: str | None = None
    events: list[str] | None = None
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class WebhookCreateResponse(BaseModel):
    """Created webhook plus its signing secret."""

    webhook: dict[str, Any]
    secret: str


class WebhookSecretResponse(BaseModel):
    secret: str
