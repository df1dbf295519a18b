"""Health router."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from wpmcp_core import __version__
from wpmcp_core.api.models import HealthCheck, HealthStatus

health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthCheck)
async def health_check(request: Request) -> HealthCheck:
    """Check trust layer health."""
    layer = request.app.state.trust_layer
    checks: dict[str, str] = {}

    checks["store"] = "ok" if layer.store is not None else "not_configured"

    if layer.redis is None:
        checks["redis"] = "not_configured"
    elif layer.redis.connected:
        checks["redis"] = "ok"
    else:
        # Rate limiting fails open without Redis
        checks["redis"] = "unavailable"

    checks["webhooks_pending"] = str(layer.dispatcher.pending) if layer.dispatcher else "0"

    if checks["store"] != "ok":
        status = HealthStatus.UNHEALTHY
    elif checks["redis"] == "unavailable":
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    return HealthCheck(
        status=status,
        version=__version__,
        checks=checks,
        timestamp=datetime.now(UTC),
    )
