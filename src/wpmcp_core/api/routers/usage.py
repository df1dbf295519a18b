"""Usage router."""

from dataclasses import asdict
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path

from wpmcp_core.api.deps import get_layer, requires, tenant_of
from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import Permission, ResolvedIdentity
from wpmcp_core.usage import UsageCounter

usage_router = APIRouter(prefix="/usage", tags=["Usage"])

Layer = Annotated[TrustLayer, Depends(get_layer)]


def _counter_dict(counter: UsageCounter) -> dict[str, Any]:
    return {
        "period": counter.period,
        "request_count": counter.request_count,
        "success_count": counter.success_count,
        "error_count": counter.error_count,
    }


@usage_router.get("")
async def get_usage(
    identity: Annotated[ResolvedIdentity, Depends(requires(Permission.USAGE_VIEW))],
    layer: Layer,
) -> dict[str, Any]:
    """Current period usage against the plan limit, with history."""
    stats = await layer.usage_gate.get_stats(tenant_of(identity), identity.tier)
    data = asdict(stats)
    data["history"] = [_counter_dict(c) for c in stats.history]
    return data


@usage_router.post("/{tenant_id}/reset")
async def reset_usage(
    tenant_id: Annotated[str, Path()],
    identity: Annotated[ResolvedIdentity, Depends(requires(Permission.CUSTOMERS_MANAGE))],
    layer: Layer,
) -> dict[str, Any]:
    """Operator action: zero the tenant's current period."""
    counter = await layer.usage_gate.reset_current_period(tenant_id)
    return {"tenant_id": tenant_id, **_counter_dict(counter)}
