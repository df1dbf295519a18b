"""Plan catalog: monthly quota, per-minute rate and connection allowance per tier."""

from __future__ import annotations

from dataclasses import dataclass

from wpmcp_core.types import Tier

UNLIMITED = -1


@dataclass(frozen=True)
class Plan:
    """Limits attached to a subscription tier."""

    tier: Tier
    requests_per_month: int
    rate_limit: int  # Requests per minute
    max_connections: int  # UNLIMITED for no cap

    def allows_connections(self, current: int) -> bool:
        """Check if one more connection fits the allowance."""
        return self.max_connections == UNLIMITED or current < self.max_connections


DEFAULT_PLANS: dict[Tier, Plan] = {
    Tier.FREE: Plan(Tier.FREE, requests_per_month=1_000, rate_limit=10, max_connections=1),
    Tier.STARTER: Plan(Tier.STARTER, requests_per_month=10_000, rate_limit=30, max_connections=3),
    Tier.PRO: Plan(Tier.PRO, requests_per_month=50_000, rate_limit=100, max_connections=10),
    Tier.BUSINESS: Plan(
        Tier.BUSINESS, requests_per_month=200_000, rate_limit=300, max_connections=25
    ),
    Tier.ENTERPRISE: Plan(
        Tier.ENTERPRISE,
        requests_per_month=999_999_999,
        rate_limit=1_000,
        max_connections=UNLIMITED,
    ),
}


class PlanCatalog:
    """Lookup of plan limits by tier."""

    def __init__(self, plans: dict[Tier, Plan] | None = None) -> None:
        self._plans = dict(plans or DEFAULT_PLANS)

    def get(self, tier: Tier | str) -> Plan:
        """Get the plan for a tier. Unknown tiers get the free plan."""
        try:
            return self._plans[Tier(tier)]
        except (KeyError, ValueError):
            return self._plans[Tier.FREE]

    def monthly_limit(self, tier: Tier | str) -> int:
        return self.get(tier).requests_per_month

    def rate_limit(self, tier: Tier | str) -> int:
        return self.get(tier).rate_limit

    def __iter__(self):
        return iter(self._plans.values())
