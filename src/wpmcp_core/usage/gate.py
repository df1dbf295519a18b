"""Usage gate: monthly quota and per-minute rate enforcement.

The quota check is a single conditional increment in the store, so two
concurrent requests at ``limit - 1`` cannot both pass. Threshold events fire
on the request whose increment crosses the threshold, which happens at most
once per period.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from wpmcp_core.auth.models import ResolvedIdentity
from wpmcp_core.errors import create_error
from wpmcp_core.types import Tier
from wpmcp_core.webhooks.events import WebhookEventType

from .models import UsageCounter, UsageDecision, UsageStats
from .period import current_period
from .plans import PlanCatalog

if TYPE_CHECKING:
    from wpmcp_core.auth.rate_limiter import RateLimiter
    from wpmcp_core.storage.base import TrustStore
    from wpmcp_core.webhooks.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

__all__ = ["UsageCounter", "UsageDecision", "UsageGate", "UsageStats", "current_period"]


class UsageGate:
    """Admits or rejects metered requests."""

    def __init__(
        self,
        store: TrustStore,
        plans: PlanCatalog | None = None,
        dispatcher: WebhookDispatcher | None = None,
        rate_limiter: RateLimiter | None = None,
        warning_ratio: float = 0.8,
    ):
        self._store = store
        self._plans = plans or PlanCatalog()
        self._dispatcher = dispatcher
        self._rate_limiter = rate_limiter
        self._warning_ratio = warning_ratio

    @staticmethod
    def current_period(now=None) -> str:
        return current_period(now)

    def warning_threshold(self, limit: int) -> int:
        """Request count at which the warning event fires."""
        return max(1, math.ceil(limit * self._warning_ratio))

    async def check_and_increment(
        self, tenant_id: str, tier: Tier | None = None
    ) -> UsageDecision:
        """Count one request against the tenant's monthly quota.

        Args:
            tenant_id: Tenant to charge
            tier: Plan tier; looked up from the store when omitted

        Returns:
            UsageDecision; a rejected request is not counted
        """
        if tier is None:
            customer = await self._store.get_customer(tenant_id)
            tier = customer.tier if customer else Tier.FREE

        limit = self._plans.monthly_limit(tier)
        period = current_period()
        result = await self._store.increment_usage_if_below(tenant_id, period, limit)
        used = result.request_count

        if not result.applied:
            logger.info(f"[USAGE] Quota exhausted for tenant '{tenant_id}' ({used}/{limit})")
            return UsageDecision(allowed=False, remaining=0, limit=limit, used=used, period=period)

        if used == self.warning_threshold(limit) and used < limit:
            self._emit(
                tenant_id,
                WebhookEventType.USAGE_LIMIT_WARNING,
                self._event_data(period, used, limit),
            )
        if used == limit:
            self._emit(
                tenant_id,
                WebhookEventType.USAGE_LIMIT_EXCEEDED,
                self._event_data(period, used, limit),
            )

        return UsageDecision(
            allowed=True,
            remaining=max(limit - used, 0),
            limit=limit,
            used=used,
            period=period,
        )

    async def enforce(self, identity: ResolvedIdentity) -> UsageDecision | None:
        """Apply rate window and quota for a resolved identity.

        Legacy and admin identities are not metered and get None.

        Raises:
            WpmcpError: RATE_LIMIT_EXCEEDED or QUOTA_EXCEEDED
        """
        if not identity.is_metered or identity.tenant_id is None:
            return None
        tier = identity.tier or Tier.FREE

        if self._rate_limiter is not None:
            rate = self._plans.rate_limit(tier)
            allowed, retry_after = await self._rate_limiter.check_rate_limit(
                identity.tenant_id, rate
            )
            if not allowed:
                raise create_error(
                    "RATE_LIMIT_EXCEEDED",
                    limit=rate,
                    retry_after=retry_after,
                    tenant_id=identity.tenant_id,
                )

        decision = await self.check_and_increment(identity.tenant_id, tier)
        if not decision.allowed:
            raise create_error(
                "QUOTA_EXCEEDED",
                used=decision.used,
                limit=decision.limit,
                period=decision.period,
                tenant_id=identity.tenant_id,
            )
        return decision

    async def record_outcome(self, tenant_id: str, success: bool) -> None:
        """Count a finished request as a success or an error."""
        await self._store.record_usage_outcome(tenant_id, current_period(), success)

    async def rate_remaining(self, identity: ResolvedIdentity) -> int | None:
        """Requests left in the caller's rate window, None when it cannot be told."""
        if self._rate_limiter is None or not identity.is_metered or identity.tenant_id is None:
            return None
        rate = self._plans.rate_limit(identity.tier or Tier.FREE)
        return await self._rate_limiter.get_remaining(identity.tenant_id, rate)

    async def reset_current_period(self, tenant_id: str) -> UsageCounter:
        """Zero the current period's counters (operator action)."""
        period = current_period()
        await self._store.reset_usage(tenant_id, period)
        logger.info(f"[USAGE] Usage reset for tenant '{tenant_id}' ({period})")
        return await self._store.ensure_usage(tenant_id, period)

    async def get_usage(self, tenant_id: str, period: str | None = None) -> UsageCounter:
        period = period or current_period()
        counter = await self._store.get_usage(tenant_id, period)
        return counter or UsageCounter(tenant_id=tenant_id, period=period)

    async def get_stats(self, tenant_id: str, tier: Tier | None = None) -> UsageStats:
        """Current period summary plus recent history."""
        if tier is None:
            customer = await self._store.get_customer(tenant_id)
            tier = customer.tier if customer else Tier.FREE
        limit = self._plans.monthly_limit(tier)
        counter = await self.get_usage(tenant_id)
        history = await self._store.list_usage(tenant_id, limit=12)
        return UsageStats(
            tenant_id=tenant_id,
            period=counter.period,
            request_count=counter.request_count,
            success_count=counter.success_count,
            error_count=counter.error_count,
            limit=limit,
            remaining=max(limit - counter.request_count, 0),
            percent_used=round(counter.request_count / limit * 100, 2) if limit else 0.0,
            history=history,
        )

    @staticmethod
    def _event_data(period: str, used: int, limit: int) -> dict[str, Any]:
        return {
            "period": period,
            "used": used,
            "limit": limit,
            "percent": round(used / limit * 100, 2) if limit else 0.0,
        }

    def _emit(self, tenant_id: str, event_type: WebhookEventType, data: dict[str, Any]) -> None:
        if self._dispatcher is not None:
            self._dispatcher.dispatch_event(tenant_id, event_type, data)
