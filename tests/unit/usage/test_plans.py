"""Unit tests for the plan catalog and billing periods."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from wpmcp_core.types import Tier
from wpmcp_core.usage import UNLIMITED, PlanCatalog, current_period


class TestPlanCatalog:
    """Tests for PlanCatalog lookups."""

    @pytest.mark.parametrize(
        ("tier", "monthly", "rate"),
        [
            (Tier.FREE, 1_000, 10),
            (Tier.STARTER, 10_000, 30),
            (Tier.PRO, 50_000, 100),
            (Tier.BUSINESS, 200_000, 300),
            (Tier.ENTERPRISE, 999_999_999, 1_000),
        ],
    )
    def test_default_limits(self, tier, monthly, rate):
        catalog = PlanCatalog()
        assert catalog.monthly_limit(tier) == monthly
        assert catalog.rate_limit(tier) == rate

    def test_accepts_string_tier(self):
        assert PlanCatalog().monthly_limit("pro") == 50_000

    def test_unknown_tier_falls_back_to_free(self):
        assert PlanCatalog().get("platinum").tier == Tier.FREE

    def test_connection_allowance(self):
        catalog = PlanCatalog()
        assert catalog.get(Tier.FREE).allows_connections(0)
        assert not catalog.get(Tier.FREE).allows_connections(1)
        assert catalog.get(Tier.ENTERPRISE).max_connections == UNLIMITED
        assert catalog.get(Tier.ENTERPRISE).allows_connections(10_000)

    def test_limits_grow_with_tier(self):
        limits = [plan.requests_per_month for plan in PlanCatalog()]
        assert limits == sorted(limits)


class TestCurrentPeriod:
    """Tests for current_period."""

    def test_format(self):
        assert current_period(datetime(2026, 3, 9, tzinfo=UTC)) == "2026-03"

    def test_uses_utc(self):
        """Test periods roll over at UTC midnight, not local time."""
        local = datetime(2026, 4, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        assert current_period(local) == "2026-03"

    def test_default_is_now(self):
        assert current_period() == datetime.now(UTC).strftime("%Y-%m")
