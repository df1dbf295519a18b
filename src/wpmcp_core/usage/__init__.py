"""Monthly quota, rate window and plan catalog."""

from .gate import UsageGate
from .models import IncrementResult, UsageCounter, UsageDecision, UsageStats
from .period import current_period
from .plans import DEFAULT_PLANS, UNLIMITED, Plan, PlanCatalog

__all__ = [
    "DEFAULT_PLANS",
    "UNLIMITED",
    "IncrementResult",
    "Plan",
    "PlanCatalog",
    "UsageCounter",
    "UsageDecision",
    "UsageGate",
    "UsageStats",
    "current_period",
]
