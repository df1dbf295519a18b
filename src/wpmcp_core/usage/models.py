"""Usage counter models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class UsageCounter:
    """Request counters for one tenant in one billing period ("YYYY-MM")."""

    tenant_id: str
    period: str
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class IncrementResult:
    """Result of the store's conditional increment."""

    applied: bool
    request_count: int  # Count after the operation


@dataclass(frozen=True)
class UsageDecision:
    """Whether a metered request may proceed."""

    allowed: bool
    remaining: int
    limit: int
    used: int
    period: str


@dataclass(frozen=True)
class UsageStats:
    """Summary for the usage page."""

    tenant_id: str
    period: str
    request_count: int
    success_count: int
    error_count: int
    limit: int
    remaining: int
    percent_used: float
    history: list[UsageCounter] = field(default_factory=list)
