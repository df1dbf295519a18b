"""Billing period keys."""

from __future__ import annotations

from datetime import UTC, datetime


def current_period(now: datetime | None = None) -> str:
    """Return the UTC billing period key, e.g. "2026-10"."""
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.strftime("%Y-%m")
