"""Durable and short-lived state for the trust layer."""

from .base import TrustStore
from .memory import MemoryTrustStore
from .redis import RedisConnection
from .sqlite import SQLiteTrustStore
from .state import MemoryStateStore, OneTimeStateStore, RedisStateStore

__all__ = [
    "TrustStore",
    "MemoryTrustStore",
    "SQLiteTrustStore",
    "RedisConnection",
    "OneTimeStateStore",
    "MemoryStateStore",
    "RedisStateStore",
]
