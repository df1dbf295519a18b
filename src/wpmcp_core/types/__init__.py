"""Shared types for wpmcp-core.

Import from here rather than submodules:
    from wpmcp_core.types import Tier, TenantStatus
"""

from .enums import (
    AdminRole,
    ApiKeyStatus,
    ConnectionStatus,
    LogFormat,
    LogLevel,
    StorageBackend,
    TenantStatus,
    Tier,
)

__all__ = [
    "AdminRole",
    "ApiKeyStatus",
    "ConnectionStatus",
    "LogFormat",
    "LogLevel",
    "StorageBackend",
    "TenantStatus",
    "Tier",
]
