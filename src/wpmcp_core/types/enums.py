"""Shared enumerations for wpmcp-core."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    TEXT = "text"
    JSON = "json"


class Tier(str, Enum):
    """Subscription plan tier, ordered from lowest to highest."""

    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        """Position of the tier in the upgrade ladder."""
        return list(Tier).index(self)

    def at_least(self, other: "Tier") -> bool:
        """Check if this tier is the same as or above another."""
        return self.rank >= other.rank


class TenantStatus(str, Enum):
    """Customer account status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class ApiKeyStatus(str, Enum):
    """API key lifecycle status. Revocation never deletes the row."""

    ACTIVE = "active"
    REVOKED = "revoked"


class ConnectionStatus(str, Enum):
    """WordPress connection status."""

    ACTIVE = "active"
    DISABLED = "disabled"


class AdminRole(str, Enum):
    """Operator role carried by admin tokens."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SUPPORT = "support"


class StorageBackend(str, Enum):
    """Durable store implementation."""

    MEMORY = "memory"
    SQLITE = "sqlite"
