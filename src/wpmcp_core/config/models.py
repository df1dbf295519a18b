"""wpmcp configuration data models."""

from dataclasses import dataclass, field

from wpmcp_core.types import LogFormat, LogLevel, StorageBackend


@dataclass
class CryptoConfig:
    """Master secret for connection credential encryption."""

    master_key: str = ""
    # Fixed, non-secret KDF salt. Rotate master_key on compromise.
    key_salt: str = "wp-mcp-saas-salt"


@dataclass
class TokenConfig:
    """Signed identity token settings."""

    secret: str = ""
    admin_secret: str | None = None  # Falls back to secret
    tenant_ttl_seconds: int = 24 * 60 * 60
    admin_ttl_seconds: int = 8 * 60 * 60


@dataclass
class AuthConfig:
    """Auth resolver settings."""

    # Single-tenant/back-compat deployments only: bypasses quota and webhooks
    legacy_headers_enabled: bool = False
    api_key_header: str = "X-API-Key"
    exclude_paths: list[str] = field(
        default_factory=lambda: ["/health", "/docs", "/redoc", "/openapi.json"]
    )


@dataclass
class UsageConfig:
    """Usage gate settings."""

    warning_ratio: float = 0.8
    rate_limiting_enabled: bool = True
    rate_window_seconds: int = 60


@dataclass
class WebhookConfig:
    """Webhook dispatcher settings."""

    timeout_seconds: float = 10.0
    max_failures: int = 5
    max_per_tenant: int = 10
    response_body_limit: int = 1000
    user_agent: str = "WordPress-MCP-Webhook/1.0"


@dataclass
class StorageConfig:
    """Durable store settings."""

    backend: StorageBackend = StorageBackend.MEMORY
    sqlite_path: str = "./data/wpmcp.db"


@dataclass
class RedisConfig:
    """Redis connection for rate windows and one-time state."""

    enabled: bool = False
    url: str = "redis://localhost:6379/0"
    key_prefix: str = "wpmcp"
    connect_timeout: float = 5.0
    socket_timeout: float = 5.0


@dataclass
class StateConfig:
    """One-time state (OAuth/SSO CSRF values) settings."""

    ttl_seconds: int = 600


@dataclass
class LogConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    redact: bool = True


@dataclass
class TrustLayerConfig:
    """Root configuration."""

    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    usage: UsageConfig = field(default_factory=UsageConfig)
    webhooks: WebhookConfig = field(default_factory=WebhookConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    state: StateConfig = field(default_factory=StateConfig)
    logging: LogConfig = field(default_factory=LogConfig)
