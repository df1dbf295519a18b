"""wpmcp configuration - Config loading and models."""

from .loader import ConfigLoader, load_config, resolve_env_vars, validate_secrets
from .models import (
    AuthConfig,
    CryptoConfig,
    LogConfig,
    RedisConfig,
    StateConfig,
    StorageConfig,
    TokenConfig,
    TrustLayerConfig,
    UsageConfig,
    WebhookConfig,
)

__all__ = [
    # Loader
    "ConfigLoader",
    "load_config",
    "resolve_env_vars",
    "validate_secrets",
    # Models
    "AuthConfig",
    "CryptoConfig",
    "LogConfig",
    "RedisConfig",
    "StateConfig",
    "StorageConfig",
    "TokenConfig",
    "TrustLayerConfig",
    "UsageConfig",
    "WebhookConfig",
]
