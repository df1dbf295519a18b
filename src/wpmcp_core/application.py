"""TrustLayer - wires every trust and access component from configuration.

Initialization sequence:

1. Config loading and secret validation
2. Logging setup
3. Durable store (memory or SQLite)
4. Redis connection (optional) and one-time state store
5. Cryptographic key derivation
6. Webhook dispatcher and registration service
7. Credential vault and token service
8. Rate limiter and usage gate
9. Auth resolver
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TextIO

import httpx

from wpmcp_core.auth import AuthResolver, CredentialVault, RateLimiter, TokenService
from wpmcp_core.config import ConfigLoader, TrustLayerConfig, validate_secrets
from wpmcp_core.crypto import SecretBox
from wpmcp_core.logging import configure_logging
from wpmcp_core.storage import (
    MemoryStateStore,
    MemoryTrustStore,
    OneTimeStateStore,
    RedisConnection,
    RedisStateStore,
    SQLiteTrustStore,
    TrustStore,
)
from wpmcp_core.types import StorageBackend
from wpmcp_core.usage import PlanCatalog, UsageGate
from wpmcp_core.webhooks import WebhookDispatcher, WebhookService

logger = logging.getLogger(__name__)


class TrustLayer:
    """Orchestrates the trust layer components.

    Example:
        layer = TrustLayer(config_path="wpmcp-config.yaml")
        await layer.initialize()
        identity = await layer.resolver.resolve(request.headers)
        await layer.usage_gate.enforce(identity)
        ...
        await layer.shutdown()
    """

    def __init__(
        self,
        config: TrustLayerConfig | None = None,
        config_path: str | Path | None = None,
        store: TrustStore | None = None,
        redis_client: Any | None = None,
        webhook_transport: httpx.AsyncBaseTransport | None = None,
        log_output: TextIO | None = None,
        plans: PlanCatalog | None = None,
    ):
        """Initialize the layer (components are built in initialize()).

        Args:
            config: Configuration object; loaded from file when omitted
            config_path: Path to config file (optional)
            store: Pre-built trust store (tests)
            redis_client: Pre-built redis.asyncio client (tests pass a mock)
            webhook_transport: httpx transport for webhook deliveries (tests)
            log_output: Output stream for logs
            plans: Plan catalog override
        """
        self._config_path = config_path
        self._store_override = store
        self._redis_client = redis_client
        self._webhook_transport = webhook_transport
        self._log_output = log_output
        self._initialized = False

        self.config: TrustLayerConfig | None = config
        self.plans: PlanCatalog = plans or PlanCatalog()
        self.store: TrustStore | None = None
        self.redis: RedisConnection | None = None
        self.state_store: OneTimeStateStore | None = None
        self.secret_box: SecretBox | None = None
        self.dispatcher: WebhookDispatcher | None = None
        self.webhook_service: WebhookService | None = None
        self.vault: CredentialVault | None = None
        self.tokens: TokenService | None = None
        self.rate_limiter: RateLimiter | None = None
        self.usage_gate: UsageGate | None = None
        self.resolver: AuthResolver | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Build and connect all components."""
        if self._initialized:
            return

        # 1. Config
        if self.config is None:
            self.config = ConfigLoader().load(self._config_path)
        validate_secrets(self.config)
        config = self.config

        # 2. Logging
        configure_logging(config.logging, stream=self._log_output)

        # 3. Durable store
        if self._store_override is not None:
            self.store = self._store_override
        elif config.storage.backend == StorageBackend.SQLITE:
            self.store = SQLiteTrustStore(config.storage.sqlite_path)
        else:
            self.store = MemoryTrustStore()

        # 4. Redis and one-time state
        if config.redis.enabled or self._redis_client is not None:
            self.redis = RedisConnection(config.redis, client=self._redis_client)
            if not await self.redis.connect():
                logger.warning("Redis unavailable; rate limiting will fail open")
            self.state_store = RedisStateStore(self.redis, default_ttl=config.state.ttl_seconds)
        else:
            self.state_store = MemoryStateStore(default_ttl=config.state.ttl_seconds)

        # 5. Key derivation
        self.secret_box = SecretBox(config.crypto.master_key, salt=config.crypto.key_salt)

        # 6. Webhooks
        self.dispatcher = WebhookDispatcher(
            self.store,
            timeout=config.webhooks.timeout_seconds,
            max_failures=config.webhooks.max_failures,
            transport=self._webhook_transport,
            user_agent=config.webhooks.user_agent,
            response_body_limit=config.webhooks.response_body_limit,
        )
        self.webhook_service = WebhookService(
            self.store, max_per_tenant=config.webhooks.max_per_tenant
        )

        # 7. Credentials and tokens
        self.vault = CredentialVault(self.store, self.secret_box, self.plans, self.dispatcher)
        self.tokens = TokenService(
            config.tokens.secret,
            admin_secret=config.tokens.admin_secret,
            tenant_ttl=config.tokens.tenant_ttl_seconds,
            admin_ttl=config.tokens.admin_ttl_seconds,
            deny_list=self.state_store,
        )

        # 8. Usage
        if self.redis is not None and config.usage.rate_limiting_enabled:
            self.rate_limiter = RateLimiter(
                self.redis, window_seconds=config.usage.rate_window_seconds
            )
        self.usage_gate = UsageGate(
            self.store,
            self.plans,
            dispatcher=self.dispatcher,
            rate_limiter=self.rate_limiter,
            warning_ratio=config.usage.warning_ratio,
        )

        # 9. Resolver
        self.resolver = AuthResolver(
            self.tokens,
            self.vault,
            self.store,
            self.plans,
            legacy_headers_enabled=config.auth.legacy_headers_enabled,
            api_key_header=config.auth.api_key_header,
        )

        self._initialized = True
        logger.info(
            f"Trust layer initialized (store={type(self.store).__name__}, "
            f"redis={'on' if self.redis and self.redis.connected else 'off'})"
        )

    async def shutdown(self) -> None:
        """Drain webhook deliveries and release connections."""
        if not self._initialized:
            return
        if self.dispatcher is not None:
            await self.dispatcher.aclose()
        if self.store is not None:
            await self.store.close()
        if self.redis is not None:
            await self.redis.disconnect()
        self._initialized = False
        logger.info("Trust layer shut down")
