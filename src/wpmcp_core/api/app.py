"""REST API application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from wpmcp_core import __version__
from wpmcp_core.api.errors import setup_error_handlers
from wpmcp_core.api.middleware import RequestIDMiddleware
from wpmcp_core.api.routers import (
    connection_router,
    health_router,
    key_router,
    usage_router,
    webhook_router,
)
from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import TenantAuthMiddleware
from wpmcp_core.config import AuthConfig

API_PREFIX = "/api/v1"


def create_app(
    layer: TrustLayer,
    prefix: str = API_PREFIX,
    docs_enabled: bool = True,
    metered_paths: list[str] | None = None,
) -> FastAPI:
    """Create FastAPI application with all routes.

    The layer is initialized on startup and shut down on exit; callers may
    also initialize it beforehand.

    Args:
        layer: Trust layer providing every component
        prefix: URL prefix for the REST routes
        docs_enabled: Serve OpenAPI docs at /docs
        metered_paths: Path prefixes that consume quota (default: /mcp)

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await layer.initialize()
        try:
            yield
        finally:
            await layer.shutdown()

    app = FastAPI(
        title="wpmcp trust layer",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.trust_layer = layer

    auth_config = layer.config.auth if layer.config else AuthConfig()

    # Starlette wraps in reverse order: the last middleware added runs first.
    app.add_middleware(
        TenantAuthMiddleware,
        resolver=_LazyResolver(layer),
        usage_gate=_LazyGate(layer),
        exclude_paths=[f"{prefix}/health", *auth_config.exclude_paths],
        metered_paths=metered_paths,
    )
    app.add_middleware(RequestIDMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router, prefix=prefix)
    app.include_router(key_router, prefix=prefix)
    app.include_router(connection_router, prefix=prefix)
    app.include_router(webhook_router, prefix=prefix)
    app.include_router(usage_router, prefix=prefix)

    return app


class _LazyResolver:
    """Defers to the layer's resolver, which exists only after initialize()."""

    def __init__(self, layer: TrustLayer):
        self._layer = layer

    async def resolve(self, headers):
        if self._layer.resolver is None:
            await self._layer.initialize()
        return await self._layer.resolver.resolve(headers)


class _LazyGate:
    def __init__(self, layer: TrustLayer):
        self._layer = layer

    async def enforce(self, identity):
        if self._layer.usage_gate is None:
            await self._layer.initialize()
        return await self._layer.usage_gate.enforce(identity)

    async def record_outcome(self, tenant_id, success):
        await self._layer.usage_gate.record_outcome(tenant_id, success)

    async def rate_remaining(self, identity):
        return await self._layer.usage_gate.rate_remaining(identity)
