"""Tenant auth middleware.

Flow:
1. Skip excluded paths (health, docs)
2. Resolve the caller from headers via the AuthResolver
3. Attach the ResolvedIdentity to ``request.state.identity``
4. On metered paths, run the usage gate before the handler, then count the
   handler's outcome (status >= 400 is an error) and expose the caller's
   remaining rate window as ``X-RateLimit-Remaining``

Failures are rendered as ``{"error": {...}}`` with the error's HTTP status.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from wpmcp_core.errors import WpmcpError, create_error

if TYPE_CHECKING:
    from wpmcp_core.usage.gate import UsageGate

    from .models import ResolvedIdentity
    from .resolver import AuthResolver

logger = logging.getLogger(__name__)

# Paths excluded from authentication
DEFAULT_EXCLUDE_PATHS = [
    "/health",
    "/api/v1/health",
    "/docs",
    "/redoc",
    "/openapi.json",
]

# Paths whose requests count against the monthly quota
DEFAULT_METERED_PATHS = ["/mcp"]


def error_response(error: WpmcpError, request_id: str | None = None) -> JSONResponse:
    """Render a WpmcpError as a JSON response."""
    if request_id and not error.request_id:
        error = error.with_context(request_id=request_id)
    return JSONResponse(status_code=error.http_status, content={"error": error.to_dict()})


class TenantAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the caller of every non-excluded request."""

    def __init__(
        self,
        app,
        resolver: AuthResolver | None = None,
        usage_gate: UsageGate | None = None,
        exclude_paths: list[str] | None = None,
        metered_paths: list[str] | None = None,
    ):
        """Initialize middleware.

        Args:
            app: ASGI application
            resolver: Auth resolver (requests fail with AUTH_NOT_CONFIGURED without one)
            usage_gate: Gate applied to metered paths
            exclude_paths: Paths to exclude from authentication
            metered_paths: Path prefixes that consume quota
        """
        super().__init__(app)
        self._resolver = resolver
        self._gate = usage_gate
        self._exclude_paths = exclude_paths if exclude_paths is not None else DEFAULT_EXCLUDE_PATHS
        self._metered_paths = metered_paths if metered_paths is not None else DEFAULT_METERED_PATHS

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request with authentication."""
        path = request.url.path
        request_id = getattr(request.state, "request_id", None)

        if any(path == excluded or path.startswith(excluded + "/") for excluded in self._exclude_paths):
            return await call_next(request)

        if self._resolver is None:
            return error_response(create_error("AUTH_NOT_CONFIGURED"), request_id)

        metered = self._gate is not None and any(path.startswith(p) for p in self._metered_paths)
        try:
            identity = await self._resolver.resolve(request.headers)
            if metered:
                await self._gate.enforce(identity)
        except WpmcpError as e:
            logger.info(f"[AUTH] {request.method} {path} rejected: {e.code}")
            return error_response(e, request_id)

        request.state.identity = identity
        if not (metered and identity.is_metered):
            return await call_next(request)

        try:
            response = await call_next(request)
        except Exception:
            await self._record_outcome(identity, success=False)
            raise
        await self._record_outcome(identity, success=response.status_code < 400)
        await self._set_rate_headers(identity, response)
        return response

    async def _record_outcome(self, identity: ResolvedIdentity, success: bool) -> None:
        """Count the finished request. Best effort; the response is already built."""
        try:
            await self._gate.record_outcome(identity.tenant_id, success)
        except Exception as e:
            logger.warning(
                f"[USAGE] Could not record outcome for tenant '{identity.tenant_id}': {e}"
            )

    async def _set_rate_headers(self, identity: ResolvedIdentity, response: Response) -> None:
        try:
            remaining = await self._gate.rate_remaining(identity)
        except Exception as e:
            logger.warning(
                f"[USAGE] Could not read rate window for tenant '{identity.tenant_id}': {e}"
            )
            return
        if remaining is not None:
            response.headers["X-RateLimit-Remaining"] = str(remaining)
