"""Request dependencies for the REST routers."""

from collections.abc import Callable

from fastapi import Request

from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import Permission, ResolvedIdentity, require_permission
from wpmcp_core.errors import create_error


def get_layer(request: Request) -> TrustLayer:
    return request.app.state.trust_layer


def get_identity(request: Request) -> ResolvedIdentity:
    """Identity attached by TenantAuthMiddleware."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise create_error("MISSING_TOKEN")
    return identity


def requires(permission: Permission) -> Callable[[Request], ResolvedIdentity]:
    """Dependency factory: the caller's identity, checked for a permission."""

    def dependency(request: Request) -> ResolvedIdentity:
        identity = get_identity(request)
        require_permission(identity, permission)
        return identity

    return dependency


def tenant_of(identity: ResolvedIdentity) -> str:
    if identity.tenant_id is None:
        raise create_error("PERMISSION_DENIED", permission="tenant")
    return identity.tenant_id
