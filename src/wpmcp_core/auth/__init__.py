"""Authentication and identity layer.

- Signed tenant and operator tokens
- API keys bound to a tenant's WordPress connection
- Encrypted connection credentials
- Header-based identity resolution and per-tenant rate limiting
"""

from .api_key import extract_key_prefix, generate_api_key, hash_api_key, validate_api_key_format
from .middleware import TenantAuthMiddleware, error_response
from .models import (
    ADMIN_ROLE_PERMISSIONS,
    API_KEY_PERMISSIONS,
    TENANT_PERMISSIONS,
    ApiKeyRecord,
    Connection,
    CreatedApiKey,
    Customer,
    IdentityKind,
    Permission,
    ResolvedIdentity,
    TokenPayload,
    TokenScope,
    WordPressCredentials,
)
from .rate_limiter import RateLimiter
from .resolver import AuthResolver, require_permission, require_tier
from .tokens import TokenService
from .vault import CredentialVault

__all__ = [
    # Models
    "ADMIN_ROLE_PERMISSIONS",
    "API_KEY_PERMISSIONS",
    "TENANT_PERMISSIONS",
    "ApiKeyRecord",
    "Connection",
    "CreatedApiKey",
    "Customer",
    "IdentityKind",
    "Permission",
    "ResolvedIdentity",
    "TokenPayload",
    "TokenScope",
    "WordPressCredentials",
    # API Key
    "extract_key_prefix",
    "generate_api_key",
    "hash_api_key",
    "validate_api_key_format",
    # Services
    "AuthResolver",
    "CredentialVault",
    "TokenService",
    "require_permission",
    "require_tier",
    # Middleware
    "TenantAuthMiddleware",
    "error_response",
    # Rate limiting
    "RateLimiter",
]
