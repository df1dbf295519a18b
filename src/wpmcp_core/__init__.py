"""wpmcp-core - Trust and access layer for a multi-tenant WordPress MCP proxy.

Tenant identity, API keys, encrypted WordPress credentials, usage quotas
and signed webhooks.
"""

from wpmcp_core.application import TrustLayer

__version__ = "0.1.0"
__all__ = ["__version__", "TrustLayer"]
