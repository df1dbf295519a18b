"""wpmcp error handling - Structured errors with stable codes."""

from .errors import CredentialDecryptionFailed, ErrorCategory, ErrorTemplate, WpmcpError
from .factory import ErrorFactory, create_error, get_error_factory
from .registry import ErrorRegistry

__all__ = [
    # Core error types
    "WpmcpError",
    "CredentialDecryptionFailed",
    "ErrorCategory",
    "ErrorTemplate",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    # Convenience functions
    "get_error_factory",
    "create_error",
]
