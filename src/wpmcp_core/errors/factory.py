"""Error factory for creating WpmcpErrors."""

from typing import Any

from .errors import WpmcpError
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates WpmcpErrors from codes or arbitrary exceptions."""

    def __init__(self, registry: ErrorRegistry | None = None):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
        """
        self.registry = registry or ErrorRegistry()

    def from_exception(
        self,
        error: Exception,
        tenant_id: str | None = None,
        request_id: str | None = None,
    ) -> WpmcpError:
        """Convert any exception to WpmcpError.

        Unknown exceptions become INTERNAL_ERROR. Their text is not copied
        into the error since it may contain secret material.
        """
        if isinstance(error, WpmcpError):
            return error.with_context(tenant_id=tenant_id, request_id=request_id)

        return self.registry.create(
            code="INTERNAL_ERROR",
            context={
                "tenant_id": tenant_id,
                "request_id": request_id,
                "detail": type(error).__name__,
            },
        )

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> WpmcpError:
        """Create WpmcpError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            **kwargs: Additional context variables

        Returns:
            WpmcpError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton."""
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> WpmcpError:
    """Convenience function to create error.

    Args:
        code: Error code
        **context: Context variables for template interpolation

    Returns:
        WpmcpError instance
    """
    return get_error_factory().create(code, context)
