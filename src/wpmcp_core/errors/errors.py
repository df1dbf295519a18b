"""Error types for the trust and access layer."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    AUTH = "AUTH"
    QUOTA = "QUOTA"
    CREDENTIAL = "CREDENTIAL"
    WEBHOOK = "WEBHOOK"
    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


@dataclass
class WpmcpError(Exception):
    """Structured error with context. Base exception for all wpmcp errors."""

    # Identity
    code: str  # e.g., "INVALID_TOKEN"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    http_status: int = 500
    tenant_id: str | None = None
    request_id: str | None = None

    cause: "WpmcpError | None" = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "tenant_id": self.tenant_id,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def with_context(
        self,
        tenant_id: str | None = None,
        request_id: str | None = None,
    ) -> "WpmcpError":
        """Return copy with additional context.

        Args:
            tenant_id: Optional tenant identifier
            request_id: Optional request identifier

        Returns:
            New error instance of the same class with updated context
        """
        return type(self)(
            code=self.code,
            category=self.category,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
            http_status=self.http_status,
            tenant_id=tenant_id or self.tenant_id,
            request_id=request_id or self.request_id,
            cause=self.cause,
            timestamp=self.timestamp,
        )


@dataclass
class CredentialDecryptionFailed(WpmcpError):
    """A stored connection secret could not be decrypted.

    Fatal for the request that needed the secret. Never carries the
    ciphertext or any key material.
    """


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "Account '{tenant_id}' is {status}"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False
    default_http_status: int = 500
    error_class: type[WpmcpError] = WpmcpError
