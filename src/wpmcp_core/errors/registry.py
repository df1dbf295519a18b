"""Error registry for creating errors from templates."""

from typing import Any

from .errors import CredentialDecryptionFailed, ErrorCategory, ErrorTemplate, WpmcpError


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Add or replace a template."""
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: WpmcpError | None = None,
    ) -> WpmcpError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            WpmcpError instance (or the template's subclass)

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        # An explicit detail overrides the template
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        return template.error_class(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            http_status=template.default_http_status,
            tenant_id=context.get("tenant_id"),
            request_id=context.get("request_id"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except KeyError:
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # AUTH Errors
        self._templates["MISSING_TOKEN"] = ErrorTemplate(
            code="MISSING_TOKEN",
            category=ErrorCategory.AUTH,
            message_template="Authentication required",
            detail_template="No bearer token, API key, or WordPress credentials were provided",
            suggestion_template="Send 'Authorization: Bearer <token or API key>'",
            default_http_status=401,
        )

        self._templates["INVALID_TOKEN"] = ErrorTemplate(
            code="INVALID_TOKEN",
            category=ErrorCategory.AUTH,
            message_template="Invalid or expired token",
            detail_template="The token signature did not verify or the token has expired",
            suggestion_template="Sign in again to obtain a fresh token",
            default_http_status=401,
        )

        self._templates["INVALID_CREDENTIALS"] = ErrorTemplate(
            code="INVALID_CREDENTIALS",
            category=ErrorCategory.AUTH,
            message_template="Invalid credentials",
            detail_template="The API key or password was not recognised",
            suggestion_template="Check the API key or create a new one in the dashboard",
            default_http_status=401,
        )

        self._templates["ACCOUNT_INACTIVE"] = ErrorTemplate(
            code="ACCOUNT_INACTIVE",
            category=ErrorCategory.AUTH,
            message_template="Account is {status}",
            detail_template="Suspended or deleted accounts cannot authenticate",
            suggestion_template="Contact support to reactivate the account",
            default_http_status=403,
        )

        self._templates["PERMISSION_DENIED"] = ErrorTemplate(
            code="PERMISSION_DENIED",
            category=ErrorCategory.AUTH,
            message_template="Missing permission '{permission}'",
            detail_template="The authenticated identity is not allowed to perform this operation",
            default_http_status=403,
        )

        self._templates["TIER_REQUIRED"] = ErrorTemplate(
            code="TIER_REQUIRED",
            category=ErrorCategory.AUTH,
            message_template="This feature requires the {required_tier} plan or above",
            detail_template="Current plan is {current_tier}",
            suggestion_template="Upgrade your plan to use this feature",
            default_http_status=403,
        )

        self._templates["AUTH_NOT_CONFIGURED"] = ErrorTemplate(
            code="AUTH_NOT_CONFIGURED",
            category=ErrorCategory.SYSTEM,
            message_template="Authentication is not configured",
            default_http_status=500,
        )

        # QUOTA Errors
        self._templates["QUOTA_EXCEEDED"] = ErrorTemplate(
            code="QUOTA_EXCEEDED",
            category=ErrorCategory.QUOTA,
            message_template="Monthly request limit exceeded ({used}/{limit})",
            detail_template="The quota for period {period} is exhausted",
            suggestion_template="Upgrade your plan for more requests",
            default_http_status=429,
        )

        self._templates["RATE_LIMIT_EXCEEDED"] = ErrorTemplate(
            code="RATE_LIMIT_EXCEEDED",
            category=ErrorCategory.QUOTA,
            message_template="Rate limit exceeded",
            detail_template="Maximum {limit} requests per minute",
            suggestion_template="Wait {retry_after}s before making more requests",
            default_retryable=True,
            default_http_status=429,
        )

        # CREDENTIAL Errors
        self._templates["CREDENTIAL_DECRYPTION_FAILED"] = ErrorTemplate(
            code="CREDENTIAL_DECRYPTION_FAILED",
            category=ErrorCategory.CREDENTIAL,
            message_template="Stored WordPress credentials could not be decrypted",
            detail_template="The stored secret is corrupted or was encrypted under another key",
            suggestion_template="Re-enter the WordPress application password for this connection",
            default_http_status=500,
            error_class=CredentialDecryptionFailed,
        )

        self._templates["CONNECTION_LIMIT"] = ErrorTemplate(
            code="CONNECTION_LIMIT",
            category=ErrorCategory.CREDENTIAL,
            message_template="Connection limit reached ({limit} for {tier} plan)",
            suggestion_template="Remove a connection or upgrade your plan",
            default_http_status=403,
        )

        # WEBHOOK Errors
        self._templates["WEBHOOK_DELIVERY_FAILED"] = ErrorTemplate(
            code="WEBHOOK_DELIVERY_FAILED",
            category=ErrorCategory.WEBHOOK,
            message_template="Webhook delivery failed",
            detail_template="{reason}",
            default_retryable=True,
            default_http_status=502,
        )

        self._templates["WEBHOOK_NOT_FOUND"] = ErrorTemplate(
            code="WEBHOOK_NOT_FOUND",
            category=ErrorCategory.WEBHOOK,
            message_template="Webhook not found",
            default_http_status=404,
        )

        self._templates["WEBHOOK_LIMIT"] = ErrorTemplate(
            code="WEBHOOK_LIMIT",
            category=ErrorCategory.WEBHOOK,
            message_template="Maximum {limit} webhooks allowed per customer",
            default_http_status=409,
        )

        self._templates["DUPLICATE_WEBHOOK"] = ErrorTemplate(
            code="DUPLICATE_WEBHOOK",
            category=ErrorCategory.WEBHOOK,
            message_template="A webhook with this URL already exists",
            default_http_status=409,
        )

        self._templates["INVALID_EVENT_TYPE"] = ErrorTemplate(
            code="INVALID_EVENT_TYPE",
            category=ErrorCategory.VALIDATION,
            message_template="Invalid event types: {invalid}",
            suggestion_template="Use one of the documented event types",
            default_http_status=400,
        )

        # VALIDATION Errors
        self._templates["VALIDATION_ERROR"] = ErrorTemplate(
            code="VALIDATION_ERROR",
            category=ErrorCategory.VALIDATION,
            message_template="{message}",
            default_http_status=400,
        )

        self._templates["RESOURCE_NOT_FOUND"] = ErrorTemplate(
            code="RESOURCE_NOT_FOUND",
            category=ErrorCategory.VALIDATION,
            message_template="{resource} not found",
            default_http_status=404,
        )

        # SYSTEM Errors
        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.SYSTEM,
            message_template="Configuration is invalid",
            suggestion_template="Check the configuration file and environment variables",
            default_http_status=500,
        )

        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="An unexpected error occurred",
            default_http_status=500,
        )
