"""Secret redaction for log records.

Plaintext API keys, bearer tokens and WordPress passwords must never reach a
log sink. The filter rewrites the formatted message and any extra fields
before handlers see them.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

REDACTED = "[REDACTED]"


@dataclass
class RedactionPattern:
    """Pattern-based redaction rule."""

    regex: re.Pattern[str]
    replacement: str

    @classmethod
    def from_string(cls, pattern: str, replacement: str) -> "RedactionPattern":
        """Create from string pattern."""
        return cls(regex=re.compile(pattern), replacement=replacement)


@dataclass
class RedactionConfig:
    """Redaction configuration."""

    enabled: bool = True

    # Field names to always redact (case-insensitive)
    fields: list[str] = field(
        default_factory=lambda: [
            "password",
            "wp_password",
            "secret",
            "api_key",
            "token",
            "authorization",
            "credential",
            "master_key",
            "x-wordpress-password",
        ]
    )

    patterns: list[RedactionPattern] = field(default_factory=list)

    @classmethod
    def default(cls) -> "RedactionConfig":
        """Create default redaction config with common patterns."""
        return cls(
            enabled=True,
            patterns=[
                RedactionPattern.from_string(
                    r"wpm_(live|test)_[A-Za-z0-9]{4,}", "[REDACTED_API_KEY]"
                ),
                RedactionPattern.from_string(
                    r"(?i)bearer\s+[A-Za-z0-9\-_.=]+", "Bearer [REDACTED]"
                ),
                RedactionPattern.from_string(
                    r"eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+", "[REDACTED_JWT]"
                ),
                RedactionPattern.from_string(
                    r"(?i)(password|secret)=\S+", r"\1=[REDACTED]"
                ),
            ],
        )


class Redactor:
    """Redacts sensitive data."""

    def __init__(self, config: RedactionConfig | None = None) -> None:
        self._config = config or RedactionConfig.default()
        self._field_set = {f.lower() for f in self._config.fields}

    def redact(self, data: Any) -> Any:
        """Recursively redact sensitive data.

        Args:
            data: Data to redact (dict, list, str, or other)

        Returns:
            Redacted data with sensitive values replaced
        """
        if not self._config.enabled:
            return data

        if isinstance(data, dict):
            return {
                key: (
                    REDACTED
                    if isinstance(key, str) and key.lower() in self._field_set
                    else self.redact(value)
                )
                for key, value in data.items()
            }
        elif isinstance(data, (list, tuple)):
            return [self.redact(item) for item in data]
        elif isinstance(data, str):
            return self.redact_text(data)
        else:
            return data

    def redact_text(self, text: str) -> str:
        """Apply regex patterns to a string."""
        result = text
        for pattern in self._config.patterns:
            result = pattern.regex.sub(pattern.replacement, result)
        return result

    def is_sensitive_field(self, name: str) -> bool:
        """Check if a field name is always redacted."""
        return name.lower() in self._field_set


class RedactingFilter(logging.Filter):
    """Logging filter that redacts secrets from messages and extra fields."""

    def __init__(self, redactor: Redactor | None = None, name: str = "") -> None:
        super().__init__(name)
        self._redactor = redactor or Redactor()

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._redactor.redact_text(record.getMessage())
        record.args = None

        for key, value in list(record.__dict__.items()):
            if key in _RESERVED_ATTRS:
                continue
            if self._redactor.is_sensitive_field(key):
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, self._redactor.redact(value))
        return True


_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "taskName", "asctime",
    }
)
