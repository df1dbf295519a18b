"""wpmcp logging - stdlib logging with JSON output and secret redaction."""

from .redaction import REDACTED, RedactingFilter, RedactionConfig, RedactionPattern, Redactor
from .setup import StructuredLogFormatter, configure_logging

__all__ = [
    "REDACTED",
    "RedactingFilter",
    "RedactionConfig",
    "RedactionPattern",
    "Redactor",
    "StructuredLogFormatter",
    "configure_logging",
]
