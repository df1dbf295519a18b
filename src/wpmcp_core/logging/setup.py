"""Structured logging setup.

Provides JSON logging with automatic trace context injection. Every module
in the package logs through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look.

Usage:
    from wpmcp_core.logging import configure_logging

    configure_logging(LogConfig(format=LogFormat.JSON))
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from opentelemetry import trace

from wpmcp_core.config.models import LogConfig
from wpmcp_core.types import LogFormat, LogLevel

from .redaction import _RESERVED_ATTRS, RedactingFilter

ROOT_LOGGER = "wpmcp_core"

_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter with trace context injection.

    Formats log records as JSON with:
    - timestamp (ISO 8601)
    - level
    - component (logger name)
    - message
    - trace_id / span_id (if a span is recording)
    - Additional fields from extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            if ctx.is_valid:
                log_data["trace_id"] = format(ctx.trace_id, "032x")
                log_data["span_id"] = format(ctx.span_id, "016x")

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(config: LogConfig | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Install a handler on the package root logger.

    Idempotent: a second call replaces the handler installed by the first.

    Returns:
        The configured ``wpmcp_core`` logger
    """
    config = config or LogConfig()
    root = logging.getLogger(ROOT_LOGGER)

    for handler in list(root.handlers):
        if getattr(handler, "_wpmcp_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._wpmcp_handler = True  # type: ignore[attr-defined]
    if config.format == LogFormat.JSON:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
    if config.redact:
        handler.addFilter(RedactingFilter())

    root.addHandler(handler)
    root.setLevel(_LEVELS.get(config.level, logging.INFO))
    root.propagate = False
    return root
