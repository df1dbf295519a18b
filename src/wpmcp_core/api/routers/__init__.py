"""REST API routers."""

from .connections import connection_router
from .health import health_router
from .keys import key_router
from .usage import usage_router
from .webhooks import webhook_router

__all__ = [
    "connection_router",
    "health_router",
    "key_router",
    "usage_router",
    "webhook_router",
]
