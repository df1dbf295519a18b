"""REST API middleware."""

from .request_id import RequestIDMiddleware, accept_request_id, get_request_id

__all__ = ["RequestIDMiddleware", "accept_request_id", "get_request_id"]
