"""REST API for the trust layer."""

from wpmcp_core.api.app import create_app

__all__ = ["create_app"]
