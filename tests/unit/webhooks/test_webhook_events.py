"""Unit tests for webhook event types."""

import pytest

from wpmcp_core.errors import WpmcpError
from wpmcp_core.webhooks import ALL_EVENT_TYPES, WebhookEventType, parse_event_type, parse_event_types


class TestEventTypes:
    """Tests for the closed event set."""

    def test_eleven_event_types(self):
        assert len(ALL_EVENT_TYPES) == 11
        assert "usage.limit_warning" in ALL_EVENT_TYPES
        assert "mcp.error" in ALL_EVENT_TYPES

    def test_parse_single(self):
        assert parse_event_type("api_key.created") == WebhookEventType.API_KEY_CREATED

    def test_parse_accepts_enum(self):
        assert parse_event_type(WebhookEventType.MCP_REQUEST) == WebhookEventType.MCP_REQUEST

    def test_parse_many_deduplicates_in_order(self):
        parsed = parse_event_types(["mcp.error", "api_key.created", "mcp.error"])
        assert parsed == [WebhookEventType.MCP_ERROR, WebhookEventType.API_KEY_CREATED]

    def test_invalid_values_are_all_named(self):
        """Test the error lists every unknown event type."""
        with pytest.raises(WpmcpError) as exc_info:
            parse_event_types(["mcp.error", "user.created", "billing.paid"])

        error = exc_info.value
        assert error.code == "INVALID_EVENT_TYPE"
        assert error.http_status == 400
        assert "user.created" in error.message
        assert "billing.paid" in error.message

    def test_empty_list(self):
        assert parse_event_types([]) == []
