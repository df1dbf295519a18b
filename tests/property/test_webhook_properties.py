"""Property-based tests for webhook signing and event parsing."""

import pytest
from hypothesis import given, settings, strategies as st

from wpmcp_core.errors import WpmcpError
from wpmcp_core.webhooks import compute_signature, verify_signature
from wpmcp_core.webhooks.events import ALL_EVENT_TYPES, parse_event_types

NOW = 1_700_000_000

bodies = st.text(max_size=300)
webhook_secrets = st.text(alphabet="0123456789abcdef", min_size=16, max_size=64)
known_events = st.lists(st.sampled_from(ALL_EVENT_TYPES), min_size=1, max_size=15)


@pytest.mark.property
class TestSignatureProperties:
    @given(bodies, webhook_secrets, st.integers(min_value=-300, max_value=300))
    @settings(max_examples=50)
    def test_fresh_signature_verifies(self, body, secret, skew):
        ts = NOW + skew
        header = compute_signature(secret, ts, body)
        assert verify_signature(body, str(ts), header, secret, now=NOW)

    @given(bodies, webhook_secrets, st.integers(min_value=301, max_value=10**6))
    @settings(max_examples=50)
    def test_stale_signature_rejected(self, body, secret, age):
        ts = NOW - age
        header = compute_signature(secret, ts, body)
        assert not verify_signature(body, str(ts), header, secret, now=NOW)

    @given(bodies, bodies, webhook_secrets)
    @settings(max_examples=50)
    def test_tampered_body_rejected(self, body, other, secret):
        if body == other:
            return
        header = compute_signature(secret, NOW, body)
        assert not verify_signature(other, str(NOW), header, secret, now=NOW)

    @given(bodies, webhook_secrets)
    @settings(max_examples=30)
    def test_header_format(self, body, secret):
        header = compute_signature(secret, NOW, body)
        assert header.startswith("sha256=")
        assert len(header) == len("sha256=") + 64


@pytest.mark.property
class TestEventParsing:
    @given(known_events)
    @settings(max_examples=50)
    def test_known_events_parse_without_duplicates(self, values):
        parsed = parse_event_types(values)
        assert [e.value for e in parsed] == list(dict.fromkeys(values))

    @given(known_events, st.text(min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_unknown_event_rejected(self, values, unknown):
        if unknown in ALL_EVENT_TYPES:
            return
        with pytest.raises(WpmcpError) as exc_info:
            parse_event_types([*values, unknown])
        assert exc_info.value.code == "INVALID_EVENT_TYPE"
