"""Property-based tests for configuration loading.

Covers env var resolution and the config dictionary builder.
"""

import os
from unittest.mock import patch

import pytest
from hypothesis import given, settings, strategies as st

from wpmcp_core.config import ConfigLoader, resolve_env_vars
from wpmcp_core.errors import WpmcpError

valid_env_var_name = st.from_regex(r"^WPMCP_[A-Z0-9_]{1,20}$", fullmatch=True)
valid_env_var_value = st.from_regex(r"^[a-zA-Z0-9_\-./]{1,50}$", fullmatch=True)


def _without(var_name: str) -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k != var_name}


@pytest.mark.property
class TestEnvVarResolution:
    @given(valid_env_var_name, valid_env_var_value)
    @settings(max_examples=50)
    def test_env_var_resolved_when_set(self, var_name, var_value):
        with patch.dict(os.environ, {var_name: var_value}):
            assert resolve_env_vars(f"${{{var_name}}}") == var_value

    @given(valid_env_var_name, valid_env_var_value)
    @settings(max_examples=50)
    def test_default_used_when_unset(self, var_name, default):
        with patch.dict(os.environ, _without(var_name), clear=True):
            assert resolve_env_vars(f"${{{var_name}:-{default}}}") == default

    @given(valid_env_var_name)
    @settings(max_examples=30)
    def test_required_var_raises_when_unset(self, var_name):
        with patch.dict(os.environ, _without(var_name), clear=True):
            with pytest.raises(WpmcpError) as exc_info:
                resolve_env_vars(f"${{{var_name}}}")
        assert exc_info.value.code == "CONFIG_INVALID"

    @given(st.text(alphabet=st.characters(blacklist_characters="$"), max_size=100))
    @settings(max_examples=50)
    def test_text_without_references_unchanged(self, text):
        assert resolve_env_vars(text) == text


@pytest.mark.property
class TestConfigBuilder:
    @given(
        st.integers(min_value=1, max_value=100),
        st.floats(min_value=0.01, max_value=0.99),
        st.booleans(),
    )
    @settings(max_examples=50)
    def test_section_values_preserved(self, max_failures, warning_ratio, legacy):
        config = ConfigLoader().load_from_dict(
            {
                "webhooks": {"max_failures": max_failures},
                "usage": {"warning_ratio": warning_ratio},
                "auth": {"legacy_headers_enabled": legacy},
            }
        )
        assert config.webhooks.max_failures == max_failures
        assert config.usage.warning_ratio == warning_ratio
        assert config.auth.legacy_headers_enabled is legacy
        # Untouched sections keep their defaults
        assert config.storage.sqlite_path == "./data/wpmcp.db"

    @given(st.text(min_size=1, max_size=20).filter(lambda s: s not in ("memory", "sqlite")))
    @settings(max_examples=30)
    def test_unknown_backend_rejected(self, backend):
        with pytest.raises(WpmcpError) as exc_info:
            ConfigLoader().load_from_dict({"storage": {"backend": backend}})
        assert exc_info.value.code == "CONFIG_INVALID"
