"""
Pytest configuration and shared fixtures for wpmcp-core tests.
"""

import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from wpmcp_core.auth import CredentialVault, TokenService  # noqa: E402
from wpmcp_core.auth.models import Customer  # noqa: E402
from wpmcp_core.config import TrustLayerConfig  # noqa: E402
from wpmcp_core.crypto import SecretBox  # noqa: E402
from wpmcp_core.storage import MemoryTrustStore  # noqa: E402
from wpmcp_core.types import Tier  # noqa: E402
from wpmcp_core.usage import PlanCatalog  # noqa: E402

TEST_MASTER_KEY = "test-master-key-0123456789abcdef0123456789"
TEST_TOKEN_SECRET = "test-token-secret-0123456789abcdef0123456789"
TEST_ADMIN_SECRET = "test-admin-secret-0123456789abcdef0123456789"


# =============================================================================
# Core Component Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def secret_box() -> SecretBox:
    """Session-scoped: key derivation runs 100k PBKDF2 iterations."""
    return SecretBox(TEST_MASTER_KEY)


@pytest.fixture
def store() -> MemoryTrustStore:
    return MemoryTrustStore()


@pytest.fixture
def plans() -> PlanCatalog:
    return PlanCatalog()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_TOKEN_SECRET, admin_secret=TEST_ADMIN_SECRET)


@pytest.fixture
def vault(store, secret_box, plans) -> CredentialVault:
    return CredentialVault(store, secret_box, plans)


@pytest.fixture
async def customer(store) -> Customer:
    """An active free-tier tenant."""
    c = Customer(id="cust_1", email="owner@example.com", tier=Tier.FREE, name="Owner")
    await store.create_customer(c)
    return c


@pytest.fixture
def trust_config() -> TrustLayerConfig:
    config = TrustLayerConfig()
    config.crypto.master_key = TEST_MASTER_KEY
    config.tokens.secret = TEST_TOKEN_SECRET
    config.tokens.admin_secret = TEST_ADMIN_SECRET
    return config


# =============================================================================
# Webhook Endpoint Fixtures
# =============================================================================


class WebhookRecorder:
    """Fake subscriber endpoint for httpx.MockTransport.

    Records every request and answers with a configurable status, or raises
    a configurable transport error.
    """

    def __init__(self, status_code: int = 200, body: str = "ok") -> None:
        self.status_code = status_code
        self.body = body
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def json_bodies(self) -> list[dict[str, Any]]:
        import json

        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def webhook_endpoint() -> WebhookRecorder:
    return WebhookRecorder()


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "integration: Integration tests")
