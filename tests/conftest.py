"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - config: ClientConfig pointing every service at the fake backend
    - backend: Scriptable FakeBackend state
    - http_client: HTTPX client bound to the fake backend via ASGITransport
    - helix_client: HelixClient using that HTTPX client
    - session_id: Consistent session ID for tests
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from helix_stream.client import HelixClient
from helix_stream.config import ClientConfig
from tests.fake_backend import FakeBackend


@pytest.fixture
def session_id() -> str:
    """Generate consistent session ID for testing.

    Returns:
        Predictable session ID for test assertions.
    """
    return "test-session-12345"


@pytest.fixture
def config() -> ClientConfig:
    """Client configuration with distinct hosts per fake service."""
    return ClientConfig(
        api_base_url="http://phenotype.test",
        literature_api_url="http://literature.test",
        ai_service_url="http://ai.test",
        request_timeout=5.0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    """Fresh fake backend with no scripted feeds."""
    return FakeBackend()


@pytest.fixture
async def http_client(backend: FakeBackend) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client routed to the fake backend.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=backend.app())
    async with AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def helix_client(config: ClientConfig, http_client: AsyncClient) -> HelixClient:
    """HelixClient sharing the fake-backend HTTP client."""
    return HelixClient(config, http=http_client)
