"""
Storefront Gateway — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (fake clock, settings, app,
       API client, request builders).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── clock: FakeClock driving cache TTLs and rate-limit windows
    ├── test_settings: Settings for the test environment
    ├── app: FastAPI app built from test_settings and clock
    └── test_client: HTTPX AsyncClient for API endpoint testing
"""

import json
import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CACHE_SWEEP_INTERVAL"] = "0"
os.environ["API_TOKENS"] = json.dumps(
    {
        "admin-token": {"id": "admin-1", "role": "admin"},
        "user-token": {"id": "user-1", "role": "user"},
    }
)

from gateway.config import Settings  # noqa: E402
from gateway.pipeline.request import RequestDescriptor  # noqa: E402

ADMIN_HEADERS = {"Authorization": "Bearer admin-token"}
USER_HEADERS = {"Authorization": "Bearer user-token"}


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(method: str = "GET", path: str = "/api/products", **kwargs) -> RequestDescriptor:
    return RequestDescriptor(method=method, path=path, **kwargs)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        environment="test",
        rate_limit_requests=50,
        rate_limit_window=60,
        auth_rate_limit_requests=3,
        auth_rate_limit_window=60,
        cache_sweep_interval=0,
    )


@pytest.fixture
def app(test_settings, clock):
    from gateway.main import create_app
    return create_app(test_settings, clock=clock)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to a fresh app through ASGITransport.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
