"""
Shared pytest configuration and fixtures for Tianyi router client tests.

This module provides common fixtures used across all test modules including:
- Gateway configurations
- A stateful fake gateway (``FakeRouter``)
- Clients wired to the fake gateway
"""

from typing import Any

import pytest
import pytest_asyncio

from tianyi_router.core import RouterConfig, TianyiClient

from fixtures.fake_router import OLD_IP, FakeRouter, make_rule


# ========== Configuration Fixtures ==========


@pytest.fixture
def router_config() -> RouterConfig:
    """Provide a gateway configuration tuned for fast tests."""
    return RouterConfig(
        host="192.168.1.1",
        username="useradmin",
        password="secret",
        timeout=5.0,
        requests_per_second=1000.0,
        verify_attempts=3,
        verify_delay=0.0,
    )


@pytest.fixture
def router_config_dict() -> dict[str, Any]:
    """Provide a dictionary version of a gateway configuration."""
    return {
        "host": "192.168.1.1",
        "username": "useradmin",
        "password": "secret",
        "use_https": False,
    }


# ========== Fake Gateway Fixtures ==========


@pytest.fixture
def fake_router() -> FakeRouter:
    """Provide a fake gateway holding two rules for OLD_IP and one elsewhere."""
    return FakeRouter(rules=[
        make_rule("web", OLD_IP, 80),
        make_rule("ssh", OLD_IP, 2222, 22),
        make_rule("nas", "192.168.1.30", 5000),
    ])


@pytest.fixture
def empty_router() -> FakeRouter:
    """Provide a fake gateway with an empty rule table."""
    return FakeRouter()


@pytest_asyncio.fixture
async def client(router_config, fake_router):
    """Provide a logged-in client talking to ``fake_router``."""
    client = await TianyiClient.connect(router_config, http_transport=fake_router)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def anonymous_client(router_config, fake_router):
    """Provide a client that has not logged in yet."""
    client = TianyiClient(router_config, http_transport=fake_router)
    yield client
    await client.close()


# ========== Pytest Configuration ==========


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
