import pytest

from caravo_agent.clients.http_client import Http402Client
from caravo_agent.config import SessionConfig

from mocks import API_BASE, make_identity, make_requirements


@pytest.fixture
def identity():
    """Fixed signing identity."""
    return make_identity()


@pytest.fixture
def requirements():
    """Wire-form 1 USDC requirement on Base mainnet."""
    return make_requirements()


@pytest.fixture
def keyless_session():
    return SessionConfig(api_base=API_BASE)


@pytest.fixture
def keyed_session():
    return SessionConfig(api_base=API_BASE, api_key="am_test_key")


@pytest.fixture
def make_client(identity):
    """Factory for an ``Http402Client`` bound to a mock transport."""
    def _make(transport, **kwargs):
        return Http402Client(identity=identity, transport=transport, **kwargs)
    return _make
