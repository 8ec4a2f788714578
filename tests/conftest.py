"""
Pytest configuration and shared fixtures for tagstream tests.
"""

import sys
from pathlib import Path
from typing import List

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tagstream.session import StreamSession, SessionSnapshot
from tagstream.utils.config import TagStreamConfig
from tagstream.utils.logging import setup_logging
from tests.fixtures.transport_fixtures import FakeTransport


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Route structlog through stdlib so nothing is printed to stdout."""
    setup_logging(log_level="WARNING", enable_json=False)


@pytest.fixture
def config() -> TagStreamConfig:
    """Configuration with immediate (uncoalesced) updates."""
    return TagStreamConfig(stream={"coalesce_updates": False, "base_url": "http://stream.test/api/stream"})


@pytest.fixture
def transports() -> List[FakeTransport]:
    """Every transport created by the session under test."""
    return []


@pytest.fixture
def transport_factory(transports):
    def factory(stream_config):
        transport = FakeTransport()
        transports.append(transport)
        return transport
    return factory


@pytest.fixture
def updates() -> List[SessionSnapshot]:
    return []


@pytest.fixture
def errors() -> List[Exception]:
    return []


@pytest.fixture
def session(config, transport_factory, updates, errors) -> StreamSession:
    return StreamSession(
        config,
        on_update=updates.append,
        on_error=errors.append,
        transport_factory=transport_factory,
    )
