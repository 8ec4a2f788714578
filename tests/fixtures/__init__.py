"""
Test fixtures for tagstream.

Provides reusable stream data and fake transports.
"""

from .streaming_fixtures import StreamingFixtures
from .transport_fixtures import FakeTransport

__all__ = [
    "StreamingFixtures",
    "FakeTransport",
]
