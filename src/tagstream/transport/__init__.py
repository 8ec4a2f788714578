"""Stream transport layer

This module provides the transport contract the session consumes and an
aiohttp implementation that delivers an HTTP event-stream body as text.
"""

from .base import TextStreamTransport, ConnectionState
from .http import HTTPStreamTransport

__all__ = [
    "TextStreamTransport",
    "ConnectionState",
    "HTTPStreamTransport",
]
