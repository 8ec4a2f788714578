"""
Transport test fixtures.
"""

from typing import Dict, Optional

from tagstream.transport.base import TextStreamTransport


class FakeTransport(TextStreamTransport):
    """In-memory transport driven by the test."""

    def __init__(self, name: str = None):
        super().__init__(name)
        self.url: Optional[str] = None
        self.params: Optional[Dict[str, str]] = None
        self.close_calls = 0

    async def start(self, url, params, on_text, on_error, on_close) -> None:
        self._bind(on_text, on_error, on_close)
        self.url = url
        self.params = params
        self._handle_connect()

    def close(self) -> None:
        self.close_calls += 1
        self._mark_closed()

    def deliver(self, text: str) -> None:
        self._handle_text(text)

    def end(self) -> None:
        self._handle_close()

    def fail(self, error: Exception) -> None:
        self._handle_error(error)

    def deliver_late(self, text: str) -> None:
        """Call the session's text handler even though the transport is closed."""
        self._on_text(text)

    def end_late(self) -> None:
        self._on_close()
