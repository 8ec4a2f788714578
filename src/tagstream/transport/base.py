"""Base transport for streamed event text"""

import asyncio
import enum
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..utils.logging import get_logger
from ..utils.errors import TransportError

logger = get_logger(__name__)

TextHandler = Callable[[str], None]
ErrorHandler = Callable[[Exception], None]
CloseHandler = Callable[[], None]


class ConnectionState(enum.Enum):
    """Connection state for transport"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


class TextStreamTransport(ABC):
    """Abstract base class for transports that deliver raw stream text

    A transport delivers decoded text through ``on_text`` in arrival
    order, then exactly one of ``on_close`` (end of body) or ``on_error``
    (failure). After ``close()`` no handler is called again.
    """

    def __init__(self, name: str = None):
        self.name = name or f"{self.__class__.__name__}_{uuid.uuid4().hex[:8]}"
        self.state = ConnectionState.DISCONNECTED
        self._on_text: Optional[TextHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._on_close: Optional[CloseHandler] = None
        self._closed = False
        self._finished = asyncio.Event()
        self._stats = {
            "chunks_received": 0,
            "chars_received": 0,
            "errors": 0,
            "connected_at": None,
            "disconnected_at": None
        }

    @abstractmethod
    async def start(
        self,
        url: str,
        params: Optional[Dict[str, str]],
        on_text: TextHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> None:
        """Begin delivering text from ``url``"""

    @abstractmethod
    def close(self) -> None:
        """Stop delivery; safe to call more than once"""

    async def wait_closed(self) -> None:
        """Wait until the transport has finished or been closed"""
        await self._finished.wait()

    @property
    def closed(self) -> bool:
        return self._closed

    def _bind(self, on_text: TextHandler, on_error: ErrorHandler, on_close: CloseHandler) -> None:
        if self.state not in (ConnectionState.DISCONNECTED,):
            raise TransportError(f"Transport already used (state: {self.state.value})")
        self._on_text = on_text
        self._on_error = on_error
        self._on_close = on_close

    def _handle_connect(self) -> None:
        self.state = ConnectionState.CONNECTED
        self._stats["connected_at"] = datetime.now(timezone.utc)
        logger.info("transport_connected", transport=self.name)

    def _handle_text(self, text: str) -> None:
        if self._closed or not text:
            return
        self._stats["chunks_received"] += 1
        self._stats["chars_received"] += len(text)
        self._on_text(text)

    def _handle_error(self, error: Exception) -> None:
        if self._closed:
            return
        self._closed = True
        self.state = ConnectionState.ERROR
        self._stats["errors"] += 1
        self._stats["disconnected_at"] = datetime.now(timezone.utc)
        logger.error("transport_error", transport=self.name, error=str(error))
        self._finished.set()
        self._on_error(error)

    def _handle_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.state = ConnectionState.CLOSED
        self._stats["disconnected_at"] = datetime.now(timezone.utc)
        logger.info("transport_closed", transport=self.name)
        self._finished.set()
        self._on_close()

    def _mark_closed(self) -> None:
        """Close without notifying handlers"""
        self._closed = True
        if self.state != ConnectionState.ERROR:
            self.state = ConnectionState.CLOSED
        if self._stats["disconnected_at"] is None:
            self._stats["disconnected_at"] = datetime.now(timezone.utc)
        self._finished.set()

    def get_stats(self) -> Dict[str, Any]:
        """Get transport statistics"""
        return {
            **self._stats,
            "state": self.state.value,
        }
