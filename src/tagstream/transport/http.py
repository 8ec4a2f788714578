"""HTTP event-stream transport built on aiohttp"""

import asyncio
import codecs
from typing import Dict, Optional

import aiohttp

from .base import TextStreamTransport, ConnectionState, TextHandler, ErrorHandler, CloseHandler
from ..utils.errors import TransportError, ConnectionError, ErrorContext
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
}


class HTTPStreamTransport(TextStreamTransport):
    """Streams a response body as text

    Issues one GET request and hands decoded body text to the session as it
    arrives. There is no reconnect; a failure ends the transport.
    """

    def __init__(self, headers: Optional[Dict[str, str]] = None, name: str = None,
                 connect_timeout: float = 10.0, read_timeout: Optional[float] = None,
                 chunk_size: int = 8192,
                 session: Optional[aiohttp.ClientSession] = None):
        super().__init__(name)
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None
        self._task: Optional[asyncio.Task] = None
        self.url: Optional[str] = None

    async def start(
        self,
        url: str,
        params: Optional[Dict[str, str]],
        on_text: TextHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> None:
        """Open the request and start pumping the body in the background"""
        self._bind(on_text, on_error, on_close)
        self.url = url
        self.state = ConnectionState.CONNECTING
        logger.info("transport_connecting", url=url)
        self._task = asyncio.create_task(self._pump(url, params))

    def close(self) -> None:
        """Abort the request; no handler fires afterwards"""
        if self._closed:
            return
        logger.info("transport_aborted", transport=self.name)
        self.state = ConnectionState.CLOSING
        self._mark_closed()
        if self._task and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            # The pump's outcome stays in the task; cancelling us still propagates
            await asyncio.wait({self._task})
        await super().wait_closed()

    async def _pump(self, url: str, params: Optional[Dict[str, str]]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(
                total=None,
                sock_connect=self.connect_timeout,
                sock_read=self.read_timeout,
            ))
        try:
            async with self._session.get(url, params=params, headers=self.headers) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise TransportError(
                        f"HTTP {response.status}: {text[:200]}",
                        status=response.status,
                        context=ErrorContext(component="transport", operation="connect",
                                             metadata={"url": url}),
                    )

                self._handle_connect()

                async for chunk in response.content.iter_chunked(self.chunk_size):
                    if self._closed:
                        break
                    self._handle_text(decoder.decode(chunk))

                self._handle_text(decoder.decode(b"", final=True))
                self._handle_close()

        except asyncio.CancelledError:
            logger.debug("transport_cancelled", transport=self.name)
            raise
        except TransportError as e:
            self._handle_error(e)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._handle_error(ConnectionError(
                f"Stream connection failed: {e}",
                cause=e,
                context=ErrorContext(component="transport", operation="read",
                                     metadata={"url": url}),
            ))
        finally:
            if self._owns_session and self._session is not None and not self._session.closed:
                await self._session.close()
            self._mark_closed()

    def __repr__(self) -> str:
        return f"HTTPStreamTransport(url={self.url}, state={self.state.value})"
