"""
Update coalescing for snapshot delivery.

Rapid-fire deltas would otherwise trigger one redraw each. The coalescer
defers delivery to at most once per frame interval and always delivers the
latest state, produced lazily when the frame fires.
"""

import asyncio
from typing import Any, Callable, Optional

from ..utils.logging import get_logger

logger = get_logger("tagstream.coalesce")


class UpdateCoalescer:
    """Delivers the latest value at most once per frame interval."""

    def __init__(
        self,
        deliver: Callable[[Any], None],
        interval: float = 1 / 60,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize coalescer.

        Args:
            deliver: Receives the produced value
            interval: Minimum seconds between deliveries
            loop: Event loop to schedule on (defaults to the running loop)
        """
        self.deliver = deliver
        self.interval = interval
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._producer: Optional[Callable[[], Any]] = None
        self._submitted = 0
        self._delivered = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def submit(self, producer: Callable[[], Any]) -> None:
        """
        Request a delivery.

        Args:
            producer: Builds the value at delivery time
        """
        self._submitted += 1
        self._producer = producer

        if self._handle is not None:
            return

        loop = self._loop or self._running_loop()
        if loop is None:
            # No loop to defer on
            self.flush()
            return

        self._handle = loop.call_later(self.interval, self.flush)

    def flush(self) -> None:
        """Deliver the pending value now, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        producer = self._producer
        self._producer = None
        if producer is None:
            return

        self._delivered += 1
        self.deliver(producer())

    def cancel(self) -> None:
        """Drop any pending delivery."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._producer = None

    def get_stats(self) -> dict:
        return {
            "submitted": self._submitted,
            "delivered": self._delivered,
            "pending": self.pending,
        }

    @staticmethod
    def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None


__all__ = ['UpdateCoalescer']
