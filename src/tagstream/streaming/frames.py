"""
Server-Sent Events frame parser for tagstream.

This module turns an unbounded sequence of arbitrarily-sized text chunks
into discrete event records with:
- Partial frame buffering across chunks
- LF, CRLF and CR record boundaries
- Comment and unknown-field tolerance
- One-shot error reporting
"""

import re
from dataclasses import dataclass
from typing import Optional, List, Callable, Tuple, Dict, Any

from ..utils.logging import get_logger

logger = get_logger("tagstream.frames")

# Record boundaries, searched together so the earliest one always wins
_BOUNDARIES: Tuple[str, ...] = ("\r\n\r\n", "\n\n", "\r\r")
_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class SSEEvent:
    """A single event record decoded from the stream."""
    event: Optional[str] = None
    data: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "data": self.data, "id": self.id}


def find_boundary(buffer: str, start: int = 0) -> Tuple[int, int]:
    """
    Locate the earliest record boundary in a buffer.

    Args:
        buffer: Text to search
        start: Index to start searching from

    Returns:
        (index, length) of the boundary, or (-1, 0) if none is present
    """
    best_index = -1
    best_length = 0

    for marker in _BOUNDARIES:
        index = buffer.find(marker, start)
        if index != -1 and (best_index == -1 or index < best_index):
            best_index = index
            best_length = len(marker)

    return best_index, best_length


def parse_record(raw: str) -> Optional[SSEEvent]:
    """
    Parse one delimited record into an event.

    Args:
        raw: Record text without its trailing boundary

    Returns:
        The event, or None when the record has no recognized field
    """
    event_name = None
    event_id = None
    data_lines: List[str] = []
    recognized = False

    for line in _LINE_SPLIT.split(raw):
        if not line or line.startswith(":"):
            continue

        if line.startswith("event:"):
            event_name = line[6:].strip()
            recognized = True
        elif line.startswith("data:"):
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
            recognized = True
        elif line.startswith("id:"):
            event_id = line[3:].strip()
            recognized = True

    if not recognized:
        return None

    return SSEEvent(
        event=event_name,
        data="\n".join(data_lines) if data_lines else None,
        id=event_id,
    )


class FrameParser:
    """Incrementally decodes SSE records from text chunks."""

    def __init__(
        self,
        on_event: Optional[Callable[[SSEEvent], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        """
        Initialize parser.

        Args:
            on_event: Called once per fully delimited record
            on_error: Called at most once when the transport fails
        """
        self.on_event = on_event
        self.on_error = on_error
        self._buffer = ""
        self._stopped = False
        self._error: Optional[Exception] = None

        # Stats
        self._chars_fed = 0
        self._events_emitted = 0
        self._records_skipped = 0

    @property
    def buffered(self) -> str:
        """Text received but not yet delimited."""
        return self._buffer

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    def feed(self, chunk: str) -> List[SSEEvent]:
        """
        Feed a chunk of stream text.

        Args:
            chunk: Text as delivered by the transport

        Returns:
            Events completed by this chunk, in stream order
        """
        if self._stopped or not chunk:
            return []

        self._chars_fed += len(chunk)
        self._buffer += chunk

        events = []
        start = 0
        while True:
            index, length = find_boundary(self._buffer, start)
            if index == -1:
                break

            raw = self._buffer[start:index]
            start = index + length

            event = parse_record(raw)
            if event is None:
                self._records_skipped += 1
                continue

            self._events_emitted += 1
            events.append(event)
            if self.on_event:
                self.on_event(event)
            # A callback may stop the parser mid-chunk
            if self._stopped:
                break

        if not self._stopped:
            self._buffer = self._buffer[start:]

        return events

    def finish(self) -> None:
        """Signal end of transport; undelimited text is discarded."""
        if self._stopped:
            return

        if self._buffer:
            logger.warning(
                "frame_tail_discarded",
                residual_length=len(self._buffer),
                residual=self._buffer[:100],
            )
        self._buffer = ""
        self._stopped = True

    def stop(self) -> None:
        """Stop silently; the rest of a chunk being fed is dropped."""
        self._stopped = True
        self._buffer = ""

    def fail(self, error: Exception) -> None:
        """Report a transport failure once and stop processing."""
        if self._stopped:
            return

        self._stopped = True
        self._error = error
        self._buffer = ""
        logger.error("frame_stream_failed", error=str(error), error_type=type(error).__name__)
        if self.on_error:
            self.on_error(error)

    def reset(self) -> None:
        """Return to a fresh, accepting state."""
        self._buffer = ""
        self._stopped = False
        self._error = None
        self._chars_fed = 0
        self._events_emitted = 0
        self._records_skipped = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get parser statistics."""
        return {
            "chars_fed": self._chars_fed,
            "events_emitted": self._events_emitted,
            "records_skipped": self._records_skipped,
            "buffered": len(self._buffer),
            "stopped": self._stopped,
        }


__all__ = ['SSEEvent', 'FrameParser', 'find_boundary', 'parse_record']
