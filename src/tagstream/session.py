"""
Stream session for tagstream.

This module drives one live answer stream with:
- Transport text fed into the SSE frame parser
- JSON payload decoding and envelope normalization
- Routing of STREAM deltas into the content assembler
- Search step and progress state
- Idempotent close and stale-callback suppression
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .streaming.coalesce import UpdateCoalescer
from .streaming.frames import FrameParser, SSEEvent
from .streaming.payload import (
    NodeName, NodeChunk, SearchStep,
    decode_payload, normalize_envelope, normalize_steps, extract_progress,
)
from .streaming.sections import ContentAssembler, Section
from .transport.base import TextStreamTransport
from .transport.http import HTTPStreamTransport
from .utils.config import TagStreamConfig, StreamConfig
from .utils.errors import PayloadError, TransportError, ValidationError
from .utils.logging import get_logger


logger = get_logger("tagstream.session")


class SessionState(Enum):
    """Session lifecycle states."""
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class SessionSnapshot:
    """Point-in-time copy of everything a presentation layer needs."""
    sections: List[Section]
    steps: List[SearchStep] = field(default_factory=list)
    progress: Optional[float] = None
    state: SessionState = SessionState.IDLE
    query: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_streaming(self) -> bool:
        return self.state == SessionState.STREAMING

    def section(self, section_id: str) -> Optional[Section]:
        """Find a section by id."""
        return next((s for s in self.sections if s.id == section_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "state": self.state.value,
            "error": self.error,
            "progress": self.progress,
            "steps": [step.to_dict() for step in self.steps],
            "sections": [section.to_dict() for section in self.sections],
        }


TransportFactory = Callable[[StreamConfig], TextStreamTransport]


def default_transport_factory(config: StreamConfig) -> TextStreamTransport:
    """Build the aiohttp transport from stream settings."""
    return HTTPStreamTransport(
        headers=config.headers,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        chunk_size=config.chunk_size,
    )


class StreamHandle:
    """Caller's handle on one opened stream."""

    def __init__(self, session: "StreamSession", generation: int, query: str, url: str,
                 transport: Optional[TextStreamTransport]):
        self.session = session
        self.generation = generation
        self.query = query
        self.url = url
        self.transport = transport

    @property
    def active(self) -> bool:
        """True while this stream is the session's current, live stream."""
        return (
            self.session.generation == self.generation
            and self.session.state == SessionState.STREAMING
        )

    def close(self) -> None:
        """Close the stream if it is still the session's current one."""
        if self.session.generation == self.generation:
            self.session.close()

    async def wait(self) -> SessionSnapshot:
        """Wait for the transport to end and return the final snapshot."""
        if self.transport is not None:
            await self.transport.wait_closed()
        return self.session.snapshot()

    def __repr__(self) -> str:
        return f"StreamHandle(query={self.query!r}, generation={self.generation}, active={self.active})"


class StreamSession:
    """Owns one frame parser and one content assembler for a live stream."""

    def __init__(
        self,
        config: Optional[TagStreamConfig] = None,
        on_update: Optional[Callable[[SessionSnapshot], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize stream session.

        Args:
            config: Configuration (defaults apply when omitted)
            on_update: Receives snapshots after state changes
            on_error: Receives the terminal transport error, once
            transport_factory: Builds the transport used by open()
        """
        self.config = config or TagStreamConfig()
        self.on_update = on_update
        self.on_error = on_error
        self._transport_factory = transport_factory or default_transport_factory

        self._assembler = ContentAssembler(
            on_update=self._on_sections,
            titles=self.config.sections.titles,
        )
        self._parser = self._new_parser()
        self._coalescer: Optional[UpdateCoalescer] = None
        if self.config.stream.coalesce_updates:
            self._coalescer = UpdateCoalescer(
                self._deliver,
                interval=self.config.stream.frame_interval,
            )

        self._transport: Optional[TextStreamTransport] = None
        self._state = SessionState.IDLE
        self._generation = 0
        self._query: Optional[str] = None
        self._steps: List[SearchStep] = []
        self._progress: Optional[float] = None
        self._error: Optional[Exception] = None
        self._stats = self._empty_stats()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_streaming(self) -> bool:
        return self._state == SessionState.STREAMING

    async def open(self, query: str, url: Optional[str] = None) -> StreamHandle:
        """
        Open a stream for a query.

        Any stream already open is closed first, and its late callbacks are
        discarded.

        Args:
            query: Question to ask
            url: Stream endpoint (defaults to the configured base URL)

        Returns:
            Handle on the new stream

        Raises:
            ValidationError: If the query is blank
        """
        prompt = (query or "").strip()
        if not prompt:
            raise ValidationError("query", query, "must not be blank")

        previous = self._transport
        self.reset()
        if previous is not None:
            await previous.wait_closed()

        stream_config = self.config.stream
        target = url or stream_config.base_url
        self._query = prompt
        self._generation += 1
        generation = self._generation
        self._state = SessionState.STREAMING

        transport = self._transport_factory(stream_config)
        self._transport = transport
        handle = StreamHandle(self, generation, prompt, target, transport)

        logger.info("session_opening", url=target, query=prompt[:100], generation=generation)
        try:
            await transport.start(
                target,
                {stream_config.query_param: prompt},
                on_text=self._bind(generation, self.append),
                on_error=self._bind(generation, self._fail),
                on_close=self._bind(generation, self.finish),
            )
        except TransportError as e:
            self._fail(e)

        return handle

    def append(self, text: str) -> None:
        """
        Feed raw stream text.

        Accepted while idle (offline replay) or streaming; discarded
        silently once the session is closed, completed or failed.
        """
        if self._state not in (SessionState.IDLE, SessionState.STREAMING):
            self._stats["input_discarded"] += 1
            return
        self._parser.feed(text)

    def finish(self) -> None:
        """End of input: flush held-back text and mark the session complete."""
        if self._state not in (SessionState.IDLE, SessionState.STREAMING):
            return

        self._parser.finish()
        self._assembler.finish()
        self._state = SessionState.COMPLETED
        logger.info("session_completed", **self.get_stats())
        self._publish(immediate=True)

    def close(self) -> None:
        """Stop the current stream; safe to call repeatedly."""
        if self._state != SessionState.STREAMING:
            return

        self._generation += 1
        self._state = SessionState.CLOSED
        self._parser.stop()
        if self._coalescer:
            self._coalescer.cancel()
        if self._transport is not None:
            self._transport.close()
        logger.info("session_closed", query=(self._query or "")[:100])

    def reset(self) -> None:
        """Close any stream and return to an empty, idle session."""
        self.close()
        self._parser.stop()
        self._generation += 1
        self._transport = None
        self._parser = self._new_parser()
        self._assembler.reset()
        self._steps = []
        self._progress = None
        self._error = None
        self._query = None
        self._stats = self._empty_stats()
        self._state = SessionState.IDLE
        if self._coalescer:
            self._coalescer.cancel()
        self._publish(immediate=True)

    def snapshot(self) -> SessionSnapshot:
        """Copy of the current sections and auxiliary state."""
        return SessionSnapshot(
            sections=self._assembler.sections(),
            steps=list(self._steps),
            progress=self._progress,
            state=self._state,
            query=self._query,
            error=str(self._error) if self._error else None,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "frames": self._parser.get_stats(),
        }

    def _new_parser(self) -> FrameParser:
        return FrameParser(on_event=self._handle_event, on_error=self._on_parser_error)

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "events_received": 0,
            "events_dropped": 0,
            "events_ignored": 0,
            "input_discarded": 0,
        }

    def _bind(self, generation: int, handler: Callable[..., None]) -> Callable[..., None]:
        """Wrap a transport callback so it is dropped once the stream is stale."""
        def bound(*args):
            if generation != self._generation:
                logger.debug("stale_callback_dropped", generation=generation, current=self._generation)
                return
            handler(*args)
        return bound

    def _fail(self, error: Exception) -> None:
        if self._state not in (SessionState.IDLE, SessionState.STREAMING):
            return
        self._parser.fail(error)

    def _on_parser_error(self, error: Exception) -> None:
        self._error = error
        self._state = SessionState.FAILED
        logger.error("session_failed", error=str(error), error_type=type(error).__name__)
        self._publish(immediate=True)
        if self.on_error:
            self.on_error(error)

    def _handle_event(self, event: SSEEvent) -> None:
        if self._state not in (SessionState.IDLE, SessionState.STREAMING):
            return
        self._stats["events_received"] += 1
        if not event.data:
            self._stats["events_ignored"] += 1
            return

        try:
            payload = decode_payload(event.data)
        except PayloadError as e:
            self._stats["events_dropped"] += 1
            logger.debug("event_payload_dropped", error=str(e), data=event.data[:100])
            return

        chunk = normalize_envelope(payload)
        if chunk is None:
            self._stats["events_ignored"] += 1
            return

        self._dispatch(chunk)

    def _dispatch(self, chunk: NodeChunk) -> None:
        content = chunk.content

        if chunk.node_name == NodeName.STREAM.value:
            if isinstance(content, str):
                self._assembler.append(content)
            else:
                self._stats["events_ignored"] += 1
        elif chunk.node_name == NodeName.SEARCH_STEPS.value:
            if isinstance(content, list):
                self._steps = normalize_steps(content)
                self._publish()
            else:
                self._stats["events_ignored"] += 1
        elif chunk.node_name == NodeName.SEARCH_PROGRESS.value:
            self._progress = extract_progress(content)
            self._publish()
        else:
            self._stats["events_ignored"] += 1
            logger.debug("unknown_node_ignored", node_name=chunk.node_name)

    def _on_sections(self, sections: List[Section]) -> None:
        self._publish()

    def _publish(self, immediate: bool = False) -> None:
        if self.on_update is None:
            return
        if self._coalescer is None:
            self._deliver(self.snapshot())
            return
        self._coalescer.submit(self.snapshot)
        if immediate:
            self._coalescer.flush()

    def _deliver(self, snapshot: SessionSnapshot) -> None:
        if self.on_update:
            self.on_update(snapshot)


__all__ = [
    'StreamSession',
    'StreamHandle',
    'SessionSnapshot',
    'SessionState',
    'default_transport_factory',
]
