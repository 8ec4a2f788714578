"""
tagstream - incremental decoding of tagged answer streams.

This package reconstructs a live answer from a Server-Sent Events stream:
- SSE frame parsing over arbitrarily split text chunks
- JSON payload normalization (content, search steps, progress)
- Section assembly from inline ``<tag>...</tag>`` markup
- Session lifecycle with idempotent close and reset
"""

__version__ = "0.1.0"

from .session import StreamSession, StreamHandle, SessionSnapshot, SessionState
from .streaming.frames import FrameParser, SSEEvent
from .streaming.sections import ContentAssembler, Section, SectionKind
from .streaming.payload import SearchStep

__all__ = [
    "StreamSession",
    "StreamHandle",
    "SessionSnapshot",
    "SessionState",
    "FrameParser",
    "SSEEvent",
    "ContentAssembler",
    "Section",
    "SectionKind",
    "SearchStep",
    "__version__",
]
