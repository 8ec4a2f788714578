"""Incremental stream decoding: SSE frames, payloads and tagged sections."""

from .frames import FrameParser, SSEEvent
from .sections import ContentAssembler, Section, SectionKind
from .payload import NodeChunk, NodeName, SearchStep, normalize_envelope, normalize_steps, extract_progress
from .coalesce import UpdateCoalescer

__all__ = [
    "FrameParser",
    "SSEEvent",
    "ContentAssembler",
    "Section",
    "SectionKind",
    "NodeChunk",
    "NodeName",
    "SearchStep",
    "normalize_envelope",
    "normalize_steps",
    "extract_progress",
    "UpdateCoalescer",
]
