"""
Event payload normalization for tagstream.

Each event's ``data`` carries one JSON object in one of two envelopes:

    {"type": "NodeChunk", "content": {"nodeName": "STREAM", "content": "..."}}
    {"type": "STREAM", "content": "..."}

Both are reduced to a ``NodeChunk``. Step lists and progress values are
normalized here too so the session only routes.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List

from ..utils.errors import PayloadError

NODE_CHUNK_TYPE = "NodeChunk"


class NodeName(str, Enum):
    """Channels the session understands."""
    STREAM = "STREAM"
    SEARCH_STEPS = "SEARCH_STEPS"
    SEARCH_PROGRESS = "SEARCH_PROGRESS"


@dataclass(frozen=True)
class NodeChunk:
    """A decoded payload routed by node name."""
    node_name: str
    content: Any = None


@dataclass(frozen=True)
class SearchStep:
    """One entry of the search progress list."""
    text: str
    is_active: bool = False
    is_completed: bool = False
    extra_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "is_active": self.is_active,
            "is_completed": self.is_completed,
            "extra_info": self.extra_info,
        }


def decode_payload(data: str) -> Any:
    """
    Decode an event's JSON data.

    Raises:
        PayloadError: If the data is not valid JSON
    """
    try:
        return json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise PayloadError(f"Invalid JSON payload: {e}", cause=e) from e


def normalize_envelope(payload: Any) -> Optional[NodeChunk]:
    """
    Reduce either accepted envelope to a NodeChunk.

    Returns:
        The chunk, or None when the payload has neither shape
    """
    if not isinstance(payload, dict):
        return None

    kind = payload.get("type")
    if kind == NODE_CHUNK_TYPE:
        inner = payload.get("content")
        if not isinstance(inner, dict):
            return None
        node_name = inner.get("nodeName")
        if not isinstance(node_name, str):
            return None
        return NodeChunk(node_name=node_name, content=inner.get("content"))

    if isinstance(kind, str):
        return NodeChunk(node_name=kind, content=payload.get("content"))

    return None


def normalize_steps(raw: List[Any]) -> List[SearchStep]:
    """
    Normalize a step list using the explicit-flag policy.

    The first element flagged ``isActive`` is the active step; when none is
    flagged the last element is. Every element before the active one is
    completed and no element after it is.
    """
    items = [item if isinstance(item, dict) else {"text": item} for item in raw]

    active_index = next(
        (i for i, item in enumerate(items) if item.get("isActive")),
        len(items) - 1,
    )

    steps = []
    for i, item in enumerate(items):
        extra = item.get("extraInfo", item.get("info"))
        text = item.get("text")
        steps.append(SearchStep(
            text="" if text is None else str(text),
            is_active=i == active_index,
            is_completed=i < active_index,
            extra_info=str(extra) if extra else None,
        ))
    return steps


def extract_progress(content: Any) -> Optional[float]:
    """Read a progress value from a number or a ``{"percent": n}`` object."""
    if isinstance(content, bool):
        return None
    if isinstance(content, (int, float)):
        return content
    if isinstance(content, dict):
        percent = content.get("percent")
        if isinstance(percent, (int, float)) and not isinstance(percent, bool):
            return percent
    return None


__all__ = [
    'NodeName',
    'NodeChunk',
    'SearchStep',
    'NODE_CHUNK_TYPE',
    'decode_payload',
    'normalize_envelope',
    'normalize_steps',
    'extract_progress',
]
