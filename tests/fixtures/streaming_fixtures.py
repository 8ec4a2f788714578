"""
Event stream test fixtures.
"""

import json
from typing import Any, Iterator, List, Optional, Tuple


class StreamingFixtures:
    """Fixtures for SSE and tagged content testing."""

    @staticmethod
    def sse_frame(
        data: Optional[str] = None,
        event: Optional[str] = None,
        event_id: Optional[str] = None,
        newline: str = "\n",
    ) -> str:
        """Create a single SSE record including its boundary."""
        lines = []
        if event is not None:
            lines.append(f"event: {event}")
        if event_id is not None:
            lines.append(f"id: {event_id}")
        if data is not None:
            for line in data.split("\n"):
                lines.append(f"data: {line}")
        return newline.join(lines) + newline + newline

    @staticmethod
    def node_chunk(node_name: str, content: Any, flat: bool = False) -> str:
        """Create a JSON payload in either envelope."""
        if flat:
            return json.dumps({"type": node_name, "content": content})
        return json.dumps({
            "type": "NodeChunk",
            "content": {"nodeName": node_name, "content": content},
        })

    @staticmethod
    def answer_stream(newline: str = "\n") -> str:
        """Create a realistic answer stream: steps, progress, then tagged text."""
        frame = StreamingFixtures.sse_frame
        chunk = StreamingFixtures.node_chunk

        frames = [
            ": keep-alive" + newline + newline,
            frame(chunk("SEARCH_STEPS", [
                {"text": "Searching guidelines", "isActive": True},
                {"text": "Summarizing"},
            ]), newline=newline),
            frame(chunk("SEARCH_PROGRESS", 40), newline=newline),
            frame(chunk("SEARCH_STEPS", [
                {"text": "Searching guidelines"},
                {"text": "Summarizing", "isActive": True, "info": "3 sources"},
            ]), newline=newline),
            frame(chunk("SEARCH_PROGRESS", {"percent": 100}), newline=newline),
        ]
        deltas = [
            "For outpatient CAP ",
            "in adults: <guide",
            "line>Use amoxicillin 1 g ",
            "three times daily</guide",
            "line> and consider <drug>doxy",
            "cycline</drug>.",
        ]
        for i, delta in enumerate(deltas):
            frames.append(frame(chunk("STREAM", delta, flat=i % 2 == 1), event_id=str(i), newline=newline))
        frames.append(frame(chunk("DONE", None), event="end", newline=newline))
        return "".join(frames)

    @staticmethod
    def split_every(text: str, size: int) -> List[str]:
        """Split text into fixed-size chunks."""
        return [text[i:i + size] for i in range(0, len(text), size)]

    @staticmethod
    def two_way_splits(text: str) -> Iterator[Tuple[str, str]]:
        """Every split of text into two non-empty parts."""
        for i in range(1, len(text)):
            yield text[:i], text[i:]
