"""
Tagged content assembler for tagstream.

This module rebuilds named sections from a streamed text payload with
inline tags such as ``<guideline>...</guideline>``. Tags may be split at
any character across deliveries; the assembler keeps back only the suffix
that cannot be classified yet.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Dict, Any, List, Callable

from ..utils.logging import get_logger

logger = get_logger("tagstream.sections")

GENERAL_SECTION_ID = "general"
GENERAL_SECTION_TITLE = "General"

DEFAULT_TITLES: Dict[str, str] = {
    "guideline": "Guideline",
    "drug": "Drug",
    "think": "Thinking",
}

_TAG_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class SectionKind(Enum):
    """Section kinds."""
    GENERAL = "general"
    TAG = "tag"


@dataclass
class Section:
    """A named span of reconstructed text."""
    id: str
    kind: SectionKind
    title: str
    content: str = ""
    tag_name: Optional[str] = None

    def copy(self) -> "Section":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "tag_name": self.tag_name,
            "title": self.title,
            "content": self.content,
        }


def _closer_overlap(text: str, closer: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of closer."""
    for size in range(min(len(text), len(closer) - 1), 0, -1):
        if text.endswith(closer[:size]):
            return size
    return 0


class ContentAssembler:
    """Incrementally partitions streamed text into sections."""

    def __init__(
        self,
        on_update: Optional[Callable[[List[Section]], None]] = None,
        titles: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize assembler.

        Args:
            on_update: Called with a fresh snapshot once per non-empty append
            titles: Extra tag name to display title mappings
        """
        self.on_update = on_update
        self._titles = dict(DEFAULT_TITLES)
        if titles:
            self._titles.update({name.lower(): title for name, title in titles.items()})

        self._sections: List[Section] = []
        self._buffer = ""
        self._open: Optional[Section] = None
        self._closer: Optional[str] = None
        self._tag_count = 0
        self.reset()

    @property
    def buffered(self) -> str:
        """Text held back because it cannot be classified yet."""
        return self._buffer

    @property
    def open_section(self) -> Optional[Section]:
        """Copy of the tag section currently receiving text, if any."""
        return self._open.copy() if self._open else None

    def title_for(self, tag_name: str) -> str:
        """Resolve the display title for a tag name."""
        name = tag_name.lower()
        return self._titles.get(name, name[:1].upper() + name[1:])

    def sections(self) -> List[Section]:
        """Snapshot of all sections; safe for the caller to keep."""
        return [section.copy() for section in self._sections]

    def append(self, delta: str) -> Optional[List[Section]]:
        """
        Append a streamed text delta.

        Args:
            delta: Raw text, possibly ending inside a tag

        Returns:
            Snapshot after the delta was applied, or None for an empty delta
        """
        if not delta:
            return None

        self._buffer += delta
        self._drain()
        return self._publish()

    def finish(self) -> Optional[List[Section]]:
        """
        Flush held-back text at end of stream.

        Pending text is written literally to the current target. An open
        tag stays open.
        """
        if not self._buffer:
            return None

        logger.debug(
            "assembler_tail_flushed",
            length=len(self._buffer),
            inside=self._open.tag_name if self._open else None,
        )
        self._write(self._buffer)
        self._buffer = ""
        return self._publish()

    def reset(self) -> None:
        """Return to a single empty general section."""
        self._sections = [
            Section(
                id=GENERAL_SECTION_ID,
                kind=SectionKind.GENERAL,
                title=GENERAL_SECTION_TITLE,
            )
        ]
        self._buffer = ""
        self._open = None
        self._closer = None
        self._tag_count = 0

    def _publish(self) -> List[Section]:
        snapshot = self.sections()
        if self.on_update:
            self.on_update(snapshot)
        return snapshot

    def _write(self, text: str) -> None:
        if not text:
            return
        target = self._open if self._open else self._sections[0]
        target.content += text

    def _open_tag(self, raw_name: str) -> None:
        name = raw_name.lower()
        self._tag_count += 1
        section = Section(
            id=f"tag-{self._tag_count}-{name}",
            kind=SectionKind.TAG,
            title=self.title_for(name),
            tag_name=name,
        )
        self._sections.append(section)
        self._open = section
        self._closer = f"</{raw_name}>"
        logger.debug("section_opened", section_id=section.id)

    def _close_tag(self) -> None:
        logger.debug("section_closed", section_id=self._open.id)
        self._open = None
        self._closer = None

    def _drain(self) -> None:
        """Consume as much of the buffer as can be classified."""
        buffer = self._buffer
        pos = 0
        end = len(buffer)

        while pos < end:
            if self._open is None:
                lt = buffer.find("<", pos)
                if lt == -1:
                    self._write(buffer[pos:])
                    pos = end
                    break

                self._write(buffer[pos:lt])
                gt = buffer.find(">", lt + 1)
                if gt == -1:
                    # Might still become a tag
                    pos = lt
                    break

                token = buffer[lt:gt + 1]
                match = _TAG_NAME.fullmatch(token[1:-1].strip())
                if match:
                    self._open_tag(match.group(0))
                else:
                    self._write(token)
                pos = gt + 1
            else:
                closer = self._closer
                index = buffer.find(closer, pos)
                if index == -1:
                    keep = _closer_overlap(buffer[pos:], closer)
                    self._write(buffer[pos:end - keep])
                    pos = end - keep
                    break

                self._write(buffer[pos:index])
                pos = index + len(closer)
                self._close_tag()

        self._buffer = buffer[pos:]


__all__ = [
    'ContentAssembler',
    'Section',
    'SectionKind',
    'DEFAULT_TITLES',
    'GENERAL_SECTION_ID',
]
