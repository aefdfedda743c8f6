"""Incremental demultiplexer for reasoning markup embedded in streamed text.

Some models interleave private reasoning spans such as ``<thinking>...</thinking>``
with narrative text, and a tag can arrive split across network fragments. The
parser is a two-state machine (OUTSIDE, INSIDE(tag)) over a single buffer. While
no tag is in sight it releases everything except a short tail, so an opening or
closing tag that straddles a fragment boundary is always seen whole.
"""

from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum


DEFAULT_TAGS: Tuple[str, ...] = ("thinking", "think", "reasoning")
MIN_SAFETY_TAIL = 20


class Channel(str, Enum):
    TEXT = "text"
    THOUGHT = "thought"


@dataclass(frozen=True)
class Fragment:
    channel: Channel
    content: str


class ThinkingTagParser:
    """Splits a text stream into narrative and reasoning fragments."""

    def __init__(self, tags: Sequence[str] = DEFAULT_TAGS):
        if not tags:
            raise ValueError("At least one tag name is required")
        self._open_tags = {tag: f"<{tag}>" for tag in tags}
        self._close_tags = {tag: f"</{tag}>" for tag in tags}
        longest = max(len(t) for t in self._close_tags.values())
        self.safety_tail = max(MIN_SAFETY_TAIL, longest)
        self._buffer = ""
        self._inside: Optional[str] = None

    @property
    def inside(self) -> Optional[str]:
        """Name of the open reasoning tag, or None when outside"""
        return self._inside

    @property
    def channel(self) -> Channel:
        return Channel.THOUGHT if self._inside else Channel.TEXT

    def feed(self, chunk: str) -> List[Fragment]:
        """Consume one network fragment and return whatever is safe to emit"""
        self._buffer += chunk
        out: List[Fragment] = []

        while True:
            if self._inside is None:
                match = self._find_open_tag()
                if match is None:
                    self._release(out, keep_tail=True)
                    return out
                index, tag = match
                self._emit(out, Channel.TEXT, self._buffer[:index])
                self._buffer = self._buffer[index + len(self._open_tags[tag]):]
                self._inside = tag
            else:
                close_tag = self._close_tags[self._inside]
                index = self._buffer.find(close_tag)
                if index < 0:
                    self._release(out, keep_tail=True)
                    return out
                self._emit(out, Channel.THOUGHT, self._buffer[:index])
                self._buffer = self._buffer[index + len(close_tag):]
                self._inside = None

    def drain(self) -> List[Fragment]:
        """Release the buffer without leaving the current span.

        Used when a non-text segment interrupts the stream and text order
        must be preserved ahead of it.
        """
        out: List[Fragment] = []
        self._release(out, keep_tail=False)
        return out

    def close(self) -> List[Fragment]:
        """Flush everything at end of stream and reset to OUTSIDE"""
        out = self.drain()
        self._inside = None
        return out

    def _find_open_tag(self) -> Optional[Tuple[int, str]]:
        best: Optional[Tuple[int, str]] = None
        for tag, literal in self._open_tags.items():
            index = self._buffer.find(literal)
            if index >= 0 and (best is None or index < best[0]):
                best = (index, tag)
        return best

    def _release(self, out: List[Fragment], keep_tail: bool):
        if keep_tail:
            if len(self._buffer) <= self.safety_tail:
                return
            cut = len(self._buffer) - self.safety_tail
        else:
            cut = len(self._buffer)
        self._emit(out, self.channel, self._buffer[:cut])
        self._buffer = self._buffer[cut:]

    @staticmethod
    def _emit(out: List[Fragment], channel: Channel, content: str):
        if content:
            out.append(Fragment(channel=channel, content=content))
