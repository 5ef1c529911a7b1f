"""
misanthropic - SSE Framing

Splits a server-sent event line stream into frames of (event, data).

Follows the event-stream parsing rules:
- lines starting with ":" are comments
- "field: value" sets a field (one leading space of the value is dropped)
- multiple data lines are joined with newlines
- a blank line dispatches the frame; frames without data are skipped
- an unterminated frame at end of stream is discarded
- lines end only at CR, LF or CRLF; other Unicode line separators
  (U+0085, U+2028, U+2029) are data, since JSON allows them unescaped
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Optional


LINE_BREAK = re.compile(r"\r\n|\r|\n")
_TRAILING_LINE_BREAK = re.compile(r"(?:\r\n|\r|\n)\Z")


@dataclass(frozen=True)
class SSEFrame:
    """One dispatched server-sent event."""
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEDecoder:
    """
    Incremental line-by-line SSE decoder.

    Usage:
        decoder = SSEDecoder()
        for line in lines:
            frame = decoder.decode(line)
            if frame is not None:
                handle(frame)
    """

    def __init__(self):
        self._event: Optional[str] = None
        self._data: List[str] = []
        self._last_id: Optional[str] = None
        self._retry: Optional[int] = None

    def decode(self, line: str) -> Optional[SSEFrame]:
        """Feed one line (without its terminator). Returns a frame on dispatch."""
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value)
        # Unknown fields are ignored.

        return None

    def _dispatch(self) -> Optional[SSEFrame]:
        if not self._data and self._event is None:
            return None

        frame = None
        if self._data:
            frame = SSEFrame(
                data="\n".join(self._data),
                event=self._event or "message",
                id=self._last_id,
                retry=self._retry,
            )

        self._event = None
        self._data = []
        self._retry = None
        return frame


def split_lines(text: str) -> List[str]:
    """
    Split text holding one or more lines on CR, LF and CRLF only.

    One trailing terminator is dropped, so "data: x\\n" is a single line.
    """
    return LINE_BREAK.split(_TRAILING_LINE_BREAK.sub("", text, count=1))


async def aiter_lines(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Reassemble lines, without terminators, from arbitrary text chunks.

    A CR at the end of a chunk is held back in case the next chunk starts
    with LF. A final line without terminator is still yielded.
    """
    pending = ""
    async for chunk in chunks:
        if not chunk:
            continue
        text = pending + chunk
        hold_cr = text.endswith("\r")
        if hold_cr:
            text = text[:-1]

        lines = LINE_BREAK.split(text)
        pending = lines.pop()
        if hold_cr:
            pending += "\r"

        for line in lines:
            yield line

    if pending.endswith("\r"):
        yield pending[:-1]
    elif pending:
        yield pending


async def aiter_frames(lines: AsyncIterable[str]) -> AsyncIterator[SSEFrame]:
    """Decode an async stream of lines into SSE frames."""
    decoder = SSEDecoder()
    async for line in lines:
        # Some sources hand over several lines at once.
        for part in split_lines(line):
            frame = decoder.decode(part)
            if frame is not None:
                yield frame
