"""
misanthropic - Event Stream

A pull-based async sequence of decoded events layered over an SSE frame
source, plus chainable views that filter and project it.

Errors are yielded as items (StreamError instances), not raised, so that a
single bad frame or a transient server condition does not end iteration.

Usage:
    async with await client.stream(prompt) as stream:
        async for text in stream.filter_transient_errors().text():
            if isinstance(text, StreamError):
                raise text
            print(text, end="", flush=True)

Every view shares the transport of the stream it was built from: closing
any view closes the whole chain down to the HTTP response.
"""

from __future__ import annotations

import logging
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
)

import httpx

from ..delta import Delta, TextDelta
from ..errors import ServerError, StreamError, TransportError
from .events import ContentBlockDeltaEvent, Event, decode_frame
from .sse import SSEFrame, aiter_frames, aiter_lines


logger = logging.getLogger("misanthropic.stream")

# Exceptions raised while pulling from the transport that end the stream.
TRANSPORT_ERRORS = (
    httpx.HTTPError,
    httpx.StreamError,
    OSError,
    UnicodeDecodeError,
)

CloseCallback = Callable[[], Awaitable[None]]

# Sentinel returned by a selector to drop an item.
DROP: Any = object()


def drop_transient_errors(item: Any) -> Any:
    """Drop server errors that resolve on their own (rate limit, overload)."""
    if isinstance(item, ServerError) and item.is_transient:
        return DROP
    return item


def select_deltas(item: Any) -> Any:
    """Keep the delta of content block delta events, and every error."""
    if isinstance(item, ContentBlockDeltaEvent):
        return item.delta
    if isinstance(item, (Delta, StreamError)):
        return item
    return DROP


def select_text(item: Any) -> Any:
    """Keep text delta payloads as strings, and every error."""
    if isinstance(item, ContentBlockDeltaEvent):
        item = item.delta
    if isinstance(item, TextDelta):
        return item.text
    if isinstance(item, (str, StreamError)):
        return item
    return DROP


def _identity(item: Any) -> Any:
    return item


class StreamView:
    """
    A lazy view over another async source of stream items.

    Args:
        source: The upstream async iterator (usually another view)
        select: Maps each upstream item to an output item, or DROP
        on_close: Extra cleanup run after the source is closed
    """

    def __init__(
        self,
        source: AsyncIterator[Any],
        select: Callable[[Any], Any] = _identity,
        on_close: Optional[CloseCallback] = None,
    ):
        self._source = source
        self._select = select
        self._on_close = on_close
        self._closed = False

    def __aiter__(self) -> "StreamView":
        return self

    async def __anext__(self) -> Any:
        while True:
            item = await self._source.__anext__()
            selected = self._select(item)
            if selected is not DROP:
                return selected

    # ============================================================
    # Chaining
    # ============================================================

    def filter_transient_errors(self) -> "StreamView":
        """
        Drop rate limit and overload errors.

        The server keeps sending on the same connection once ready, so
        these need no retry or backoff. Recommended for most uses.
        """
        return StreamView(self, drop_transient_errors)

    def deltas(self) -> "StreamView":
        """Only content block deltas (text and JSON). Errors pass through."""
        return StreamView(self, select_deltas)

    def text(self) -> "StreamView":
        """Only text pieces, as strings. Errors pass through."""
        return StreamView(self, select_text)

    async def try_collect(self) -> List[Any]:
        """
        Drain the view into a list.

        Raises:
            StreamError: The first error item, after closing the stream
        """
        items: List[Any] = []
        try:
            async for item in self:
                if isinstance(item, StreamError):
                    raise item
                items.append(item)
        finally:
            await self.aclose()
        return items

    # ============================================================
    # Resource handling
    # ============================================================

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Close this view and everything upstream of it. Idempotent."""
        if self._closed:
            return
        self._closed = True

        close_source = getattr(self._source, "aclose", None)
        try:
            if close_source is not None:
                await close_source()
        finally:
            if self._on_close is not None:
                await self._on_close()

    async def __aenter__(self) -> "StreamView":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


class EventStream(StreamView):
    """
    Decoded events (or StreamErrors) from an SSE frame source.

    States:
        open: frames are pulled and decoded on demand
        ended: the source is exhausted, or a TransportError was yielded;
            nothing more is yielded

    The transport is released as soon as the stream ends.
    """

    def __init__(
        self,
        frames: AsyncIterable[SSEFrame],
        on_close: Optional[CloseCallback] = None,
    ):
        super().__init__(frames.__aiter__(), on_close=on_close)
        self._ended = False

    @classmethod
    def from_lines(
        cls,
        lines: AsyncIterable[str],
        on_close: Optional[CloseCallback] = None,
    ) -> "EventStream":
        """Create from an async stream of SSE lines."""
        return cls(aiter_frames(lines), on_close=on_close)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "EventStream":
        """Create from a streaming httpx response. Closing the stream closes it."""
        return cls.from_lines(
            aiter_lines(response.aiter_text()),
            on_close=response.aclose,
        )

    @property
    def ended(self) -> bool:
        return self._ended

    async def __anext__(self) -> Any:
        if self._ended:
            raise StopAsyncIteration

        try:
            frame = await self._source.__anext__()
        except StopAsyncIteration:
            self._ended = True
            logger.debug("Stream ended")
            await self.aclose()
            raise
        except TRANSPORT_ERRORS as e:
            self._ended = True
            logger.error("Stream transport error: %r", e)
            await self.aclose()
            return TransportError(f"Transport error: {e}", cause=e)

        logger.debug("Frame: %r", frame)
        return decode_frame(frame)


def is_event(item: Any) -> bool:
    """True if ``item`` is an Event rather than a StreamError."""
    return isinstance(item, Event)
