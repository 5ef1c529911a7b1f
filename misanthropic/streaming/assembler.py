"""
misanthropic - Message Assembler

Folds stream events into a ResponseMessage.

Usage:
    assembler = MessageAssembler()
    async for item in stream.filter_transient_errors():
        if isinstance(item, StreamError):
            raise item
        assembler.feed(item)
    print(assembler.message)

Or in one call:
    message = await assemble_message(stream)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from ..delta import Delta, JsonDelta
from ..errors import ProtocolError, StreamError
from ..models import Block, Content, ResponseMessage, ToolUseBlock
from .events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    Event,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    PingEvent,
)
from .stream import StreamView


logger = logging.getLogger("misanthropic.stream")


class MessageAssembler:
    """
    Incrementally reconstructs one streamed message.

    Text deltas are applied as they arrive. Tool input deltas are buffered
    per block and parsed once, when the block stops, since partial JSON is
    not valid on its own.

    Attributes:
        message: The message being built, None before message_start
    """

    def __init__(self):
        self.message: Optional[ResponseMessage] = None
        self._stopped: Set[int] = set()
        self._json_buffers: Dict[int, List[Delta]] = {}
        self._complete = False

    @property
    def is_complete(self) -> bool:
        """True once message_stop has been received."""
        return self._complete

    @property
    def blocks(self) -> List[Block]:
        if self.message is None:
            return []
        return self.message.content.promote()

    def feed(self, event: Event) -> None:
        """
        Apply one event.

        Raises:
            ProtocolError: If the event is out of order
            DeltaError: If a delta does not fit its block
        """
        if isinstance(event, PingEvent):
            return

        if self._complete:
            raise ProtocolError(f"{event.TYPE} after message_stop")

        if isinstance(event, MessageStartEvent):
            self._start(event)
            return

        if self.message is None:
            raise ProtocolError(f"{event.TYPE} before message_start")

        if isinstance(event, ContentBlockStartEvent):
            self._start_block(event)
        elif isinstance(event, ContentBlockDeltaEvent):
            self._apply_delta(event)
        elif isinstance(event, ContentBlockStopEvent):
            self._stop_block(event)
        elif isinstance(event, MessageDeltaEvent):
            self.message.apply_delta(event.delta)
        elif isinstance(event, MessageStopEvent):
            self._complete = True
            logger.debug("Message %s complete", self.message.id)
        else:
            raise ProtocolError(f"Unexpected event: {event!r}")

    def _start(self, event: MessageStartEvent) -> None:
        if self.message is not None:
            raise ProtocolError("Duplicate message_start")

        message = event.message
        # Empty single part content has no block 0 yet.
        if message.content.is_single_part and not str(message.content):
            message.content = Content([])
        message.content.promote()

        self.message = message
        self._stopped = set(range(len(message.content)))

    def _start_block(self, event: ContentBlockStartEvent) -> None:
        blocks = self.blocks
        if event.index != len(blocks):
            raise ProtocolError(
                f"content_block_start at index {event.index}, "
                f"expected {len(blocks)}",
                index=event.index,
            )
        blocks.append(event.content_block)

    def _open_block(self, index: int, event_type: str) -> Block:
        blocks = self.blocks
        if index >= len(blocks):
            raise ProtocolError(
                f"{event_type} for unknown block {index}",
                index=index,
            )
        if index in self._stopped:
            raise ProtocolError(
                f"{event_type} for stopped block {index}",
                index=index,
            )
        return blocks[index]

    def _apply_delta(self, event: ContentBlockDeltaEvent) -> None:
        block = self._open_block(event.index, event.TYPE)
        if isinstance(event.delta, JsonDelta) and isinstance(block, ToolUseBlock):
            self._json_buffers.setdefault(event.index, []).append(event.delta)
            return
        block.apply_deltas([event.delta])

    def _stop_block(self, event: ContentBlockStopEvent) -> None:
        block = self._open_block(event.index, event.TYPE)
        # The block is final even if its tool input fails to parse.
        try:
            block.apply_deltas(self._json_buffers.pop(event.index, []))
        finally:
            self._stopped.add(event.index)


async def assemble_message(stream: StreamView) -> ResponseMessage:
    """
    Fold a whole stream into its message.

    Transient server errors should be filtered out by the caller if they
    are to be tolerated; every error item is raised here.

    Raises:
        StreamError: The first error item
        ProtocolError: If the stream ends before message_start
    """
    assembler = MessageAssembler()
    async with stream:
        async for item in stream:
            if isinstance(item, StreamError):
                raise item
            assembler.feed(item)

    if assembler.message is None:
        raise ProtocolError("Stream ended before message_start")
    if not assembler.is_complete:
        logger.warning("Stream ended before message_stop")
    return assembler.message
