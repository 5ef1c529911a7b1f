"""
misanthropic - Streaming Module

Incremental reconstruction of streamed messages:
- SSE framing of the raw line stream
- Two-phase decoding of frames into events or stream errors
- Chainable stream views (transient error filter, deltas, text)
- Folding events into a ResponseMessage
"""

from .sse import SSEFrame, SSEDecoder, aiter_frames
from .events import (
    Event,
    PingEvent,
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageDeltaEvent,
    MessageStopEvent,
    StreamItem,
    decode_event,
    decode_frame,
    decode_server_error,
)
from .stream import (
    EventStream,
    StreamView,
    TRANSPORT_ERRORS,
    is_event,
)
from .assembler import MessageAssembler, assemble_message

__all__ = [
    # SSE
    "SSEFrame",
    "SSEDecoder",
    "aiter_frames",
    # Events
    "Event",
    "PingEvent",
    "MessageStartEvent",
    "ContentBlockStartEvent",
    "ContentBlockDeltaEvent",
    "ContentBlockStopEvent",
    "MessageDeltaEvent",
    "MessageStopEvent",
    "StreamItem",
    "decode_event",
    "decode_frame",
    "decode_server_error",
    # Stream
    "EventStream",
    "StreamView",
    "TRANSPORT_ERRORS",
    "is_event",
    # Assembler
    "MessageAssembler",
    "assemble_message",
]
