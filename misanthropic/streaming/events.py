"""
misanthropic - Stream Events

Typed events of the Messages streaming protocol and the decoder that turns
one SSE frame into an Event or a classified StreamError.

Lifecycle of one streamed message:
    message_start
    (content_block_start, content_block_delta*, content_block_stop)*
    message_delta*
    message_stop
with ping allowed anywhere.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, Union

from ..delta import Delta
from ..errors import AnthropicError, DecodeError, ServerError, StreamError
from ..models import Block, MessageDelta, ResponseMessage
from .sse import SSEFrame


logger = logging.getLogger("misanthropic.stream")


class Event:
    """Base class for stream events. ``TYPE`` is the wire tag."""

    TYPE: str = ""

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls()

    def _fields_dict(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Encode to the wire shape."""
        result: Dict[str, Any] = {"type": self.TYPE}
        result.update(self._fields_dict())
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Decode by the ``type`` tag.

        Raises:
            ValueError: If the tag is missing or unknown
            KeyError, TypeError: If a field is missing or malformed
        """
        event_type = data.get("type")
        event_class = EVENT_TYPES.get(event_type)  # type: ignore[arg-type]
        if event_class is None:
            raise ValueError(f"Unknown event type: {event_type!r}")
        return event_class._from_dict(data)


@dataclass
class PingEvent(Event):
    """Periodic keepalive."""
    TYPE = "ping"


@dataclass
class MessageStartEvent(Event):
    """The message with empty content. Blocks follow as their own events."""
    message: ResponseMessage

    TYPE = "message_start"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> MessageStartEvent:
        return cls(message=ResponseMessage.from_dict(data["message"]))

    def _fields_dict(self) -> Dict[str, Any]:
        return {"message": self.message.to_dict()}


@dataclass
class ContentBlockStartEvent(Event):
    """A content block with empty content at ``index``."""
    index: int
    content_block: Block

    TYPE = "content_block_start"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ContentBlockStartEvent:
        return cls(
            index=_index(data),
            content_block=Block.from_dict(data["content_block"]),
        )

    def _fields_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "content_block": self.content_block.to_dict()}


@dataclass
class ContentBlockDeltaEvent(Event):
    """A delta to apply to the block at ``index``."""
    index: int
    delta: Delta

    TYPE = "content_block_delta"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ContentBlockDeltaEvent:
        return cls(index=_index(data), delta=Delta.from_dict(data["delta"]))

    def _fields_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "delta": self.delta.to_dict()}


@dataclass
class ContentBlockStopEvent(Event):
    """The block at ``index`` is final."""
    index: int

    TYPE = "content_block_stop"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ContentBlockStopEvent:
        return cls(index=_index(data))

    def _fields_dict(self) -> Dict[str, Any]:
        return {"index": self.index}


@dataclass
class MessageDeltaEvent(Event):
    """
    Metadata for the message in progress (stop reason, usage).

    The API sends usage next to ``delta`` rather than inside it; both
    placements are accepted.
    """
    delta: MessageDelta

    TYPE = "message_delta"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> MessageDeltaEvent:
        delta_data = dict(data["delta"])
        if "usage" not in delta_data and data.get("usage"):
            delta_data["usage"] = data["usage"]
        return cls(delta=MessageDelta.from_dict(delta_data))

    def _fields_dict(self) -> Dict[str, Any]:
        return {"delta": self.delta.to_dict()}


@dataclass
class MessageStopEvent(Event):
    """End of the message."""
    TYPE = "message_stop"


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.TYPE: cls
    for cls in (
        PingEvent,
        MessageStartEvent,
        ContentBlockStartEvent,
        ContentBlockDeltaEvent,
        ContentBlockStopEvent,
        MessageDeltaEvent,
        MessageStopEvent,
    )
}

StreamItem = Union[Event, StreamError]

_DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def decode_server_error(payload: Any) -> Optional[AnthropicError]:
    """
    Decode an error envelope ``{"error": {"type": ..., "message": ...}}``.

    The envelope may carry no ``type`` tag or the tag ``"error"``. Anything
    else returns None so the payload is tried as an event.
    """
    if not isinstance(payload, dict):
        return None
    if payload.get("type", "error") != "error":
        return None

    error = payload.get("error")
    if not isinstance(error, dict):
        return None
    if not isinstance(error.get("type"), str) or not isinstance(error.get("message"), str):
        return None

    return AnthropicError.from_dict(error)


def decode_event(payload: Any) -> Event:
    """
    Decode a JSON payload as one of the event shapes.

    Raises:
        ValueError, KeyError, TypeError, AttributeError: On a shape mismatch
    """
    if not isinstance(payload, dict):
        raise TypeError(f"Event payload must be an object, got {type(payload).__name__}")
    return Event.from_dict(payload)


def decode_frame(frame: SSEFrame) -> StreamItem:
    """
    Decode one SSE frame.

    Two phases: the error envelope is tried first, then the event union.

    Returns:
        The Event, a ServerError for an error sent in place of an event,
        or a DecodeError keeping the raw frame
    """
    try:
        payload = json.loads(frame.data)
    except (json.JSONDecodeError, RecursionError) as e:
        # RecursionError: nesting deeper than the decoder allows.
        logger.warning("Frame is not valid JSON: %s", e)
        return DecodeError(f"Frame is not valid JSON: {e}", cause=e, frame=frame)

    error = decode_server_error(payload)
    if error is not None:
        logger.warning("Server error in stream: %s", error)
        return ServerError(error, frame=frame)

    try:
        event = decode_event(payload)
    except _DECODE_ERRORS as e:
        logger.warning("Could not decode %r frame: %r", frame.event, e)
        return DecodeError(f"Could not decode event: {e!r}", cause=e, frame=frame)

    logger.debug("Event: %r", event)
    return event


def _index(data: Dict[str, Any]) -> int:
    index = data["index"]
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError(f"index must be a non-negative integer, got {index!r}")
    return index
