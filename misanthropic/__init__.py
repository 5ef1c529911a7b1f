"""
misanthropic

An async client for the Messages API that rebuilds streamed responses
incrementally.

Quick Start:
    from misanthropic import Client, StreamError

    client = Client(api_key="sk-ant-xxx")

    prompt = {
        "model": "claude-3-5-sonnet-20240620",
        "max_tokens": 1024,
        "messages": [{"role": "user", "content": "Hello!"}],
    }

    # Streamed text
    stream = await client.stream(prompt)
    async for text in stream.filter_transient_errors().text():
        if isinstance(text, StreamError):
            raise text
        print(text, end="", flush=True)

    # Whole message, assembled from the stream
    stream = await client.stream(prompt)
    message = await assemble_message(stream.filter_transient_errors())
    print(message)

    # Without streaming
    message = await client.message(prompt)
"""

from .client import Client, __version__
from .delta import Delta, TextDelta, JsonDelta, merge_deltas
from .models import (
    Role,
    StopReason,
    CacheControl,
    MediaType,
    Usage,
    MessageDelta,
    Image,
    Block,
    TextBlock,
    ImageBlock,
    ToolUseBlock,
    ToolResultBlock,
    Content,
    Message,
    ResponseMessage,
)
from .errors import (
    MisanthropicError,
    AnthropicError,
    InvalidRequestError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    RequestTooLargeError,
    RateLimitError,
    APIError,
    OverloadedError,
    UnknownAPIError,
    StreamError,
    TransportError,
    DecodeError,
    ServerError,
    DeltaError,
    DeltaMismatch,
    ContentMismatch,
    JsonDeltaError,
    ProtocolError,
)
from .streaming import (
    Event,
    PingEvent,
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageDeltaEvent,
    MessageStopEvent,
    EventStream,
    StreamView,
    MessageAssembler,
    assemble_message,
)

__all__ = [
    # Client
    "Client",
    # Deltas
    "Delta",
    "TextDelta",
    "JsonDelta",
    "merge_deltas",
    # Models
    "Role",
    "StopReason",
    "CacheControl",
    "MediaType",
    "Usage",
    "MessageDelta",
    "Image",
    "Block",
    "TextBlock",
    "ImageBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "Content",
    "Message",
    "ResponseMessage",
    # Errors
    "MisanthropicError",
    "AnthropicError",
    "InvalidRequestError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "RequestTooLargeError",
    "RateLimitError",
    "APIError",
    "OverloadedError",
    "UnknownAPIError",
    "StreamError",
    "TransportError",
    "DecodeError",
    "ServerError",
    "DeltaError",
    "DeltaMismatch",
    "ContentMismatch",
    "JsonDeltaError",
    "ProtocolError",
    # Streaming
    "Event",
    "PingEvent",
    "MessageStartEvent",
    "ContentBlockStartEvent",
    "ContentBlockDeltaEvent",
    "ContentBlockStopEvent",
    "MessageDeltaEvent",
    "MessageStopEvent",
    "EventStream",
    "StreamView",
    "MessageAssembler",
    "assemble_message",
]
