"""
misanthropic - Pytest Configuration

Configures:
- Live API test marker (skip by default)
- A recorded SSE transcript covering every event kind
- Line source helpers for feeding streams without a network
"""

import os
import json
import pytest
from typing import AsyncIterator, Callable, Iterable, List, Optional


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as calling the live API (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live API tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Recorded stream
# ============================================================

MESSAGE_ID = "msg_01XFDUDYJgAACzvnptvVoYEL"
TOOL_USE_ID = "toolu_01T1x1fJ34qAmk2tNTrN7Up6"

TEXT_FRAGMENTS = ["Certainly! I", " can", " do", " that."]
JSON_FRAGMENTS = ['{"location":', ' "San Francisco, CA"}']


def _frame(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def build_transcript() -> str:
    """
    A full stream: one text block, one tool use block, a ping, a comment
    and one overloaded error between two text deltas.
    """
    frames = [
        _frame("message_start", {
            "type": "message_start",
            "message": {
                "id": MESSAGE_ID,
                "type": "message",
                "role": "assistant",
                "content": [],
                "model": "claude-3-5-sonnet-20240620",
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": 25, "output_tokens": 1},
            },
        }),
        _frame("content_block_start", {
            "type": "content_block_start",
            "index": 0,
            "content_block": {"type": "text", "text": ""},
        }),
        _frame("ping", {"type": "ping"}),
        ": keepalive comment\n\n",
    ]

    for i, text in enumerate(TEXT_FRAGMENTS):
        frames.append(_frame("content_block_delta", {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": text},
        }))
        if i == 1:
            frames.append(_frame("error", {
                "type": "error",
                "error": {"type": "overloaded_error", "message": "Overloaded"},
            }))

    frames.extend([
        _frame("content_block_stop", {"type": "content_block_stop", "index": 0}),
        _frame("content_block_start", {
            "type": "content_block_start",
            "index": 1,
            "content_block": {
                "type": "tool_use",
                "id": TOOL_USE_ID,
                "name": "get_weather",
                "input": {},
            },
        }),
    ])

    for fragment in JSON_FRAGMENTS:
        frames.append(_frame("content_block_delta", {
            "type": "content_block_delta",
            "index": 1,
            "delta": {"type": "input_json_delta", "partial_json": fragment},
        }))

    frames.extend([
        _frame("content_block_stop", {"type": "content_block_stop", "index": 1}),
        _frame("message_delta", {
            "type": "message_delta",
            "delta": {"stop_reason": "tool_use", "stop_sequence": None},
            "usage": {"output_tokens": 89},
        }),
        _frame("message_stop", {"type": "message_stop"}),
    ])

    return "".join(frames)


# message_start, block start, ping, 4 text deltas, error, block stop,
# block start, 2 json deltas, block stop, message_delta, message_stop
TRANSCRIPT_ITEM_COUNT = 15


@pytest.fixture
def transcript() -> str:
    """The recorded stream as raw SSE text."""
    return build_transcript()


@pytest.fixture
def make_lines() -> Callable[[Iterable[str]], AsyncIterator[str]]:
    """
    Turn strings into an async line source, like httpx's aiter_lines.

    Usage:
        def test_something(make_lines, transcript):
            stream = EventStream.from_lines(make_lines(transcript.splitlines()))
    """
    async def lines(source: Iterable[str]) -> AsyncIterator[str]:
        for line in source:
            yield line

    return lines


@pytest.fixture
def sse_response_body(transcript) -> bytes:
    """The recorded stream as an HTTP response body."""
    return transcript.encode("utf-8")


@pytest.fixture
def message_response() -> dict:
    """A complete non-streaming message response."""
    return {
        "id": MESSAGE_ID,
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": "Hello! How can I help?"}],
        "model": "claude-3-5-sonnet-20240620",
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 8},
    }


def collect_text(items: List[object]) -> str:
    return "".join(i for i in items if isinstance(i, str))
