"""
misanthropic - Event Stream Tests

Runs the recorded transcript through EventStream and its views.
"""

import json

import httpx
import pytest

from conftest import JSON_FRAGMENTS, TEXT_FRAGMENTS, TRANSCRIPT_ITEM_COUNT

from misanthropic.delta import JsonDelta, TextDelta
from misanthropic.errors import DecodeError, ServerError, StreamError, TransportError
from misanthropic.streaming.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    MessageStartEvent,
    MessageStopEvent,
    PingEvent,
)
from misanthropic.streaming.stream import EventStream, is_event


def make_stream(make_lines, transcript, on_close=None) -> EventStream:
    return EventStream.from_lines(make_lines(transcript.splitlines()), on_close=on_close)


class TestRawStream:
    """Tests for the undecorated event stream."""

    @pytest.mark.asyncio
    async def test_yields_every_item_in_order(self, make_lines, transcript):
        items = [item async for item in make_stream(make_lines, transcript)]

        assert len(items) == TRANSCRIPT_ITEM_COUNT
        assert isinstance(items[0], MessageStartEvent)
        assert isinstance(items[1], ContentBlockStartEvent)
        assert isinstance(items[2], PingEvent)
        assert isinstance(items[-1], MessageStopEvent)

    @pytest.mark.asyncio
    async def test_transient_error_present(self, make_lines, transcript):
        """The raw view keeps the overloaded error, right where it was sent."""
        items = [item async for item in make_stream(make_lines, transcript)]
        errors = [i for i in items if isinstance(i, StreamError)]

        assert len(errors) == 1
        assert isinstance(errors[0], ServerError)
        assert errors[0].is_transient
        assert items.index(errors[0]) == 5

    @pytest.mark.asyncio
    async def test_whole_body_as_one_chunk(self, make_lines, transcript):
        """A source yielding multi-line chunks decodes the same."""
        stream = EventStream.from_lines(make_lines([transcript]))
        items = [item async for item in stream]
        assert len(items) == TRANSCRIPT_ITEM_COUNT

    @pytest.mark.asyncio
    async def test_decode_error_does_not_end_stream(self, make_lines):
        lines = ["data: garbage", "", 'data: {"type": "ping"}', ""]
        items = [item async for item in EventStream.from_lines(make_lines(lines))]

        assert isinstance(items[0], DecodeError)
        assert items[1] == PingEvent()

    @pytest.mark.asyncio
    async def test_ended_after_exhaustion(self, make_lines, transcript, mocker):
        on_close = mocker.AsyncMock()
        stream = make_stream(make_lines, transcript, on_close=on_close)

        async for _ in stream:
            pass

        assert stream.ended
        assert stream.closed
        on_close.assert_awaited_once()

        # Pulling again yields nothing.
        assert [item async for item in stream] == []

    @pytest.mark.asyncio
    async def test_is_event(self, make_lines, transcript):
        items = [item async for item in make_stream(make_lines, transcript)]
        assert sum(1 for i in items if is_event(i)) == TRANSCRIPT_ITEM_COUNT - 1


class TestTransportErrors:
    """Tests for failures of the underlying connection."""

    @pytest.mark.asyncio
    async def test_yielded_once_then_ends(self, transcript, mocker):
        on_close = mocker.AsyncMock()

        async def failing_lines():
            for line in transcript.splitlines()[:6]:
                yield line
            raise httpx.ReadError("connection reset")

        stream = EventStream.from_lines(failing_lines(), on_close=on_close)
        items = [item async for item in stream]

        assert isinstance(items[0], MessageStartEvent)
        assert isinstance(items[1], ContentBlockStartEvent)
        assert isinstance(items[2], TransportError)
        assert len(items) == 3

        error = items[2]
        assert error.fatal
        assert isinstance(error.cause, httpx.ReadError)
        assert stream.ended
        on_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_os_error(self, caplog):
        async def failing_lines():
            raise ConnectionResetError("reset by peer")
            yield  # pragma: no cover

        with caplog.at_level("ERROR", logger="misanthropic.stream"):
            items = [item async for item in EventStream.from_lines(failing_lines())]

        assert len(items) == 1
        assert isinstance(items[0], TransportError)
        assert "transport error" in caplog.text

    @pytest.mark.asyncio
    async def test_not_filtered(self):
        """Transport errors are never transient."""
        async def failing_lines():
            raise httpx.ReadTimeout("timed out")
            yield  # pragma: no cover

        stream = EventStream.from_lines(failing_lines())
        items = [item async for item in stream.filter_transient_errors().text()]

        assert len(items) == 1
        assert isinstance(items[0], TransportError)


class TestStreamViews:
    """Tests for chained views."""

    @pytest.mark.asyncio
    async def test_filter_transient_errors(self, make_lines, transcript):
        stream = make_stream(make_lines, transcript)
        items = [item async for item in stream.filter_transient_errors()]

        assert len(items) == TRANSCRIPT_ITEM_COUNT - 1
        assert not any(isinstance(i, StreamError) for i in items)

    @pytest.mark.asyncio
    async def test_filter_is_idempotent(self, make_lines, transcript):
        once = [
            item async for item in
            make_stream(make_lines, transcript).filter_transient_errors()
        ]
        twice = [
            item async for item in
            make_stream(make_lines, transcript)
            .filter_transient_errors()
            .filter_transient_errors()
        ]
        assert twice == once

    @pytest.mark.asyncio
    async def test_non_transient_errors_pass_filter(self, make_lines):
        lines = [
            'data: {"type": "error", "error": {"type": "api_error", "message": "oops"}}',
            "",
            "data: not json",
            "",
        ]
        stream = EventStream.from_lines(make_lines(lines))
        items = [item async for item in stream.filter_transient_errors()]

        assert isinstance(items[0], ServerError)
        assert isinstance(items[1], DecodeError)

    @pytest.mark.asyncio
    async def test_deltas(self, make_lines, transcript):
        stream = make_stream(make_lines, transcript)
        items = [item async for item in stream.filter_transient_errors().deltas()]

        assert items == (
            [TextDelta(t) for t in TEXT_FRAGMENTS]
            + [JsonDelta(j) for j in JSON_FRAGMENTS]
        )

    @pytest.mark.asyncio
    async def test_deltas_keep_errors(self, make_lines, transcript):
        items = [item async for item in make_stream(make_lines, transcript).deltas()]

        assert len(items) == len(TEXT_FRAGMENTS) + len(JSON_FRAGMENTS) + 1
        assert isinstance(items[2], ServerError)

    @pytest.mark.asyncio
    async def test_text(self, make_lines, transcript):
        stream = make_stream(make_lines, transcript)
        items = [item async for item in stream.filter_transient_errors().text()]

        assert items == TEXT_FRAGMENTS
        assert "".join(items) == "Certainly! I can do that."

    @pytest.mark.asyncio
    async def test_text_keeps_errors(self, make_lines, transcript):
        items = [item async for item in make_stream(make_lines, transcript).text()]

        assert items[:2] == TEXT_FRAGMENTS[:2]
        assert isinstance(items[2], ServerError)
        assert items[3:] == TEXT_FRAGMENTS[2:]

    @pytest.mark.asyncio
    async def test_chain_order_does_not_matter(self, make_lines, transcript):
        a = [
            item async for item in
            make_stream(make_lines, transcript).filter_transient_errors().deltas().text()
        ]
        b = [
            item async for item in
            make_stream(make_lines, transcript).text().filter_transient_errors()
        ]
        assert a == b == TEXT_FRAGMENTS

    @pytest.mark.asyncio
    async def test_text_is_idempotent(self, make_lines, transcript):
        items = [
            item async for item in
            make_stream(make_lines, transcript).filter_transient_errors().text().text()
        ]
        assert items == TEXT_FRAGMENTS

    @pytest.mark.asyncio
    async def test_content_block_delta_events_in_raw_view(self, make_lines, transcript):
        items = [item async for item in make_stream(make_lines, transcript)]
        deltas = [i for i in items if isinstance(i, ContentBlockDeltaEvent)]
        assert [d.index for d in deltas] == [0, 0, 0, 0, 1, 1]


class TestTryCollect:
    """Tests for draining a view into a list."""

    @pytest.mark.asyncio
    async def test_collect(self, make_lines, transcript):
        text = await make_stream(make_lines, transcript).filter_transient_errors().text().try_collect()
        assert text == TEXT_FRAGMENTS

    @pytest.mark.asyncio
    async def test_raises_first_error_and_closes(self, make_lines, transcript, mocker):
        on_close = mocker.AsyncMock()
        stream = make_stream(make_lines, transcript, on_close=on_close)
        view = stream.text()

        with pytest.raises(ServerError) as exc_info:
            await view.try_collect()

        assert exc_info.value.is_transient
        assert view.closed
        assert stream.closed
        on_close.assert_awaited_once()


class TestClosing:
    """Tests for releasing the transport."""

    @pytest.mark.asyncio
    async def test_closing_view_closes_stream(self, make_lines, transcript, mocker):
        on_close = mocker.AsyncMock()
        stream = make_stream(make_lines, transcript, on_close=on_close)
        view = stream.filter_transient_errors().text()

        first = await view.__anext__()
        assert first == TEXT_FRAGMENTS[0]

        await view.aclose()
        await view.aclose()

        assert stream.closed
        on_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_async_with(self, make_lines, transcript, mocker):
        on_close = mocker.AsyncMock()

        async with make_stream(make_lines, transcript, on_close=on_close) as stream:
            item = await stream.__anext__()
            assert isinstance(item, MessageStartEvent)

        assert stream.closed
        on_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_from_response_closes_response(self, sse_response_body):
        response = httpx.Response(
            200,
            content=sse_response_body,
            headers={"content-type": "text/event-stream"},
        )
        stream = EventStream.from_response(response)

        text = await stream.filter_transient_errors().text().try_collect()

        assert "".join(text) == "Certainly! I can do that."
        assert response.is_closed


def delta_body(text: str, line_break: str = "\n") -> str:
    """One text delta frame with the JSON left unescaped, as the API sends it."""
    data = json.dumps(
        {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": text},
        },
        ensure_ascii=False,
    )
    return line_break.join(["event: content_block_delta", f"data: {data}", "", ""])


class TestLineSeparatorsInText:
    """Unicode line separators inside JSON strings are text, not line breaks."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["a\u2028b", "a\x85b", "a\u2029b"])
    async def test_from_lines(self, make_lines, text):
        lines = make_lines(delta_body(text).split("\n"))
        items = [item async for item in EventStream.from_lines(lines)]

        assert items == [ContentBlockDeltaEvent(index=0, delta=TextDelta(text))]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["a\u2028b", "a\x85b"])
    async def test_from_response(self, text):
        response = httpx.Response(
            200,
            content=delta_body(text).encode("utf-8"),
            headers={"content-type": "text/event-stream"},
        )
        items = await EventStream.from_response(response).text().try_collect()

        assert items == [text]

    @pytest.mark.asyncio
    async def test_from_chunked_response(self):
        """Chunks may split CRLF pairs and multi-byte characters."""
        body = (delta_body("Certainly!\u2028I", "\r\n") + delta_body(" can\x85do", "\r\n"))
        raw = body.encode("utf-8")

        async def chunks():
            for i in range(0, len(raw), 7):
                yield raw[i:i + 7]

        response = httpx.Response(
            200,
            content=chunks(),
            headers={"content-type": "text/event-stream"},
        )
        stream = EventStream.from_response(response)
        items = await stream.text().try_collect()

        assert items == ["Certainly!\u2028I", " can\x85do"]
        assert response.is_closed
