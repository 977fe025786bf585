"""
Unit Tests for SSE Stream Session
=================================

Handshake ordering, framed delivery, keep-alive and teardown of a single
stream session.
"""

import asyncio
from typing import List

import pytest

from mcp_sse_server.api.sse.models import SessionState
from mcp_sse_server.api.sse.session import (
    QueueEventSink,
    SinkClosedError,
    SinkFullError,
    StreamSession,
)

from tests.utils.helpers import parse_sse_frame, parse_sse_json, wait_for_condition


class RecordingSink(QueueEventSink):
    """Sink that can be told to start failing."""

    def __init__(self, fail_on: str = "") -> None:
        super().__init__(max_pending=1000)
        self.written: List[str] = []
        self.fail_on = fail_on
        self.close_calls = 0

    async def write(self, frame: str) -> None:
        if self.fail_on and frame.startswith(self.fail_on):
            raise ConnectionResetError("client went away")
        await super().write(frame)
        self.written.append(frame)

    def close(self) -> None:
        self.close_calls += 1
        super().close()


def make_session(sink=None, interval=30.0, on_close=None) -> StreamSession:
    return StreamSession(
        "abc123",
        "/sse/message?sessionId=abc123",
        keep_alive_interval=interval,
        sink=sink,
        on_close=on_close,
    )


class TestQueueEventSink:
    """Test the queue-backed sink."""

    @pytest.mark.asyncio
    async def test_frames_in_write_order(self):
        sink = QueueEventSink()
        await sink.write("a")
        await sink.write("b")
        sink.close()

        assert [frame async for frame in sink.frames()] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_write_after_close(self):
        sink = QueueEventSink()
        sink.close()

        with pytest.raises(SinkClosedError):
            await sink.write("a")

    @pytest.mark.asyncio
    async def test_full_sink_rejects_writes(self):
        sink = QueueEventSink(max_pending=2)
        await sink.write("a")
        await sink.write("b")

        with pytest.raises(SinkFullError):
            await sink.write("c")
        assert sink.pending == 2


class TestStreamSession:
    """Test stream session delivery and lifecycle."""

    @pytest.mark.asyncio
    async def test_handshake_is_first_frame(self):
        sink = RecordingSink()
        session = make_session(sink)

        assert await session.open()
        await session.send({"jsonrpc": "2.0", "id": 1, "result": {}})

        assert parse_sse_frame(sink.written[0]) == {
            "event": "endpoint",
            "data": "/sse/message?sessionId=abc123",
            "id": None,
            "comments": [],
        }
        assert parse_sse_json(sink.written[1]) == {"jsonrpc": "2.0", "id": 1, "result": {}}
        session.close()

    @pytest.mark.asyncio
    async def test_send_counts_frames(self):
        session = make_session(RecordingSink())
        await session.open()

        assert await session.send({"id": 1})
        assert session.info().frames_sent == 2
        session.close()

    @pytest.mark.asyncio
    async def test_failed_send_tears_down_once(self):
        """A failed write closes the session, removes it and stops the timer."""
        removed = []
        sink = RecordingSink(fail_on="data: {")
        session = make_session(sink, on_close=removed.append)
        await session.open()
        keep_alive = session._keep_alive_task

        assert await session.send({"id": 1}) is False

        assert session.state == SessionState.CLOSED
        assert session.close_reason == "message_write_failed"
        assert removed == ["abc123"]
        assert sink.closed
        with pytest.raises(asyncio.CancelledError):
            await keep_alive

        session.close("again")
        assert removed == ["abc123"]
        assert sink.close_calls == 1

    @pytest.mark.asyncio
    async def test_failed_ping_tears_down(self):
        removed = []
        session = make_session(RecordingSink(fail_on=":"), interval=0.01, on_close=removed.append)
        await session.open()

        await wait_for_condition(lambda: session.state == SessionState.CLOSED, timeout=2.0)

        assert session.close_reason == "keep_alive_write_failed"
        assert removed == ["abc123"]

    @pytest.mark.asyncio
    async def test_keep_alive_pings(self):
        sink = RecordingSink()
        session = make_session(sink, interval=0.01)
        await session.open()

        await wait_for_condition(lambda: ": ping\n\n" in sink.written, timeout=2.0)
        session.close()

    @pytest.mark.asyncio
    async def test_send_after_close_is_dropped(self):
        sink = RecordingSink()
        session = make_session(sink)
        await session.open()
        session.close()

        assert await session.send({"id": 1}) is False
        assert len(sink.written) == 1

    @pytest.mark.asyncio
    async def test_concurrent_sends_do_not_interleave(self):
        sink = RecordingSink()
        session = make_session(sink)
        await session.open()

        envelopes = [{"jsonrpc": "2.0", "id": i, "result": {"text": "x" * 200}} for i in range(20)]
        results = await asyncio.gather(*(session.send(envelope) for envelope in envelopes))

        assert all(results)
        received = [parse_sse_json(frame) for frame in sink.written[1:]]
        assert sorted(envelope["id"] for envelope in received) == list(range(20))
        session.close()

    @pytest.mark.asyncio
    async def test_stream_yields_until_closed(self):
        session = make_session()
        await session.open()
        await session.send({"id": 1})

        frames = []

        async def consume():
            async for frame in session.stream():
                frames.append(frame)

        consumer = asyncio.create_task(consume())
        await wait_for_condition(lambda: len(frames) == 2)
        session.close("server_shutdown")
        await asyncio.wait_for(consumer, timeout=1.0)

        assert frames[0].startswith("event: endpoint")
        assert session.close_reason == "server_shutdown"

    @pytest.mark.asyncio
    async def test_cancelled_stream_closes_session(self):
        """Client disconnect cancels the consumer, which closes the session."""
        removed = []
        session = make_session(on_close=removed.append)
        await session.open()

        async def consume():
            async for _ in session.stream():
                pass

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer

        assert session.state == SessionState.CLOSED
        assert session.close_reason == "stream_ended"
        assert removed == ["abc123"]
