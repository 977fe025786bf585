"""
SSE Stream Session
==================

One open Server-Sent Events stream: handshake, keep-alive pings and framed
push delivery of JSON-RPC envelopes.

Lifecycle is OPEN -> CLOSING -> CLOSED. Every failure path (a failed send,
a failed ping, the client going away, server shutdown) goes through
``StreamSession.close``, which cancels the keep-alive task, removes the
session from its store and closes the sink exactly once.
"""

from typing import Any, AsyncIterator, Callable, Optional
from datetime import datetime, timezone
import asyncio

from mcp_sse_server.config.logging import get_logger

from .events import KEEP_ALIVE_FRAME, create_endpoint_event, create_message_event
from .models import SessionInfo, SessionState

logger = get_logger(__name__)


class SinkClosedError(Exception):
    """Write attempted on a closed sink."""


class SinkFullError(Exception):
    """The consumer is not draining the sink fast enough."""


class QueueEventSink:
    """
    Single-consumer sink backed by an asyncio queue.

    Writes never block: when ``max_pending`` frames are waiting the write
    fails instead, so a stalled client cannot hold up its writers.
    """

    def __init__(self, max_pending: int = 100) -> None:
        self.max_pending = max_pending
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def write(self, frame: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        if self._queue.qsize() >= self.max_pending:
            raise SinkFullError(f"{self.max_pending} frames pending")
        self._queue.put_nowait(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # None is a signal to stop
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames in write order until the sink is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


class StreamSession:
    """One SSE stream with its sink and keep-alive task."""

    def __init__(
        self,
        session_id: str,
        endpoint_url: str,
        keep_alive_interval: float = 30.0,
        sink: Optional[QueueEventSink] = None,
        on_close: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.session_id = session_id
        self.endpoint_url = endpoint_url
        self.keep_alive_interval = keep_alive_interval
        self.sink = sink if sink is not None else QueueEventSink()
        self.state = SessionState.OPEN
        self.created_at = datetime.now(timezone.utc)
        self.frames_sent = 0
        self.close_reason: Optional[str] = None
        self._on_close = on_close
        self._write_lock = asyncio.Lock()
        self._keep_alive_task: Optional[asyncio.Task[None]] = None
        self.logger = logger.bind(component="sse_session", session_id=session_id)

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    def info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            state=self.state,
            created_at=self.created_at,
            frames_sent=self.frames_sent,
            close_reason=self.close_reason,
        )

    async def open(self) -> bool:
        """
        Emit the endpoint handshake and start the keep-alive task.

        The handshake is written before anything else can reach the sink.

        Returns:
            True if the session is open afterwards
        """
        if not await self._write(create_endpoint_event(self.endpoint_url), "handshake"):
            return False
        self._keep_alive_task = asyncio.create_task(
            self._keep_alive_loop(), name=f"sse-keep-alive-{self.session_id}"
        )
        self.logger.info("SSE session opened", endpoint=self.endpoint_url)
        return True

    async def send(self, envelope: Any) -> bool:
        """
        Push one JSON-RPC envelope down the stream.

        A closed session silently drops the envelope. A failed write tears
        the session down; it never raises.

        Returns:
            True if the frame was written
        """
        return await self._write(create_message_event(envelope), "message")

    async def ping(self) -> bool:
        """Write one keep-alive comment frame."""
        return await self._write(KEEP_ALIVE_FRAME, "keep_alive")

    async def stream(self) -> AsyncIterator[str]:
        """
        Frames for the HTTP response body.

        Ends when the session closes; when the consumer stops iterating
        (client disconnect) the session is closed.
        """
        try:
            async for frame in self.sink.frames():
                yield frame
        finally:
            self.close("stream_ended")

    def close(self, reason: str = "closed") -> None:
        """
        Tear the session down. Idempotent.

        Args:
            reason: Why the session is closing, for logs
        """
        if self.state != SessionState.OPEN:
            return
        self.state = SessionState.CLOSING
        self.close_reason = reason

        task = self._keep_alive_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        if self._on_close is not None:
            self._on_close(self.session_id)

        self.sink.close()
        self.state = SessionState.CLOSED
        self.logger.info("SSE session closed", reason=reason, frames_sent=self.frames_sent)

    async def _write(self, frame: str, kind: str) -> bool:
        if self.state != SessionState.OPEN:
            return False
        async with self._write_lock:
            if self.state != SessionState.OPEN:
                return False
            try:
                await self.sink.write(frame)
            except Exception as e:
                self.logger.warning(
                    "SSE write failed",
                    frame_kind=kind,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                self.close(f"{kind}_write_failed")
                return False
            self.frames_sent += 1
            return True

    async def _keep_alive_loop(self) -> None:
        while self.state == SessionState.OPEN:
            await asyncio.sleep(self.keep_alive_interval)
            if not await self.ping():
                break


def _current_task() -> Optional["asyncio.Task[Any]"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
