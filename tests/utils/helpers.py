"""
Test Helpers
============

Helper functions for common testing operations, plus a raw ASGI client for
reading an open SSE stream while other requests run on the same loop.
"""

import asyncio
import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from mcp_sse_server.config.settings import Settings


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: Dict[str, Any] = {
        "environment": "testing",
        "require_api_key": False,
        "log_level": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def rpc(method: str, params: Any = None, request_id: Any = 1) -> Dict[str, Any]:
    """Build a JSON-RPC request body; request_id=None builds a notification."""
    message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return message


async def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 5.0,
    interval: float = 0.01,
    error_message: str = "Condition not met within timeout"
) -> None:
    """Wait for a condition to become true."""
    start_time = time.time()

    while time.time() - start_time < timeout:
        if condition():
            return
        await asyncio.sleep(interval)

    raise TimeoutError(error_message)


def parse_sse_frame(frame: str) -> Dict[str, Any]:
    """
    Parse one SSE frame into its fields.

    Returns a dict with ``event``, ``data``, ``id`` and ``comments`` keys;
    multiple ``data:`` lines are joined with newlines.
    """
    parsed: Dict[str, Any] = {"event": None, "data": None, "id": None, "comments": []}
    data_lines: List[str] = []
    for line in frame.strip("\n").split("\n"):
        if line.startswith(":"):
            parsed["comments"].append(line[1:].strip())
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "data":
            data_lines.append(value)
        elif field in ("event", "id"):
            parsed[field] = value
    if data_lines:
        parsed["data"] = "\n".join(data_lines)
    return parsed


def parse_sse_json(frame: str) -> Any:
    """Decode the JSON payload of a data frame."""
    return json.loads(parse_sse_frame(frame)["data"])


class SSEStreamClient:
    """
    Opens a GET request against an ASGI app and exposes the streamed body
    frame by frame. Leaving the context sends ``http.disconnect``.

    Usage:
        async with SSEStreamClient(app, "/sse") as stream:
            handshake = await stream.next_frame()
    """

    def __init__(
        self,
        app: Any,
        path: str = "/sse",
        headers: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        self.app = app
        self.path = path
        self.request_headers = [("host", "testserver"), ("accept", "text/event-stream")]
        self.request_headers.extend(headers or [])
        self.status: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self._frames: "asyncio.Queue[str]" = asyncio.Queue()
        self._buffer = ""
        self._started = asyncio.Event()
        self._finished = asyncio.Event()
        self._disconnect = asyncio.Event()
        self._request_sent = False
        self._task: Optional["asyncio.Task[None]"] = None

    def _scope(self) -> Dict[str, Any]:
        path, _, query = self.path.partition("?")
        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query.encode(),
            "headers": [(k.lower().encode(), v.encode()) for k, v in self.request_headers],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }

    async def _receive(self) -> Dict[str, Any]:
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnect.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message: Dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = {
                k.decode().lower(): v.decode() for k, v in message.get("headers", [])
            }
            self._started.set()
        elif message["type"] == "http.response.body":
            self._buffer += message.get("body", b"").decode()
            while "\n\n" in self._buffer:
                frame, self._buffer = self._buffer.split("\n\n", 1)
                self._frames.put_nowait(frame + "\n\n")
            if not message.get("more_body", False):
                self._finished.set()

    async def _run(self) -> None:
        try:
            await self.app(self._scope(), self._receive, self._send)
        finally:
            self._started.set()
            self._finished.set()

    async def __aenter__(self) -> "SSEStreamClient":
        self._task = asyncio.create_task(self._run())
        await asyncio.wait_for(self._started.wait(), timeout=5.0)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    async def next_frame(self, timeout: float = 2.0) -> str:
        return await asyncio.wait_for(self._frames.get(), timeout=timeout)

    async def disconnect(self, timeout: float = 5.0) -> None:
        """Signal client disconnect and wait for the app to finish."""
        self._disconnect.set()
        if self._task is not None:
            await asyncio.wait_for(self._task, timeout=timeout)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()
