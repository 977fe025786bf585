"""
MCP Protocol Handlers
====================

Dispatches decoded JSON-RPC messages to the MCP methods this server supports.
The dispatcher is a pure function of (message, registry): it never touches
transport state, so it can be exercised without an HTTP server.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union, TYPE_CHECKING

from mcp.types import Implementation, InitializeResult, ServerCapabilities, ToolsCapability
from pydantic import BaseModel, ConfigDict

from mcp_sse_server.config.logging import get_logger
from mcp_sse_server.mcp_server.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    DecodedMessage,
    MessageKind,
    ProtocolMessage,
    decode_message,
    make_error,
    make_response,
)
from mcp_sse_server.mcp_server.tools import ToolDescriptor, ToolRegistry

if TYPE_CHECKING:
    from mcp_sse_server.config.settings import Settings

logger = get_logger(__name__)

INITIALIZED_NOTIFICATION = "notifications/initialized"


class OutcomeKind(str, Enum):
    """What a dispatch produced."""

    RESPONSE = "response"
    ERROR = "error"
    PARSE_ERROR = "parse_error"
    NO_CONTENT = "no_content"


class DispatchResult(BaseModel):
    """Outcome of dispatching one message."""

    kind: OutcomeKind
    envelope: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_envelope(self) -> bool:
        return self.envelope is not None

    @classmethod
    def no_content(cls) -> "DispatchResult":
        return cls(kind=OutcomeKind.NO_CONTENT)


class ToolTimeoutError(Exception):
    """A tool call ran past the configured timeout."""


class _MethodError(Exception):
    """Raised inside a method handler to produce an error envelope."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


MethodHandler = Callable[[ProtocolMessage], Awaitable[Any]]


class Dispatcher:
    """Routes protocol messages to method handlers and builds envelopes."""

    def __init__(
        self,
        registry: ToolRegistry,
        server_name: str = "mcp-sse-server",
        server_version: str = "1.0.0",
        protocol_version: str = "2024-11-05",
        tool_call_timeout: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.server_name = server_name
        self.server_version = server_version
        self.protocol_version = protocol_version
        self.tool_call_timeout = tool_call_timeout
        self.logger = logger.bind(component="dispatcher")
        self._methods: Dict[str, MethodHandler] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
        }

    @classmethod
    def from_settings(cls, settings: "Settings", registry: ToolRegistry) -> "Dispatcher":
        return cls(
            registry,
            server_name=settings.server_name,
            server_version=settings.server_version,
            protocol_version=settings.protocol_version,
            tool_call_timeout=settings.tool_call_timeout,
        )

    async def dispatch_raw(self, body: Union[str, bytes]) -> DispatchResult:
        """Decode a raw body and dispatch it."""
        return await self.dispatch(decode_message(body))

    async def dispatch(self, decoded: DecodedMessage) -> DispatchResult:
        """
        Dispatch a decoded message.

        Args:
            decoded: Output of the decode step

        Returns:
            DispatchResult carrying a response envelope, an error envelope,
            or nothing for notifications
        """
        if decoded.kind == MessageKind.MALFORMED:
            self.logger.warning("Malformed message", error=decoded.error)
            return DispatchResult(
                kind=OutcomeKind.PARSE_ERROR,
                envelope=make_error(PARSE_ERROR, "Parse error", include_id=False),
            )

        message = decoded.message
        if decoded.kind == MessageKind.INVALID or message is None:
            self.logger.warning("Invalid request", error=decoded.error)
            return DispatchResult(
                kind=OutcomeKind.ERROR,
                envelope=make_error(INVALID_REQUEST, "Invalid Request", decoded.request_id),
            )

        if message.method == INITIALIZED_NOTIFICATION:
            self.logger.info("Received notification", method=message.method)
            return DispatchResult.no_content()

        handler = self._methods.get(message.method)
        if handler is None:
            self.logger.warning("Method not found", method=message.method, request_id=message.id)
            return DispatchResult(
                kind=OutcomeKind.ERROR,
                envelope=make_error(
                    METHOD_NOT_FOUND, f"Method not found: {message.method}", message.id
                ),
            )

        try:
            result = await handler(message)
        except _MethodError as e:
            if message.is_notification:
                return DispatchResult.no_content()
            return DispatchResult(
                kind=OutcomeKind.ERROR, envelope=make_error(e.code, e.message, message.id)
            )

        if message.is_notification:
            return DispatchResult.no_content()
        return DispatchResult(kind=OutcomeKind.RESPONSE, envelope=make_response(message.id, result))

    async def _handle_initialize(self, message: ProtocolMessage) -> Dict[str, Any]:
        result = InitializeResult(
            protocolVersion=self.protocol_version,
            capabilities=ServerCapabilities(tools=ToolsCapability()),
            serverInfo=Implementation(name=self.server_name, version=self.server_version),
        )
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    async def _handle_ping(self, message: ProtocolMessage) -> Dict[str, Any]:
        return {}

    async def _handle_tools_list(self, message: ProtocolMessage) -> Dict[str, Any]:
        return {"tools": self.registry.describe()}

    async def _handle_tools_call(self, message: ProtocolMessage) -> Any:
        params = message.params
        if not isinstance(params, dict):
            raise _MethodError(INVALID_PARAMS, "Invalid params: expected an object")

        name = params.get("name")
        if not isinstance(name, str):
            raise _MethodError(INVALID_PARAMS, "Invalid params: tool name is required")

        descriptor = self.registry.get(name)
        if descriptor is None:
            self.logger.warning("Unknown tool", tool=name, request_id=message.id)
            raise _MethodError(METHOD_NOT_FOUND, f"Unknown tool: {name}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise _MethodError(INVALID_PARAMS, "Invalid params: arguments must be an object")

        self.logger.info("Tool called", tool=name, request_id=message.id)
        try:
            return await self._call_tool(descriptor, arguments)
        except ToolTimeoutError as e:
            self.logger.error("Tool timed out", tool=name, timeout=self.tool_call_timeout)
            raise _MethodError(INTERNAL_ERROR, str(e))
        except Exception as e:
            self.logger.error("Tool execution failed", tool=name, error=str(e), exc_info=True)
            raise _MethodError(INTERNAL_ERROR, str(e) or "Tool execution failed")

    async def _call_tool(self, descriptor: ToolDescriptor, arguments: Dict[str, Any]) -> Any:
        """
        Run a tool handler, bounded by ``tool_call_timeout`` when one is set.

        Exceptions raised by the handler propagate unchanged, a TimeoutError
        of its own included; only expiry of the configured bound raises
        ToolTimeoutError.
        """
        result = descriptor.handler(arguments)
        if not inspect.isawaitable(result):
            return result
        if self.tool_call_timeout is None:
            return await result

        task = asyncio.ensure_future(result)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.tool_call_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise ToolTimeoutError(f"Tool execution timed out after {self.tool_call_timeout}s")
        return task.result()
