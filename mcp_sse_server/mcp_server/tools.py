"""
MCP Server Tools
================

Tool registry for the MCP (Model Context Protocol) server, plus the built-in
example tools. External tool logic plugs in by registering a ToolDescriptor
or by decorating a function with ``ToolRegistry.tool``.
"""

from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Union

from mcp.types import TextContent
from pydantic import BaseModel, ConfigDict, Field

from mcp_sse_server.config.logging import get_logger

logger = get_logger(__name__)

ToolResult = Dict[str, Any]
ToolHandler = Callable[[Dict[str, Any]], Union[ToolResult, Awaitable[ToolResult]]]


class ToolDescriptor(BaseModel):
    """An invocable tool. Only name, description and inputSchema are serialized."""

    name: str = Field(..., min_length=1, description="Unique tool name")
    description: str = Field(default="", description="What the tool does")
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        alias="inputSchema",
        description="JSON schema for the tool arguments",
    )
    handler: ToolHandler = Field(..., exclude=True, description="Tool implementation")

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    def describe(self) -> Dict[str, Any]:
        """Wire representation used by tools/list."""
        return self.model_dump(by_alias=True)


class ToolRegistry:
    """Ordered set of tools, looked up by exact name."""

    def __init__(self, tools: Optional[List[ToolDescriptor]] = None) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        self.logger = logger.bind(component="tool_registry")
        for descriptor in tools or []:
            self.register(descriptor)

    def register(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        """
        Add a tool to the registry.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered")
        self._tools[descriptor.name] = descriptor
        self.logger.debug("Tool registered", tool=descriptor.name)
        return descriptor

    def tool(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering a function as a tool."""

        def decorator(func: ToolHandler) -> ToolHandler:
            fields: Dict[str, Any] = {
                "name": name or func.__name__,
                "description": description or (func.__doc__ or "").strip(),
                "handler": func,
            }
            if input_schema is not None:
                fields["input_schema"] = input_schema
            self.register(ToolDescriptor(**fields))
            return func

        return decorator

    def unregister(self, name: str) -> bool:
        """Remove a tool; returns False if it was not registered."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def list_tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def describe(self) -> List[Dict[str, Any]]:
        """Descriptors in registration order, without handlers."""
        return [descriptor.describe() for descriptor in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)


def text_result(text: str) -> ToolResult:
    """Wrap text as an MCP tool result."""
    content = TextContent(type="text", text=text)
    return {"content": [content.model_dump(exclude_none=True)]}


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _require_number(arguments: Dict[str, Any], key: str) -> Union[int, float]:
    value = arguments.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Argument '{key}' must be a number")
    return value


async def hello(arguments: Dict[str, Any]) -> ToolResult:
    """Says hello to a person."""
    name = arguments.get("name")
    if not isinstance(name, str) or not name:
        raise ValueError("Argument 'name' is required")
    return text_result(f"Hello, {name}! Your MCP server is working!")


async def add(arguments: Dict[str, Any]) -> ToolResult:
    """Adds two numbers together."""
    a = _require_number(arguments, "a")
    b = _require_number(arguments, "b")
    return text_result(f"{_format_number(a)} + {_format_number(b)} = {_format_number(a + b)}")


BUILTIN_TOOLS: List[ToolDescriptor] = [
    ToolDescriptor(
        name="hello",
        description="Says hello to a person",
        input_schema={
            "type": "object",
            "properties": {"name": {"type": "string", "description": "Name to greet"}},
            "required": ["name"],
        },
        handler=hello,
    ),
    ToolDescriptor(
        name="add",
        description="Adds two numbers together",
        input_schema={
            "type": "object",
            "properties": {
                "a": {"type": "number", "description": "First number"},
                "b": {"type": "number", "description": "Second number"},
            },
            "required": ["a", "b"],
        },
        handler=add,
    ),
]


def create_default_registry() -> ToolRegistry:
    """Registry preloaded with the built-in tools."""
    return ToolRegistry(list(BUILTIN_TOOLS))
