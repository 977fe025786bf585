"""
MCP Server
==========

Protocol layer of the server: message decoding, method dispatch and the tool
registry. Nothing in this package knows about HTTP or SSE.
"""

from .handlers import Dispatcher, DispatchResult, OutcomeKind
from .protocol import MessageKind, decode_message
from .tools import ToolDescriptor, ToolRegistry, create_default_registry, text_result

__all__ = [
    "Dispatcher",
    "DispatchResult",
    "OutcomeKind",
    "MessageKind",
    "decode_message",
    "ToolDescriptor",
    "ToolRegistry",
    "create_default_registry",
    "text_result",
]
