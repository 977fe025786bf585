"""
JSON-RPC Protocol
=================

Decoding of inbound protocol messages and construction of response envelopes.

Every inbound body is classified before dispatch:

- ``MALFORMED``: not JSON, or JSON that is not an object
- ``INVALID``: an object without a string ``method``
- ``REQUEST``: carries an ``id`` and expects an answer
- ``NOTIFICATION``: carries no ``id``
"""

from enum import Enum
from typing import Any, Dict, Optional, Union
import json

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)
from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "JSONRPC_VERSION",
    "MessageKind",
    "ProtocolMessage",
    "DecodedMessage",
    "decode_message",
    "make_response",
    "make_error",
]


class MessageKind(str, Enum):
    """Classification of an inbound body."""

    MALFORMED = "malformed"
    INVALID = "invalid"
    REQUEST = "request"
    NOTIFICATION = "notification"


class ProtocolMessage(BaseModel):
    """A decoded JSON-RPC request or notification."""

    method: str = Field(..., description="Method name")
    id: Any = Field(None, description="Correlation id, mirrored in the response")
    has_id: bool = Field(False, description="Whether the message carried an id at all")
    params: Any = Field(default_factory=dict, description="Structured payload")

    model_config = ConfigDict(frozen=True)

    @property
    def is_notification(self) -> bool:
        return not self.has_id


class DecodedMessage(BaseModel):
    """Result of the decode step."""

    kind: MessageKind
    message: Optional[ProtocolMessage] = None
    request_id: Any = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_message(body: Union[str, bytes]) -> DecodedMessage:
    """
    Classify a raw request body.

    Args:
        body: Raw HTTP body (UTF-8)

    Returns:
        DecodedMessage tagged with its MessageKind
    """
    try:
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        payload = json.loads(body, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        return DecodedMessage(kind=MessageKind.MALFORMED, error=str(e))

    if not isinstance(payload, dict):
        return DecodedMessage(
            kind=MessageKind.MALFORMED,
            error=f"Expected a JSON object, got {type(payload).__name__}",
        )

    request_id = payload.get("id")
    method = payload.get("method")
    if not isinstance(method, str):
        return DecodedMessage(
            kind=MessageKind.INVALID, request_id=request_id, error="Missing or invalid method"
        )

    has_id = "id" in payload
    params = payload.get("params")
    message = ProtocolMessage(
        method=method,
        id=request_id,
        has_id=has_id,
        params={} if params is None else params,
    )
    return DecodedMessage(
        kind=MessageKind.REQUEST if has_id else MessageKind.NOTIFICATION,
        message=message,
        request_id=request_id,
    )


def make_response(request_id: Any, result: Any) -> Dict[str, Any]:
    """Build a success envelope."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def make_error(
    code: int, message: str, request_id: Any = None, include_id: bool = True
) -> Dict[str, Any]:
    """
    Build an error envelope.

    Args:
        code: JSON-RPC error code
        message: Human readable message
        request_id: Correlation id to mirror (``None`` serializes as ``null``)
        include_id: Omit the ``id`` key entirely when False (parse errors)
    """
    envelope: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
    if include_id:
        envelope["id"] = request_id
    envelope["error"] = {"code": code, "message": message}
    return envelope
