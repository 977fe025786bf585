"""
SSE Events
==========

Server-Sent Events formatting functions.
Builds the frames written to a session's stream: the endpoint handshake,
JSON-RPC message events and keep-alive comments.
"""

from typing import Any, List, Optional
import json

ENDPOINT_EVENT = "endpoint"


def format_sse_event(
    data: Any,
    event_type: Optional[str] = None,
    event_id: Optional[str] = None,
    retry_after: Optional[int] = None,
) -> str:
    """
    Format data for Server-Sent Events protocol.

    Args:
        data: Event data; strings are sent as-is, anything else as compact JSON
        event_type: Optional event type (clients default to "message")
        event_id: Optional event ID for client-side event tracking
        retry_after: Optional retry interval in milliseconds

    Returns:
        Formatted SSE message string
    """
    lines: List[str] = []

    if event_id:
        lines.append(f"id: {event_id}")

    if event_type:
        lines.append(f"event: {event_type}")

    if retry_after:
        lines.append(f"retry: {retry_after}")

    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, separators=(",", ":"))

    # Multi-line data uses one "data:" line per line
    for line in payload.split("\n"):
        lines.append(f"data: {line}")

    # SSE protocol requires double newline at end
    lines.append("")
    lines.append("")

    return "\n".join(lines)


def format_sse_comment(comment: str) -> str:
    """Format an SSE comment line; clients ignore it."""
    return f": {comment}\n\n"


KEEP_ALIVE_FRAME = format_sse_comment("ping")


def create_endpoint_event(endpoint_url: str) -> str:
    """Handshake frame telling the client where to POST messages."""
    return format_sse_event(endpoint_url, event_type=ENDPOINT_EVENT)


def create_message_event(envelope: Any) -> str:
    """Frame carrying one JSON-RPC envelope."""
    return format_sse_event(envelope)
