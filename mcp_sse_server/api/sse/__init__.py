"""
Server-Sent Events (SSE) Infrastructure
======================================

SSE implementation for pushing JSON-RPC envelopes to connected clients.

Components:
- Session Store: Table of open sessions, injected into the routes
- Stream Session: One stream with handshake, keep-alive and framed delivery
- Events: SSE frame formatting
- Models: Session state and snapshots
"""

from .events import create_endpoint_event, create_message_event, format_sse_comment, format_sse_event
from .models import SessionInfo, SessionState
from .session import QueueEventSink, SinkClosedError, SinkFullError, StreamSession
from .session_store import SESSION_QUERY_PARAM, SessionLimitExceeded, SessionStore

__all__ = [
    "create_endpoint_event",
    "create_message_event",
    "format_sse_comment",
    "format_sse_event",
    "SessionInfo",
    "SessionState",
    "QueueEventSink",
    "SinkClosedError",
    "SinkFullError",
    "StreamSession",
    "SESSION_QUERY_PARAM",
    "SessionLimitExceeded",
    "SessionStore",
]
