"""
SSE Models
==========

Data structures for SSE sessions.
"""

from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Stream session lifecycle. CLOSED is terminal."""

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionInfo(BaseModel):
    """Snapshot of a session, used for logging and diagnostics."""

    session_id: str = Field(..., description="Session identifier")
    state: SessionState = Field(..., description="Lifecycle state")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp"
    )
    frames_sent: int = Field(default=0, ge=0, description="Frames written to the stream")
    close_reason: Optional[str] = Field(None, description="Why the session was closed")

    model_config = ConfigDict(use_enum_values=True)
