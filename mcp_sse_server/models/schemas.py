"""
Pydantic Schemas
================

Response models for the HTTP endpoints that do not speak JSON-RPC.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )


class ServerStatus(BaseModel):
    """Static identity returned by the health endpoint."""
    name: str = Field(..., description="Server description")
    version: str = Field(..., description="Server version")
    status: Literal["running"] = Field(default="running", description="Server status")
    endpoints: Dict[str, str] = Field(default_factory=dict, description="Public endpoints")
