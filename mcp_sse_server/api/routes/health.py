"""
Health Routes
=============

Static server identity. Not behind the API key gate.
"""

from fastapi import APIRouter, Request

from mcp_sse_server.models.schemas import ServerStatus

router = APIRouter(tags=["Health"])


@router.get("/", response_model=ServerStatus)
@router.get("/health", response_model=ServerStatus)
async def health_check(request: Request) -> ServerStatus:
    """Basic health check endpoint."""
    settings = request.app.state.settings
    return ServerStatus(
        name=settings.server_description,
        version=settings.server_version,
        endpoints={"sse": "/sse"},
    )
