"""
FastAPI Application
==================

Application factory for the MCP SSE server. Wires settings, the session
store, the tool registry and the dispatcher into ``app.state`` and mounts
the health and SSE routes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Receive, Scope, Send
import uvicorn

from mcp_sse_server import __version__
from mcp_sse_server.api.routes.health import router as health_router
from mcp_sse_server.api.routes.sse import router as sse_router
from mcp_sse_server.api.sse.session_store import SessionStore
from mcp_sse_server.config.logging import get_logger
from mcp_sse_server.config.settings import Settings, get_settings
from mcp_sse_server.mcp_server.handlers import Dispatcher
from mcp_sse_server.mcp_server.tools import ToolRegistry, create_default_registry
from mcp_sse_server.models.schemas import ErrorResponse

logger = get_logger(__name__)

CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Accept", "X-API-Key", "Authorization"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info(
        "Starting MCP SSE server",
        server_name=app.state.settings.server_name,
        tools=len(app.state.tool_registry),
    )
    try:
        yield
    finally:
        logger.info("Shutting down MCP SSE server")
        app.state.session_store.close_all("server_shutdown")


def preflight_headers(
    settings: Settings, origin: Optional[str], requested_headers: Optional[str] = None
) -> Dict[str, str]:
    """Permissive CORS headers for a preflight answer."""
    headers = {
        "Access-Control-Allow-Methods": ", ".join(CORS_ALLOW_METHODS),
        "Access-Control-Allow-Headers": requested_headers or ", ".join(CORS_ALLOW_HEADERS),
    }
    if "*" in settings.allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in settings.allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


class PreflightMiddleware:
    """
    Answers every OPTIONS request with 204, permissive CORS headers and no
    body, before routing, CORSMiddleware or the API key gate see it.

    Pure ASGI so streaming responses pass through untouched.
    """

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        self.app = app
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "OPTIONS":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        response = Response(
            status_code=204,
            headers=preflight_headers(
                self.settings,
                headers.get("origin"),
                headers.get("access-control-request-headers"),
            ),
        )
        await response(scope, receive, send)


def create_app(
    settings: Optional[Settings] = None, registry: Optional[ToolRegistry] = None
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use; defaults to the environment settings
        registry: Tool registry; defaults to the built-in tools

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()
    registry = registry if registry is not None else create_default_registry()

    app = FastAPI(
        title=settings.app_name,
        description=settings.server_description,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.tool_registry = registry
    app.state.dispatcher = Dispatcher.from_settings(settings, registry)
    app.state.session_store = SessionStore.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=["X-Session-ID"],
    )
    app.add_middleware(PreflightMiddleware, settings=settings)

    @app.exception_handler(StarletteHTTPException)
    async def custom_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """HTTP exception handler with structured error response."""
        error_response = ErrorResponse(error=str(exc.detail), error_code=str(exc.status_code))

        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """General exception handler for unexpected errors."""
        error_response = ErrorResponse(
            error="Internal server error",
            error_code="INTERNAL_ERROR",
            details={"exception": str(exc)} if settings.debug else None,
        )

        logger.error(
            "Unhandled exception", exception=str(exc), path=request.url.path, exc_info=True
        )

        return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))

    app.include_router(health_router)
    app.include_router(sse_router)

    return app


def run_server() -> None:
    """Run the server with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "mcp_sse_server.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


app = create_app()


if __name__ == "__main__":
    run_server()
