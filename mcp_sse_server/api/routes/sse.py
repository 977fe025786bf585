"""
SSE Routes
==========

FastAPI routes for the MCP SSE transport.

- ``GET /sse`` opens a stream; the first frame is the ``endpoint`` event
  naming ``/sse/message?sessionId=<id>``.
- ``POST /sse/message?sessionId=<id>`` dispatches a message, pushes the
  answer down that session's stream and also returns it in the response.
- ``POST /sse`` dispatches a message with no session; the answer is only
  returned in the response.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from mcp_sse_server.api.auth import validate_api_key
from mcp_sse_server.api.sse.session import StreamSession
from mcp_sse_server.api.sse.session_store import (
    SESSION_QUERY_PARAM,
    SessionLimitExceeded,
    SessionStore,
)
from mcp_sse_server.config.logging import get_logger
from mcp_sse_server.mcp_server.handlers import Dispatcher, OutcomeKind
from mcp_sse_server.mcp_server.protocol import INTERNAL_ERROR, make_error

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sse",
    tags=["SSE"],
    dependencies=[Depends(validate_api_key)],
)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable Nginx buffering
}


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


@router.get("")
async def open_stream(
    request: Request, store: SessionStore = Depends(get_session_store)
) -> StreamingResponse:
    """
    Establish an SSE stream.

    Returns:
        Streaming response whose first event is the message endpoint
    """
    message_path = f"{request.scope.get('root_path', '')}{router.prefix}/message"
    try:
        session = await store.create(message_path)
    except SessionLimitExceeded as e:
        logger.warning("SSE session rejected", reason=str(e))
        raise HTTPException(status_code=503, detail="Too many open SSE sessions")

    return StreamingResponse(
        session.stream(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Session-ID": session.session_id},
    )


@router.post("")
async def post_stateless_message(
    request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)
) -> Response:
    """Handle a message POSTed straight to the stream path, with no session."""
    logger.debug("Stateless message received")
    return await handle_message(request, dispatcher, None)


@router.post("/message")
async def post_session_message(
    request: Request,
    session_id: Optional[str] = Query(None, alias=SESSION_QUERY_PARAM),
    store: SessionStore = Depends(get_session_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Response:
    """Handle a message addressed to an SSE session."""
    session = store.lookup(session_id)
    if session is None and session_id:
        logger.info("No open SSE session, responding synchronously only", session_id=session_id)
    return await handle_message(request, dispatcher, session)


async def handle_message(
    request: Request, dispatcher: Dispatcher, session: Optional[StreamSession]
) -> Response:
    """
    Dispatch one message and deliver the outcome.

    The envelope is returned as the HTTP response in every case; when a
    session is given it is also pushed down that session's stream.
    Notifications produce 204 with no body and no stream frame.
    """
    try:
        body = await request.body()
        result = await dispatcher.dispatch_raw(body)

        if not result.has_envelope:
            return Response(status_code=204)

        if session is not None:
            await session.send(result.envelope)

        status_code = 400 if result.kind == OutcomeKind.PARSE_ERROR else 200
        return JSONResponse(content=result.envelope, status_code=status_code)
    except Exception as e:
        logger.error("Message handling failed", error=str(e), exc_info=True)
        return JSONResponse(
            content=make_error(INTERNAL_ERROR, str(e) or "Internal error", include_id=False),
            status_code=500,
        )
