"""
SSE Session Store
=================

Process-wide table of open stream sessions, owned by the application and
handed to the transport layer. Entries live in memory only and are not
shared between worker processes.
"""

from typing import Dict, List, Optional, TYPE_CHECKING
from urllib.parse import urlencode
import secrets
import threading

from mcp_sse_server.config.logging import get_logger

from .models import SessionInfo
from .session import QueueEventSink, StreamSession

if TYPE_CHECKING:
    from mcp_sse_server.config.settings import Settings

logger = get_logger(__name__)

SESSION_QUERY_PARAM = "sessionId"


class SessionLimitExceeded(Exception):
    """Raised when opening a session would exceed ``max_sessions``."""


class SessionStore:
    """
    Maps session ids to live StreamSessions.

    Each single-key operation is atomic under an internal lock. A session
    removes itself from the store when it closes, so an id present in the
    store always has a writable sink.
    """

    def __init__(
        self,
        keep_alive_interval: float = 30.0,
        buffer_size: int = 100,
        max_sessions: int = 0,
    ) -> None:
        self.keep_alive_interval = keep_alive_interval
        self.buffer_size = buffer_size
        self.max_sessions = max_sessions
        self._sessions: Dict[str, StreamSession] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="session_store")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SessionStore":
        return cls(
            keep_alive_interval=settings.keep_alive_interval,
            buffer_size=settings.sse_event_buffer_size,
            max_sessions=settings.max_sessions,
        )

    @staticmethod
    def generate_session_id() -> str:
        """128-bit random token, hex encoded."""
        return secrets.token_hex(16)

    async def create(self, message_path: str) -> StreamSession:
        """
        Register and open a new session.

        Args:
            message_path: Path clients POST messages to; the session id is
                appended as the ``sessionId`` query parameter

        Returns:
            The open session, its handshake already queued

        Raises:
            SessionLimitExceeded: If ``max_sessions`` sessions are open
        """
        with self._lock:
            if self.max_sessions and len(self._sessions) >= self.max_sessions:
                raise SessionLimitExceeded(f"{self.max_sessions} sessions already open")

            session_id = self.generate_session_id()
            while session_id in self._sessions:
                session_id = self.generate_session_id()

            endpoint_url = f"{message_path}?{urlencode({SESSION_QUERY_PARAM: session_id})}"
            session = StreamSession(
                session_id,
                endpoint_url,
                keep_alive_interval=self.keep_alive_interval,
                sink=QueueEventSink(max_pending=self.buffer_size),
                on_close=self.remove,
            )
            self._sessions[session_id] = session

        await session.open()
        self.logger.info(
            "SSE session created", session_id=session_id, total_sessions=self.count()
        )
        return session

    def lookup(self, session_id: Optional[str]) -> Optional[StreamSession]:
        """Return the session for ``session_id``, or None if there is none."""
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        """
        Drop a session from the table. Removing an absent id is a no-op.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            self.logger.debug("SSE session removed", session_id=session_id)
        return removed

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def list_sessions(self) -> List[SessionInfo]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.info() for session in sessions]

    def close_all(self, reason: str = "server_shutdown") -> int:
        """
        Close every open session.

        Returns:
            Number of sessions closed
        """
        with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            session.close(reason)
        if sessions:
            self.logger.info("Closed all SSE sessions", count=len(sessions), reason=reason)
        return len(sessions)
