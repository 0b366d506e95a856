"""Session manager for concurrent registration sessions."""

from __future__ import annotations

import threading
from typing import Optional

from face_register.core.exceptions import SessionNotFoundError
from face_register.core.geometry import DEFAULT_TOLERANCE
from face_register.core.logger import get_logger
from face_register.core.registry import FaceRegistry
from face_register.core.session import RegistrationSession
from face_register.core.types import Rect

logger = get_logger("session_manager")


class SessionManager:
    """Thread-safe owner of registration sessions.

    All sessions share one face registry, so a face registered from one
    client is recognised by every other.
    """

    def __init__(self, registry: FaceRegistry, max_sessions: int = 64) -> None:
        """Initialize session manager.

        Args:
            registry: Registry shared by all sessions.
            max_sessions: Upper bound on live sessions; the oldest session is
                evicted when a new one would exceed it.
        """
        self.registry = registry
        self.max_sessions = max_sessions
        self._sessions: dict[str, RegistrationSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self, target: Rect, tolerance: float = DEFAULT_TOLERANCE
    ) -> RegistrationSession:
        """Create and track a new session.

        Args:
            target: Target region for the session.
            tolerance: Alignment tolerance.

        Returns:
            The new session, in the ``Idle`` state.
        """
        session = RegistrationSession(
            target=target, registry=self.registry, tolerance=tolerance
        )
        with self._lock:
            while len(self._sessions) >= self.max_sessions:
                oldest = next(iter(self._sessions))
                del self._sessions[oldest]
                logger.info(f"Evicted session: {oldest}")
            self._sessions[session.session_id] = session

        logger.debug(f"Created session {session.session_id} with target {target}")
        return session

    def get_session(self, session_id: str) -> RegistrationSession:
        """Look up a session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        with self._lock:
            session: Optional[RegistrationSession] = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found")
        return session

    def remove_session(self, session_id: str) -> None:
        """Forget a session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        with self._lock:
            if session_id not in self._sessions:
                raise SessionNotFoundError(f"Session '{session_id}' not found")
            del self._sessions[session_id]
        logger.debug(f"Removed session: {session_id}")

    def clear_all(self) -> None:
        """Drop every session."""
        with self._lock:
            self._sessions.clear()
        logger.info("Cleared all sessions")

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)
