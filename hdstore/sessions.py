"""Server-side login sessions keyed by an opaque cookie value."""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional

from .errors import Unauthorized
from .models import Session, UserInfo
from .utils import generate_session_id

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory session table with idle expiry.

    One instance is created per application and handed to request
    handlers explicitly.
    """

    def __init__(self, ttl_seconds: int = 1440):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, user: UserInfo) -> Session:
        """Open a new session bound to ``user``."""

        session = Session(
            session_id=generate_session_id(),
            user_folder=user.folder,
            username=user.name,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Session opened for %s", user.name)
        return session

    def bind(self, session_id: Optional[str], user: UserInfo) -> Session:
        """Open a fresh session for ``user``, discarding ``session_id``.

        The previous id never survives a login, so a cookie planted before
        authentication cannot be used afterwards.
        """

        if session_id:
            with self._lock:
                self._sessions.pop(session_id, None)
        return self.create(user)

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        """Return the live session for ``session_id`` and refresh its idle timer."""

        with self._lock:
            session = self._live(session_id)
            if session is not None:
                session.last_seen = time.time()
            return session

    def resolve_user_folder(self, session_id: Optional[str]) -> str:
        session = self.get(session_id)
        if session is None:
            raise Unauthorized()
        return session.user_folder

    def purge_expired(self) -> int:
        """Drop every expired session; returns how many were removed."""

        now = time.time()
        with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if session.is_expired(self.ttl_seconds, now)
            ]
            for sid in expired:
                del self._sessions[sid]

        if expired:
            logger.debug("Purged %d expired sessions", len(expired))
        return len(expired)

    def _live(self, session_id: Optional[str]) -> Optional[Session]:
        # caller holds the lock
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(self.ttl_seconds):
            del self._sessions[session_id]
            logger.info("Session expired for %s", session.username)
            return None
        return session


__all__ = ["SessionStore"]
