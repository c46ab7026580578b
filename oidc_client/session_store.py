"""
In-memory login sessions (session id -> verified profile). TTL to avoid unbounded growth.
Lab use only; one process, no persistence.
"""
import secrets
import threading
import time
from dataclasses import dataclass

from oidc_client.config import SESSION_TTL_SECONDS


@dataclass
class Session:
    profile: dict
    created_at: float

    def expired(self, ttl: float) -> bool:
        return (time.monotonic() - self.created_at) > ttl


class SessionStore:
    def __init__(self, ttl: float = SESSION_TTL_SECONDS):
        self.ttl = ttl
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, profile: dict) -> str:
        session_id = secrets.token_urlsafe(32)
        with self._lock:
            self._clean_expired()
            self._sessions[session_id] = Session(profile=profile, created_at=time.monotonic())
        return session_id

    def get(self, session_id: str | None) -> dict | None:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.expired(self.ttl):
                del self._sessions[session_id]
                return None
            return session.profile

    def delete(self, session_id: str | None) -> None:
        if not session_id:
            return
        with self._lock:
            self._sessions.pop(session_id, None)

    def _clean_expired(self) -> None:
        expired = [s for s, sess in self._sessions.items() if sess.expired(self.ttl)]
        for s in expired:
            del self._sessions[s]
