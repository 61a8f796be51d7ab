"""
Session Stores

``SessionStore`` is the interface the server talks to; ``InMemorySessionStore``
keeps sessions in a dict for the lifetime of the process. Expiry is evaluated
lazily on each lookup and sessions are never deleted.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from ..engine.exceptions import (
    SessionAlreadyUsedError,
    SessionExpiredError,
    SessionNotFoundError,
)
from .schemas import Session, SessionKind, SessionValidation

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """Storage and validation of access sessions."""

    @abstractmethod
    async def create(
        self,
        kind: Union[SessionKind, str],
        ttl: Union[int, float, timedelta],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Session:
        """
        Issue a new session.

        Args:
            kind: ``"time-bounded"`` or ``"single-use"``.
            ttl: Lifetime in seconds, or a timedelta.
            payload: Opaque data stored with the session.

        Raises:
            ValueError: On an unknown kind or a non-positive ttl.
        """

    @abstractmethod
    async def get(self, session_id: str) -> Session:
        """
        Return a snapshot of the session. Does not consume it.

        Raises:
            SessionNotFoundError: If no session has this id.
        """

    @abstractmethod
    async def validate(self, session_id: str) -> SessionValidation:
        """
        Check whether the session grants access, consuming single-use
        sessions. Never raises for an invalid session.
        """

    @abstractmethod
    async def list_active(self) -> List[Session]:
        """Sessions that are neither expired nor consumed."""


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.

    All reads and writes go through one lock, so the check of a single-use
    session and its consumption happen in a single critical section.

    Args:
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or utc_now
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    async def create(
        self,
        kind: Union[SessionKind, str],
        ttl: Union[int, float, timedelta],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Session:
        kind = SessionKind(kind)
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

        now = self._clock()
        session = Session(
            id=str(uuid.uuid4()),
            kind=kind,
            created_at=now,
            expires_at=now + ttl,
            payload=dict(payload or {}),
        )
        with self._lock:
            self._sessions[session.id] = session
        logger.info("Issued %s session %s (expires %s)", kind.value, session.id, session.expires_at.isoformat())
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return session.model_copy(deep=True)

    async def validate(self, session_id: str) -> SessionValidation:
        with self._lock:
            now = self._clock()
            session = self._sessions.get(session_id)
            if session is None:
                return SessionValidation(valid=False, error=SessionNotFoundError.reason)
            if session.is_expired(now):
                return SessionValidation(valid=False, error=SessionExpiredError.reason, session=session.view(now))
            if session.is_consumed():
                return SessionValidation(valid=False, error=SessionAlreadyUsedError.reason, session=session.view(now))

            if session.kind == SessionKind.SINGLE_USE:
                session.used = True
            return SessionValidation(valid=True, session=session.view(now))

    async def list_active(self) -> List[Session]:
        with self._lock:
            now = self._clock()
            return [s.model_copy(deep=True) for s in self._sessions.values() if s.is_active(now)]

    def __len__(self) -> int:
        return len(self._sessions)
