"""
Session Schema Models

A session is the access grant a payer receives after a verified payment:
either time-bounded (any number of uses until it expires) or single-use
(one successful validation, then consumed).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from ..schemas.bases import CanonicalModel


class SessionKind(str, Enum):
    TIME_BOUNDED = "time-bounded"
    SINGLE_USE = "single-use"


class Session(CanonicalModel):
    """
    Stored access grant.

    Attributes:
        id: Opaque unique identifier (uuid4).
        kind: Time-bounded or single-use.
        created_at: Issue time (UTC).
        expires_at: Expiry time (UTC); the session is expired when ``now > expires_at``.
        used: Consumed flag, meaningful for single-use sessions only.
        payload: Opaque data attached by the issuer (payer, tx hash, ...).
    """

    id: str
    kind: SessionKind
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")
    used: bool = False
    payload: Dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_consumed(self) -> bool:
        return self.kind == SessionKind.SINGLE_USE and self.used

    def is_active(self, now: datetime) -> bool:
        return not self.is_expired(now) and not self.is_consumed()

    def view(self, now: Optional[datetime] = None) -> "SessionView":
        """
        Public representation of the session.

        ``remainingTime`` (milliseconds) is included when ``now`` is given and
        the session has not expired.
        """
        remaining = None
        if now is not None and not self.is_expired(now):
            remaining = int((self.expires_at - now).total_seconds() * 1000)
        return SessionView(
            id=self.id,
            kind=self.kind,
            created_at=self.created_at,
            expires_at=self.expires_at,
            used=self.used if self.kind == SessionKind.SINGLE_USE else None,
            remaining_time=remaining,
        )


class SessionView(CanonicalModel):
    """Session as exposed over HTTP."""

    id: str
    kind: SessionKind
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")
    used: Optional[bool] = None
    remaining_time: Optional[int] = Field(None, alias="remainingTime", description="Milliseconds until expiry")


class SessionValidation(CanonicalModel):
    """
    Result of validating a session id.

    Attributes:
        valid: Whether access is granted.
        error: ``"NotFound"``, ``"Expired"`` or ``"AlreadyUsed"`` when invalid.
        session: The session as seen at validation time, when it exists.
    """

    valid: bool
    error: Optional[str] = None
    session: Optional[SessionView] = None
