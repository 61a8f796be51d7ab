"""
Access sessions issued after a verified payment.
"""

from .schemas import Session, SessionKind, SessionView, SessionValidation
from .stores import SessionStore, InMemorySessionStore, utc_now

__all__ = [
    "Session",
    "SessionKind",
    "SessionView",
    "SessionValidation",
    "SessionStore",
    "InMemorySessionStore",
    "utc_now",
]
