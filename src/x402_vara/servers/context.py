"""
Request context handed to protected route handlers.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from ..adapters.registry import SessionPolicy
from ..schemas.https import PaymentRequirement
from ..sessions.schemas import Session, SessionKind, SessionView
from ..sessions.stores import SessionStore

#: Policy used when a resource was registered without one.
DEFAULT_SESSION_POLICY = SessionPolicy(kind=SessionKind.TIME_BOUNDED, ttl_seconds=24 * 60 * 60)


@dataclass
class PaymentContext:
    """
    What the gate knows about an authorized request.

    Attributes:
        requirement: Requirement the request satisfied.
        payer: Paying address, for paid requests.
        tx_hash: Settlement extrinsic hash, for paid requests.
        session: Session presented instead of a payment, if any.
    """
    requirement: PaymentRequirement
    session_store: SessionStore
    policy: Optional[SessionPolicy] = None
    payer: Optional[str] = None
    tx_hash: Optional[str] = None
    session: Optional[SessionView] = None

    @property
    def paid(self) -> bool:
        return self.tx_hash is not None

    async def issue_session(
        self,
        kind: Optional[Union[SessionKind, str]] = None,
        ttl: Optional[Union[int, float, timedelta]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Session:
        """
        Issue a session for this payment.

        ``kind`` and ``ttl`` default to the resource's session policy. The
        payer, transaction hash and resource are stored in the payload.
        """
        policy = self.policy or DEFAULT_SESSION_POLICY
        data = {"resource": self.requirement.resource, "payer": self.payer, "txHash": self.tx_hash}
        data.update(payload or {})
        return await self.session_store.create(
            kind=kind or policy.kind,
            ttl=ttl if ttl is not None else policy.ttl_seconds,
            payload=data,
        )
