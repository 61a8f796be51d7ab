"""
Client payment flow state machine.

One ``PaymentFlow`` tracks one logical request through the 402 exchange:

    Idle → AwaitingResponse → Done
                            → BuildingEvidence → Signing → Retrying → Done
                                               ↘          ↘          ↘ Failed

Every non-terminal state can move to ``Failed``. ``Done`` and ``Failed`` are
terminal.
"""

from enum import Enum
from typing import List, Optional

from ..engine.exceptions import InvalidTransition
from ..schemas.https import PaymentEvidence, PaymentRequirement


class PaymentState(str, Enum):
    IDLE = "Idle"
    AWAITING_RESPONSE = "AwaitingResponse"
    BUILDING_EVIDENCE = "BuildingEvidence"
    SIGNING = "Signing"
    RETRYING = "Retrying"
    DONE = "Done"
    FAILED = "Failed"


_TRANSITIONS = {
    PaymentState.IDLE: {PaymentState.AWAITING_RESPONSE, PaymentState.FAILED},
    PaymentState.AWAITING_RESPONSE: {PaymentState.DONE, PaymentState.BUILDING_EVIDENCE, PaymentState.FAILED},
    PaymentState.BUILDING_EVIDENCE: {PaymentState.SIGNING, PaymentState.FAILED},
    PaymentState.SIGNING: {PaymentState.RETRYING, PaymentState.FAILED},
    PaymentState.RETRYING: {PaymentState.DONE, PaymentState.FAILED},
    PaymentState.DONE: set(),
    PaymentState.FAILED: set(),
}


class PaymentFlow:
    """
    State of one logical request.

    Attributes:
        state: Current state.
        history: Every state visited, in order.
        requirement: Requirement chosen from the 402 offers.
        evidence: Evidence attached to the retry.
        error: Exception that failed the flow.
        requests_sent: Number of HTTP requests sent (at most 2).
    """

    def __init__(self):
        self.state = PaymentState.IDLE
        self.history: List[PaymentState] = [PaymentState.IDLE]
        self.requirement: Optional[PaymentRequirement] = None
        self.evidence: Optional[PaymentEvidence] = None
        self.error: Optional[Exception] = None
        self.requests_sent = 0

    def transition(self, target: PaymentState) -> None:
        """
        Raises:
            InvalidTransition: If ``target`` is not reachable from the current state.
        """
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.transition(PaymentState.FAILED)

    @property
    def terminal(self) -> bool:
        return self.state in (PaymentState.DONE, PaymentState.FAILED)

    @property
    def paid(self) -> bool:
        return self.evidence is not None

    def __repr__(self) -> str:
        return f"PaymentFlow(state={self.state.value}, requests_sent={self.requests_sent})"
