"""
Built-in event handlers for the x402 payment gate.

Implements the gate flow: session or evidence → verification → authorization,
with every refusal ending in a 402 payload.
"""

import logging

from ..engine.events import (
    BaseEvent,
    EventBus,
    Dependencies,
    RequestInitEvent,
    Http402PaymentEvent,
    EvidenceReceivedEvent,
    VerifySuccessEvent,
    VerifyFailedEvent,
    AuthorizationSuccessEvent,
)
from ..engine.exceptions import (
    MalformedEvidenceError,
    SessionAlreadyUsedError,
    SessionExpiredError,
    SessionNotFoundError,
    VerificationFailedError,
)
from ..schemas.codec import decode_payment_header

logger = logging.getLogger(__name__)

#: Session validation reasons to the error codes sent in 402 bodies.
SESSION_ERROR_CODES = {
    cls.reason: cls.code
    for cls in (SessionNotFoundError, SessionExpiredError, SessionAlreadyUsedError)
}

PAYMENT_HEADER_REQUIRED = "X-PAYMENT header is required"


# ==================== Event Handlers ====================

async def handle_request_init(
    event: RequestInitEvent,
    deps: Dependencies
) -> AuthorizationSuccessEvent | Http402PaymentEvent | EvidenceReceivedEvent:
    """Route a gated request: session path, missing evidence, or evidence decoding."""
    requirement = deps.registry.lookup(event.resource)
    if requirement is None:
        return Http402PaymentEvent(error=f"No payment requirement for {event.resource}", accepts=[])

    if event.session_id and not event.payment_header:
        validation = await deps.session_store.validate(event.session_id)
        if validation.valid:
            return AuthorizationSuccessEvent(requirement=requirement, session=validation.session)
        return Http402PaymentEvent(
            error=SESSION_ERROR_CODES.get(validation.error, f"Session{validation.error}"),
            accepts=[requirement],
        )

    if not event.payment_header:
        return Http402PaymentEvent(error=PAYMENT_HEADER_REQUIRED, accepts=[requirement])

    try:
        evidence = decode_payment_header(event.payment_header)
    except MalformedEvidenceError as e:
        return Http402PaymentEvent(error=f"{e.code}: {e}", accepts=[requirement])

    return EvidenceReceivedEvent(evidence=evidence, requirement=requirement)


async def handle_evidence_received(
    event: EvidenceReceivedEvent,
    deps: Dependencies
) -> VerifySuccessEvent | VerifyFailedEvent:
    """Verify the evidence; waits for finalization."""
    outcome = await deps.facilitator.verify(event.evidence, event.requirement)
    if outcome.is_success():
        return VerifySuccessEvent(outcome=outcome, requirement=event.requirement)
    return VerifyFailedEvent(
        error_message=f"{VerificationFailedError.code}: {outcome.get_error_message()}",
        status=outcome.status,
        requirement=event.requirement,
    )


async def handle_verify_success(
    event: VerifySuccessEvent,
    deps: Dependencies
) -> AuthorizationSuccessEvent:
    return AuthorizationSuccessEvent(
        requirement=event.requirement,
        payer=event.outcome.payer,
        tx_hash=event.outcome.tx_hash,
    )


async def handle_verify_failed(
    event: VerifyFailedEvent,
    deps: Dependencies
) -> Http402PaymentEvent:
    return Http402PaymentEvent(error=event.error_message, accepts=[event.requirement])


async def log_event(event: BaseEvent, deps: Dependencies) -> None:
    logger.debug("%r", event)


async def log_decision(event: BaseEvent, deps: Dependencies) -> None:
    if isinstance(event, Http402PaymentEvent):
        logger.info("402 for %s: %s", ", ".join(r.resource for r in event.accepts) or "-", event.error)
    elif isinstance(event, AuthorizationSuccessEvent):
        logger.info(
            "Authorized %s (%s)",
            event.requirement.resource,
            f"tx {event.tx_hash}" if event.tx_hash else f"session {event.session.id}",
        )


# ==================== Event Bus Setup ====================

def setup_event_bus() -> EventBus:
    """Initialize event bus with built-in handlers and logging hooks."""
    event_bus = EventBus()

    event_bus.subscribe(RequestInitEvent, handle_request_init)
    event_bus.subscribe(EvidenceReceivedEvent, handle_evidence_received)
    event_bus.subscribe(VerifySuccessEvent, handle_verify_success)
    event_bus.subscribe(VerifyFailedEvent, handle_verify_failed)

    for event_class in (
        RequestInitEvent,
        EvidenceReceivedEvent,
        VerifySuccessEvent,
        VerifyFailedEvent,
    ):
        event_bus.hook(event_class, log_event)
    event_bus.hook(Http402PaymentEvent, log_decision)
    event_bus.hook(AuthorizationSuccessEvent, log_decision)

    return event_bus
