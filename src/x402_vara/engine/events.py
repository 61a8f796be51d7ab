"""
Event-driven system with typed events and clear data flow.

Events carry their own data, handlers return next events, and dependencies
are injected separately from business data.

Gate flow:
    RequestInitEvent
        ├── Http402PaymentEvent                  (no evidence, bad evidence, bad session)
        ├── AuthorizationSuccessEvent            (valid session)
        └── EvidenceReceivedEvent
                ├── VerifySuccessEvent → AuthorizationSuccessEvent
                └── VerifyFailedEvent  → Http402PaymentEvent
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Callable, Optional, List, Awaitable, AsyncGenerator, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ..schemas.bases import VerificationOutcome, VerificationStatus
from ..schemas.https import PaymentEvidence, PaymentRequirement, Server402ResponsePayload
from ..sessions.schemas import SessionView

if TYPE_CHECKING:
    from ..adapters.registry import RequirementRegistry
    from ..facilitators.bases import Facilitator
    from ..sessions.stores import SessionStore

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Trigger Events (External) ====================

class RequestInitEvent(BaseModel, BaseEvent):
    """External trigger: a request reached a protected resource."""
    resource: str
    payment_header: Optional[str] = None
    session_id: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return (
            f"RequestInitEvent(resource={self.resource}, "
            f"payment={'***' if self.payment_header else None}, session={self.session_id})"
        )


# ==================== Result Events ====================

class Http402PaymentEvent(BaseModel, BaseEvent):
    """Result: payment required; the 402 response body."""
    error: str
    accepts: List[PaymentRequirement]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_payload(self) -> Server402ResponsePayload:
        return Server402ResponsePayload(error=self.error, accepts=self.accepts)

    def __repr__(self) -> str:
        return f"Http402PaymentEvent(error={self.error})"


class EvidenceReceivedEvent(BaseModel, BaseEvent):
    """Result: the payment header decoded into well-formed evidence."""
    evidence: PaymentEvidence
    requirement: PaymentRequirement

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"EvidenceReceivedEvent(signer={self.evidence.signer}, resource={self.requirement.resource})"


class VerifySuccessEvent(BaseModel, BaseEvent):
    """Result: payment verified and finalized."""
    outcome: VerificationOutcome
    requirement: PaymentRequirement

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"VerifySuccessEvent(tx_hash={self.outcome.tx_hash})"


class VerifyFailedEvent(BaseModel, BaseEvent):
    """Result: payment verification failed."""
    error_message: str
    status: VerificationStatus = VerificationStatus.UNKNOWN_ERROR
    requirement: PaymentRequirement

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"VerifyFailedEvent(error={self.error_message})"


class AuthorizationSuccessEvent(BaseModel, BaseEvent):
    """Result: the request may reach the resource handler.

    Either a fresh payment was settled (``tx_hash`` set) or a valid session
    was presented (``session`` set).
    """
    requirement: PaymentRequirement
    payer: Optional[str] = None
    tx_hash: Optional[str] = None
    session: Optional[SessionView] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"AuthorizationSuccessEvent(tx_hash={self.tx_hash}, session={self.session.id if self.session else None})"


class BreakEvent(BaseModel, BaseEvent):
    """Internal event to break the event chain."""
    break_reason: str = ""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return "BreakEvent()"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    registry: Optional["RequirementRegistry"] = None
    facilitator: Optional["Facilitator"] = None
    session_store: Optional["SessionStore"] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.

        Args:
            event_class: The event class to hook into.
            hook_func: The hook function to call when the event is published.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    async def run_hooks(self, event: BaseEvent, deps: Dependencies) -> None:
        """Run the hooks of ``event`` concurrently."""
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

    async def dispatch(
        self,
        event: BaseEvent,
        deps: Dependencies,
        with_hooks: bool = True,
    ) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.
        Hooks run first (concurrently), then all subscribers run in parallel.

        Args:
            event: The event to dispatch.
            deps: Dependencies container with injected services.
            with_hooks: False when the caller already ran the hooks.

        Yields:
            Results from all subscribers as they complete. Yields nothing if no subscribers are registered.
        """
        if with_hooks:
            await self.run_hooks(event, deps)

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            result = await coro
            yield result
