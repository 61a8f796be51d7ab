"""
X402 Payment Protocol Server - Event-driven FastAPI wrapper.

Provides a simple interface for gating FastAPI routes behind Vara payments
with typed events.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from ..adapters.adapters_hub import AdapterHub
from ..adapters.registry import RequirementRegistry, SessionPolicy
from ..engine.events import (
    EventBus,
    Dependencies,
    BaseEvent,
    RequestInitEvent,
    Http402PaymentEvent,
    AuthorizationSuccessEvent,
)
from ..engine.exceptions import ConfigurationError, SessionNotFoundError
from ..engine.executors import EventChain
from ..facilitators.bases import Facilitator, LedgerFacilitator
from ..facilitators.remote import FacilitatorHub
from ..facilitators.router import create_facilitator_router
from ..schemas.https import PaymentRequirement, X_PAYMENT_HEADER, X_PAYMENT_RESPONSE_HEADER, X_SESSION_ID_HEADER
from ..sessions.stores import InMemorySessionStore, SessionStore
from .config import ServerConfig
from .context import PaymentContext
from .flows import setup_event_bus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: "Http402Server"):
    yield
    await app.aclose()


class Http402Server(FastAPI):
    """FastAPI server with x402 payment gating on Vara."""

    def __init__(
        self,
        pay_to: Optional[str] = None,
        network: str = "vara-testnet",
        facilitator_url: Optional[str] = None,
        adapter_hub: Optional[AdapterHub] = None,
        facilitator: Optional[Facilitator] = None,
        session_store: Optional[SessionStore] = None,
        registry: Optional[RequirementRegistry] = None,
        free_endpoints: bool = True,
        facilitator_prefix: Optional[str] = None,
        **fastapi_kwargs
    ):
        """Initialize the payment server.

        Args:
            pay_to: Default recipient address of registered resources
            network: Default network of registered resources (default: vara-testnet)
            facilitator_url: Default remote facilitator; None verifies on the ledger directly
            adapter_hub: Chain adapter hub (default: new instance)
            facilitator: Verifier (default: FacilitatorHub over the ledger)
            session_store: Session store (default: in-memory)
            registry: Requirement registry (default: empty)
            free_endpoints: Serve /api/health, /api/payment-options and session endpoints
            facilitator_prefix: Serve ledger verification for other servers at this
                prefix (e.g. /api/facilitator)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.pay_to = pay_to
        self.network = network
        self.facilitator_url = facilitator_url
        self.adapter_hub = adapter_hub if adapter_hub is not None else AdapterHub()
        if facilitator is None:
            facilitator = FacilitatorHub(LedgerFacilitator(self.adapter_hub))
        self.facilitator = facilitator
        self.session_store = session_store if session_store is not None else InMemorySessionStore()
        self.registry = registry if registry is not None else RequirementRegistry()
        self.depends = Dependencies(
            registry=self.registry,
            facilitator=self.facilitator,
            session_store=self.session_store,
        )
        self.event_bus: EventBus = setup_event_bus()

        fastapi_kwargs.setdefault("lifespan", _lifespan)
        super().__init__(**fastapi_kwargs)

        if free_endpoints:
            self._setup_free_endpoints()
        if facilitator_prefix:
            self.include_router(
                create_facilitator_router(LedgerFacilitator(self.adapter_hub)),
                prefix=facilitator_prefix,
            )

    @classmethod
    def from_config(cls, config: ServerConfig, **kwargs) -> "Http402Server":
        return cls(
            pay_to=config.pay_to,
            network=config.network,
            facilitator_url=config.facilitator_url,
            **kwargs
        )

    async def aclose(self) -> None:
        """Close facilitator and chain connections."""
        await self.facilitator.close()

    # =========================================================================
    # Requirements
    # =========================================================================

    def add_protected_resource(
        self,
        resource: str,
        amount: Union[Decimal, str, int],
        asset: str = "VARA",
        description: Optional[str] = None,
        session: Optional[SessionPolicy] = None,
        network: Optional[str] = None,
        pay_to: Optional[str] = None,
        facilitator: Optional[str] = None,
    ) -> PaymentRequirement:
        """Register the price of a resource.

        Network, recipient and facilitator default to the server's settings.

        Raises:
            ConfigurationError: If no recipient address is known
            ValueError: If the resource is already registered or the price is invalid
        """
        pay_to = pay_to or self.pay_to
        if not pay_to:
            raise ConfigurationError("A pay_to address is required to protect a resource")
        return self.registry.register(
            resource,
            amount=amount,
            asset=asset,
            network=network or self.network,
            pay_to=pay_to,
            facilitator=facilitator or self.facilitator_url,
            description=description,
            session=session,
        )

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, event_class: type[BaseEvent], handler: Callable) -> None:
        """Register event handler.

        Args:
            event_class: Event type to handle
            handler: Async function(event, deps) -> Optional[BaseEvent]
        """
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Example:
            ```python
            async def audit(event, deps):
                await store_receipt(event.tx_hash)

            app.add_hook(AuthorizationSuccessEvent, audit)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(VerifyFailedEvent)
            async def on_failed(event, deps):
                metrics.failed_payments += 1
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    # =========================================================================
    # Gate
    # =========================================================================

    def payment_required(
        self,
        resource: Optional[str] = None,
        *,
        amount: Optional[Union[Decimal, str, int]] = None,
        asset: str = "VARA",
        description: Optional[str] = None,
        session: Optional[SessionPolicy] = None,
    ) -> Callable:
        """Decorator protecting a route with payment verification.

        The handler receives a ``PaymentContext`` as first argument (and the
        ``Request`` if it declares a ``request`` parameter). It runs only after
        the payment was verified or a valid session was presented; otherwise
        the client gets a 402. When ``amount`` is given the resource is
        registered here, otherwise it must have been registered with
        ``add_protected_resource``. ``resource`` defaults to the request path.

        Example:
            ```python
            @app.get("/api/pay/hello")
            @app.payment_required("/api/pay/hello", amount="0.10")
            async def hello(payment: PaymentContext):
                return {"hello": "world", "txHash": payment.tx_hash}
            ```
        """
        if amount is not None:
            if resource is None:
                raise ValueError("resource is required when registering a price")
            self.add_protected_resource(resource, amount, asset=asset, description=description, session=session)

        def decorator(route_handler: Callable) -> Callable:
            wants_request = "request" in inspect.signature(route_handler).parameters

            async def wrapper(request: Request):
                event_chain = EventChain(self.event_bus, self.depends)
                executor = event_chain.execute(
                    initial_event=RequestInitEvent(
                        resource=resource or request.url.path,
                        payment_header=request.headers.get(X_PAYMENT_HEADER),
                        session_id=request.headers.get(X_SESSION_ID_HEADER),
                    )
                )
                async for event in executor:
                    if isinstance(event, Http402PaymentEvent):
                        return JSONResponse(status_code=402, content=event.to_payload().to_dict())

                    if isinstance(event, AuthorizationSuccessEvent):
                        context = PaymentContext(
                            requirement=event.requirement,
                            session_store=self.session_store,
                            policy=self.registry.policy(event.requirement.resource),
                            payer=event.payer,
                            tx_hash=event.tx_hash,
                            session=event.session,
                        )
                        kwargs = {"request": request} if wants_request else {}
                        result = await route_handler(context, **kwargs)
                        return self._render(result, context)

                return JSONResponse(status_code=500, content={"error": "Payment gate reached no decision"})

            wrapper.__name__ = route_handler.__name__
            wrapper.__doc__ = route_handler.__doc__
            return wrapper

        return decorator

    @staticmethod
    def _render(result: Any, context: PaymentContext) -> Response:
        if isinstance(result, Response):
            response = result
        elif isinstance(result, BaseModel):
            response = JSONResponse(content=result.model_dump(mode="json", by_alias=True))
        else:
            response = JSONResponse(content=jsonable_encoder(result))

        if context.tx_hash:
            response.headers[X_PAYMENT_RESPONSE_HEADER] = context.tx_hash
        return response

    # =========================================================================
    # Free endpoints
    # =========================================================================

    def _setup_free_endpoints(self) -> None:
        @self.get("/api/health")
        async def health():
            return {
                "status": "ok",
                "message": "Server is running",
                "config": {
                    "network": self.network,
                    "payTo": self.pay_to,
                    "facilitator": self.facilitator_url,
                },
            }

        @self.get("/api/payment-options")
        async def payment_options():
            return {
                "options": [
                    {
                        "endpoint": requirement.resource,
                        "price": f"{requirement.price.amount} {requirement.price.asset}",
                        "network": requirement.network,
                        "description": requirement.description,
                        **_policy_summary(self.registry.policy(requirement.resource)),
                    }
                    for requirement in self.registry.list()
                ]
            }

        @self.get("/api/session/{session_id}")
        async def session_status(session_id: str):
            validation = await self.session_store.validate(session_id)
            status_code = 404 if validation.error == SessionNotFoundError.reason else 200
            return JSONResponse(status_code=status_code, content=validation.to_dict())

        @self.get("/api/sessions")
        async def active_sessions():
            sessions = await self.session_store.list_active()
            return {"sessions": [session.view().to_dict() for session in sessions]}


def _policy_summary(policy: Optional[SessionPolicy]) -> dict:
    if policy is None:
        return {}
    return {
        "session": policy.kind.value,
        "validFor": str(timedelta(seconds=policy.ttl_seconds)),
    }
