"""
x402 payments on Vara.

Gate HTTP resources behind Vara transfers (server) and pay for them
transparently (client) using HTTP 402 Payment Required.
"""

from .adapters import (
    AdapterHub,
    RequirementRegistry,
    SessionPolicy,
    ConnectionPool,
    LocalKeypairSigner,
    ExternalAgentSigner,
    AgentRegistry,
    HttpSigningAgent,
)
from .clients import Http402Client, PaymentFlow, PaymentState
from .facilitators import LedgerFacilitator, RemoteFacilitator, FacilitatorHub, create_facilitator_router
from .schemas import (
    PaymentEvidence,
    PaymentRequirement,
    Price,
    VerificationOutcome,
    VerificationStatus,
    encode_payment_header,
    decode_payment_header,
)
from .servers import Http402Server, PaymentContext, ServerConfig
from .sessions import InMemorySessionStore, SessionKind, SessionStore

__version__ = "0.1.0"

__all__ = [
    "AdapterHub",
    "RequirementRegistry",
    "SessionPolicy",
    "ConnectionPool",
    "LocalKeypairSigner",
    "ExternalAgentSigner",
    "AgentRegistry",
    "HttpSigningAgent",
    "Http402Client",
    "PaymentFlow",
    "PaymentState",
    "LedgerFacilitator",
    "RemoteFacilitator",
    "FacilitatorHub",
    "create_facilitator_router",
    "PaymentEvidence",
    "PaymentRequirement",
    "Price",
    "VerificationOutcome",
    "VerificationStatus",
    "encode_payment_header",
    "decode_payment_header",
    "Http402Server",
    "PaymentContext",
    "ServerConfig",
    "InMemorySessionStore",
    "SessionKind",
    "SessionStore",
]
