"""
HTTP Request/Response Schema Models for the x402 payment protocol

This module defines the pydantic models exchanged between client, server and
facilitator. The payment flow is:

1. Client requests a protected resource; server answers 402 with
   ``Server402ResponsePayload`` listing acceptable ``PaymentRequirement`` offers.
2. Client signs a transfer and retries with ``PaymentEvidence`` in the
   ``X-PAYMENT`` header.
3. Server verifies the evidence (directly or through a facilitator using
   ``FacilitatorVerifyRequest``), runs the handler and returns the settlement
   transaction hash in ``X-PAYMENT-RESPONSE``.
"""

from decimal import Decimal
from typing import Optional, List, Literal

from pydantic import ConfigDict, Field, field_validator

from .bases import CanonicalModel
from .transactions import UnsignedTransaction
from .versions import ProtocolVersion


X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
X_SESSION_ID_HEADER = "X-SESSION-ID"

#: Networks accepted in payment evidence.
Network = Literal["vara", "vara-testnet"]


# ============================================================================
# Step 1: Server's 402 Payment Required Response
# ============================================================================

class Price(CanonicalModel):
    """Price of a resource.

    Attributes:
        amount: Decimal amount in whole asset units; serialized as a string ("1.00").
        asset: Asset symbol, e.g. "VARA".
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    amount: Decimal = Field(..., ge=0, description="Price in whole asset units")
    asset: str = Field(..., min_length=1, description="Asset symbol")

    @field_validator("asset")
    @classmethod
    def _upper_asset(cls, v: str) -> str:
        return v.strip().upper()


class PaymentRequirement(CanonicalModel):
    """Server-declared price/network/payee tuple for one resource.

    Attributes:
        network: Network identifier (e.g. "vara-testnet").
        price: Amount and asset.
        resource: Identifier of the protected resource (route path).
        pay_to: Address that must receive the transfer.
        facilitator: Optional remote facilitator base URL; None means the
            server verifies against the ledger itself.
        description: Optional human-readable description.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network: str = Field(..., min_length=1, description="Network identifier")
    price: Price = Field(..., description="Required payment")
    resource: str = Field(..., description="Protected resource identifier")
    pay_to: str = Field(..., alias="payTo", min_length=1, description="Recipient address")
    facilitator: Optional[str] = Field(None, description="Remote facilitator base URL")
    description: Optional[str] = Field(None, description="Resource description")


class Server402ResponsePayload(CanonicalModel):
    """Body of a 402 Payment Required response.

    Attributes:
        x402_version: Protocol version.
        error: Why the request was not served (missing evidence, failed verification, ...).
        accepts: Acceptable payment offers. Clients take the first one.
    """
    x402_version: int = Field(default=ProtocolVersion.V1.value, alias="x402Version")
    error: Optional[str] = Field(None, description="Reason the resource was not served")
    accepts: List[PaymentRequirement] = Field(default_factory=list, description="Payment offers")


# ============================================================================
# Step 2: Client's payment evidence (X-PAYMENT header)
# ============================================================================

class PaymentEvidence(CanonicalModel):
    """Signed transaction plus signer/network metadata offered as proof of payment.

    Attributes:
        unsigned_transaction: The transaction the signature covers.
        signature: 0x-prefixed hex signature over the transaction payload.
        signer: SS58 address of the signer.
        network: Network the transaction targets.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    unsigned_transaction: UnsignedTransaction = Field(..., alias="unsignedTransaction")
    signature: str = Field(..., pattern=r"^0x[0-9a-fA-F]{2,}$")
    signer: str = Field(..., min_length=1)
    network: Network


# ============================================================================
# Facilitator API
# ============================================================================

class FacilitatorVerifyRequest(CanonicalModel):
    """Request body of ``POST {facilitator}/verify``."""
    evidence: PaymentEvidence
    requirement: PaymentRequirement


class SupportedAsset(CanonicalModel):
    symbol: str
    decimals: int


class SupportedNetwork(CanonicalModel):
    network: str
    name: str
    assets: List[SupportedAsset] = Field(default_factory=list)


class FacilitatorSupportedResponse(CanonicalModel):
    """Response body of ``GET {facilitator}/supported``."""
    x402_version: int = Field(default=ProtocolVersion.V1.value, alias="x402Version")
    networks: List[SupportedNetwork] = Field(default_factory=list)

