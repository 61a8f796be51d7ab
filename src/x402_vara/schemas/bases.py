"""
Base Schema Models for the x402 Vara payment protocol

This module defines the base classes every wire model inherits from, plus the
verification result shared by local and remote facilitators.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization
    - VerificationStatus: Enumeration of verification outcomes
    - VerificationOutcome: Result of submitting payment evidence

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    The JSON representation is deterministic (sorted keys, no extra
    whitespace, field aliases), so encoding the same model twice yields the
    same bytes. The evidence codec relies on this.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json", by_alias=True)`` turns Decimals, enums and
        nested models into plain JSON types using wire names; ``json.dumps``
        with sorted keys and compact separators fixes the layout.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to its JSON-compatible wire dictionary.

        Returns:
            Dict[str, Any]: Dictionary keyed by field aliases.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VerificationStatus(str, Enum):
    """
    Enumeration of possible verification result statuses.

    Attributes:
        SUCCESS: Transfer finalized and matches the requirement
        NETWORK_MISMATCH: Evidence targets another network or genesis
        INVALID_SIGNATURE: Signer does not match the transaction sender
        WRONG_RECIPIENT: Transfer destination is not the pay-to address
        INSUFFICIENT_AMOUNT: Transferred value is below the price
        UNSUPPORTED_ASSET: Asset cannot be settled on this network
        EXPIRED: Mortality window already closed
        REJECTED: Ledger refused the extrinsic before inclusion
        DISPATCH_ERROR: Extrinsic was included but failed to dispatch
        CHAIN_UNAVAILABLE: Ledger or remote facilitator unreachable
        UNKNOWN_ERROR: Unexpected error during verification
    """
    SUCCESS = "success"
    NETWORK_MISMATCH = "network_mismatch"
    INVALID_SIGNATURE = "invalid_signature"
    WRONG_RECIPIENT = "wrong_recipient"
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    UNSUPPORTED_ASSET = "unsupported_asset"
    EXPIRED = "expired"
    REJECTED = "rejected"
    DISPATCH_ERROR = "dispatch_error"
    CHAIN_UNAVAILABLE = "chain_unavailable"
    UNKNOWN_ERROR = "unknown_error"


class VerificationOutcome(CanonicalModel):
    """
    Result of submitting payment evidence to a ledger or a facilitator.

    Produced once per evidence submission and never retried automatically.

    Attributes:
        success: Whether the payment was finalized and satisfies the requirement
        status: Detailed verification status
        tx_hash: Extrinsic hash, when the transaction reached the ledger
        block_hash: Hash of the finalized block containing the extrinsic
        reason: Human-readable explanation (always set on failure)
        payer: Address that paid
    """

    success: bool = Field(..., description="Whether verification succeeded")
    status: VerificationStatus = Field(..., description="Verification result status")
    tx_hash: Optional[str] = Field(None, alias="txHash", description="Settlement extrinsic hash")
    block_hash: Optional[str] = Field(None, alias="blockHash", description="Finalized block hash")
    reason: Optional[str] = Field(None, description="Human-readable status message")
    payer: Optional[str] = Field(None, description="Paying address")

    @classmethod
    def failure(
        cls,
        status: VerificationStatus,
        reason: str,
        **kwargs: Any,
    ) -> "VerificationOutcome":
        """Build a failed outcome."""
        return cls(success=False, status=status, reason=reason, **kwargs)

    def is_success(self) -> bool:
        """
        Check if verification was successful.

        Returns:
            bool: True only when ``success`` is set and the status agrees.
        """
        return self.success and self.status == VerificationStatus.SUCCESS

    def get_error_message(self) -> Optional[str]:
        """
        Get the failure reason, or None for a successful outcome.
        """
        if self.is_success():
            return None
        return self.reason or self.status.value
