"""
Chain Handle Schema Models

Chain-level results passed between the chain handle and the adapter. These
never travel over HTTP.
"""

from typing import Optional

from pydantic import Field

from ..schemas.bases import CanonicalModel


class ChainHead(CanonicalModel):
    """Current best block."""
    number: int = Field(..., ge=0)
    hash: str


class RuntimeInfo(CanonicalModel):
    """Runtime identity stamped into every transaction."""
    spec_version: int = Field(..., alias="specVersion")
    transaction_version: int = Field(..., alias="transactionVersion")
    genesis_hash: str = Field(..., alias="genesisHash")


class DecodedTransfer(CanonicalModel):
    """Balance transfer decoded from an encoded call.

    Attributes:
        module: Pallet name (e.g. ``"Balances"``).
        function: Call name (e.g. ``"transfer_keep_alive"``).
        dest: Recipient SS58 address in the chain's format.
        value: Amount in smallest units.
    """
    module: str
    function: str
    dest: str
    value: int = Field(..., ge=0)


class FinalizationResult(CanonicalModel):
    """Classification of a finalized extrinsic.

    Attributes:
        success: True when ``System.ExtrinsicSuccess`` was emitted.
        tx_hash: Extrinsic hash.
        block_hash: Hash of the finalized block.
        message: Human-readable outcome, including the decoded dispatch error.
    """
    success: bool
    tx_hash: Optional[str] = Field(None, alias="txHash")
    block_hash: Optional[str] = Field(None, alias="blockHash")
    message: Optional[str] = None
