"""
Unsigned Transaction Schema Models

The unsigned transaction travels inside payment evidence. It carries every
input of the extrinsic signature payload so the server can rebuild the exact
extrinsic the client signed.
"""

from pydantic import ConfigDict, Field, field_validator

from .bases import CanonicalModel


_HEX_PATTERN = r"^0x[0-9a-fA-F]*$"


class MortalEra(CanonicalModel):
    """
    Mortality window of an extrinsic.

    The extrinsic is valid from block ``current`` until block
    ``current + period``; the ledger rejects it afterwards.

    Attributes:
        current: Block number the window is anchored at.
        period: Window length in blocks, a power of two in [4, 65536].
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    current: int = Field(..., ge=0, description="Anchor block number")
    period: int = Field(..., ge=4, le=65536, description="Window length in blocks")

    @field_validator("period")
    @classmethod
    def _power_of_two(cls, v: int) -> int:
        if v & (v - 1):
            raise ValueError(f"era period must be a power of two, got {v}")
        return v

    @property
    def expires_at(self) -> int:
        """Last block number at which the extrinsic can still be included."""
        return self.current + self.period

    def is_open(self, block_number: int) -> bool:
        return block_number <= self.expires_at

    def to_scale_era(self) -> dict:
        """Era in the shape ``substrate-interface`` expects."""
        return {"current": self.current, "period": self.period}


class UnsignedTransaction(CanonicalModel):
    """
    Unsigned, mortal balance transfer.

    ``dest`` and ``value`` restate the encoded ``method`` for readability;
    verifiers decode ``method`` and only trust the decoded call.

    Attributes:
        spec_version: Runtime spec version the call was encoded against.
        transaction_version: Runtime transaction version.
        address: Sender (payer) SS58 address.
        dest: Recipient SS58 address.
        value: Transferred amount in smallest units, as a decimal string.
        asset: Asset symbol (e.g. ``"VARA"``).
        nonce: Sender account index.
        era: Mortality window.
        block_hash: Hash of the block the era is anchored at.
        block_number: Number of that block.
        genesis_hash: Genesis hash of the target chain.
        method: Hex-encoded call.
        tip: Tip in smallest units.
        version: Extrinsic format version.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    spec_version: int = Field(..., alias="specVersion", ge=0)
    transaction_version: int = Field(..., alias="transactionVersion", ge=0)
    address: str = Field(..., min_length=1)
    dest: str = Field(..., min_length=1)
    value: str = Field(..., pattern=r"^[0-9]+$")
    asset: str = Field(..., min_length=1)
    nonce: int = Field(..., ge=0)
    era: MortalEra
    block_hash: str = Field(..., alias="blockHash", pattern=_HEX_PATTERN)
    block_number: int = Field(..., alias="blockNumber", ge=0)
    genesis_hash: str = Field(..., alias="genesisHash", pattern=_HEX_PATTERN)
    method: str = Field(..., pattern=_HEX_PATTERN)
    tip: int = Field(default=0, ge=0)
    version: int = Field(default=4, ge=0)
