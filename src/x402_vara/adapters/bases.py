"""
Abstract Base Classes for Blockchain Adapters

Defines the two seams between the payment protocol and a ledger:

Core Classes:
    - ChainHandle: The chain RPC client as seen by the protocol. Exposes only
      the public operations the protocol needs (chain head, account index,
      runtime identity, call encoding, signature payload, submit and watch).
    - AdapterFactory: Protocol-level operations built on a chain handle
      (client-side evidence creation, server-side evidence verification).

Concrete implementations live in chain-family subpackages (``substrate``).
Tests substitute in-memory ChainHandle implementations.
"""

from abc import ABC, abstractmethod

from ..schemas.bases import VerificationOutcome
from ..schemas.https import PaymentEvidence, PaymentRequirement
from ..schemas.transactions import UnsignedTransaction
from .schemas import ChainHead, RuntimeInfo, DecodedTransfer, FinalizationResult


class ChainHandle(ABC):
    """
    Abstract connection to one network.

    All methods are coroutines. Implementations must raise
    ``ChainUnavailableError`` when the ledger cannot be reached and must not
    retry on their own.

    Attributes:
        network: Network identifier this handle is connected to.
    """

    network: str

    @abstractmethod
    async def head(self) -> ChainHead:
        """Return the current best block (number and hash)."""

    @abstractmethod
    async def account_nonce(self, address: str) -> int:
        """Return the next account index of ``address``, including pool transactions."""

    @abstractmethod
    async def runtime(self) -> RuntimeInfo:
        """Return runtime versions and genesis hash."""

    @abstractmethod
    async def encode_transfer(self, asset: str, dest: str, value: int) -> str:
        """
        Encode a transfer call of ``value`` smallest units to ``dest``.

        Returns:
            Hex-encoded call.

        Raises:
            UnsupportedAssetError: If the asset has no transfer call on this chain.
        """

    @abstractmethod
    async def decode_transfer(self, method: str) -> DecodedTransfer:
        """
        Decode a hex-encoded call into a transfer.

        Raises:
            VerificationFailedError: If the call is not a balance transfer.
        """

    @abstractmethod
    async def signature_payload(self, unsigned: UnsignedTransaction) -> bytes:
        """Return the canonical bytes a signer must sign for ``unsigned``."""

    @abstractmethod
    async def submit_and_watch(
        self,
        unsigned: UnsignedTransaction,
        signature: str,
        signer: str,
    ) -> FinalizationResult:
        """
        Submit the signed extrinsic and wait until its block is finalized.

        The finalization subscription ends as soon as a terminal status is
        seen.

        Returns:
            FinalizationResult classified from the events of the extrinsic.

        Raises:
            TransactionRejectedError: The ledger refused the extrinsic.
            ChainUnavailableError: Connectivity failure or finalization timeout.
        """

    @abstractmethod
    def normalize_address(self, address: str) -> str:
        """
        Return ``address`` re-encoded in this chain's SS58 format.

        Raises:
            ValueError: If ``address`` is not a valid SS58 address.
        """

    async def close(self) -> None:
        """Release the connection."""
        return None


class AdapterFactory(ABC):
    """
    Abstract Base Class for chain-family payment adapters.

    Client role:
        build_transaction(), sign_transaction(): build and sign a transfer
        satisfying a requirement, producing PaymentEvidence. signature()
        runs both.

    Server role:
        verify_evidence(): check evidence against a requirement and settle it
        on the ledger, producing a VerificationOutcome.

    Example Implementation:
        class SubstrateAdapter(AdapterFactory):
            async def build_transaction(self, requirement):
                chain = await self.pool.acquire(requirement.network)
                unsigned = await build_unsigned_transaction(chain, ...)
                ...
    """

    @abstractmethod
    async def build_transaction(self, requirement: PaymentRequirement) -> UnsignedTransaction:
        """
        Build the unsigned transfer satisfying a requirement.

        Raises:
            ChainUnavailableError, UnsupportedAssetError, SignerUnavailableError
        """

    @abstractmethod
    async def sign_transaction(
        self,
        requirement: PaymentRequirement,
        unsigned: UnsignedTransaction,
    ) -> PaymentEvidence:
        """
        Sign a built transaction and wrap it as evidence.

        Raises:
            SignerUnavailableError, UserRejectedError, ChainUnavailableError
        """

    async def signature(self, requirement: PaymentRequirement) -> PaymentEvidence:
        """Build and sign evidence for a requirement in one step."""
        unsigned = await self.build_transaction(requirement)
        return await self.sign_transaction(requirement, unsigned)

    @abstractmethod
    async def verify_evidence(
        self,
        evidence: PaymentEvidence,
        requirement: PaymentRequirement,
    ) -> VerificationOutcome:
        """
        Verify evidence against a requirement and wait for finalization.

        Should not raise; failures are reported in the returned outcome.
        """

    async def close(self) -> None:
        return None
