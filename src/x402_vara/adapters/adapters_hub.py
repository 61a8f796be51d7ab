"""
Adapter Hub - Unified Chain Adapter Gateway

Single entry point for payment operations. The hub looks up the chain family
of a requirement's network and delegates to the adapter of that family, so
callers never deal with chain-specific classes.

Architecture:
    AdapterHub (you are here)
        ├── ConnectionPool (shared chain connections)
        └── SubstrateAdapter (Vara mainnet / testnet)
"""

from typing import Dict, Optional

from ..engine.exceptions import ConfigurationError
from ..schemas.bases import VerificationOutcome, VerificationStatus
from ..schemas.https import PaymentEvidence, PaymentRequirement
from ..schemas.transactions import UnsignedTransaction
from .bases import AdapterFactory
from .substrate.adapter import SubstrateAdapter
from .substrate.constants import get_network_config
from .substrate.pool import ConnectionPool
from .substrate.signers import Signer


def get_adapter_type(network: str) -> Optional[str]:
    """
    Return the chain family of ``network`` (e.g. ``"substrate"``), or None if
    the network is unknown.
    """
    config = get_network_config(network)
    return config.type if config else None


class AdapterHub:
    """
    Unified chain adapter hub.

    Owns the connection pool shared by every adapter and routes each call by
    the network of the requirement.

    Args:
        pool: Connection pool; a new one is created when omitted.
        signer: Signer for the client role; None on verify-only servers.
    """

    def __init__(self, pool: Optional[ConnectionPool] = None, signer: Optional[Signer] = None):
        self.pool = pool if pool is not None else ConnectionPool()
        self._adapter_factories: Dict[str, AdapterFactory] = {
            "substrate": SubstrateAdapter(pool=self.pool, signer=signer),
        }

    def get_adapter(self, network: str) -> AdapterFactory:
        """
        Raises:
            ConfigurationError: If the network is unknown or has no adapter.
        """
        blockchain_type = get_adapter_type(network)
        if not blockchain_type:
            raise ConfigurationError(f"Unknown network: {network}")
        adapter = self._adapter_factories.get(blockchain_type)
        if not adapter:
            raise ConfigurationError(f"No adapter registered for blockchain type: {blockchain_type}")
        return adapter

    async def signature(self, requirement: PaymentRequirement) -> PaymentEvidence:
        """
        Build and sign payment evidence for ``requirement``.

        Raises:
            ConfigurationError, ChainUnavailableError, UnsupportedAssetError,
            SignerUnavailableError, UserRejectedError
        """
        return await self.get_adapter(requirement.network).signature(requirement)

    async def build_transaction(self, requirement: PaymentRequirement) -> UnsignedTransaction:
        return await self.get_adapter(requirement.network).build_transaction(requirement)

    async def sign_transaction(
        self,
        requirement: PaymentRequirement,
        unsigned: UnsignedTransaction,
    ) -> PaymentEvidence:
        return await self.get_adapter(requirement.network).sign_transaction(requirement, unsigned)

    async def verify(self, evidence: PaymentEvidence, requirement: PaymentRequirement) -> VerificationOutcome:
        """
        Verify and settle evidence. Never raises; an unknown network yields a
        failed outcome.
        """
        try:
            adapter = self.get_adapter(requirement.network)
        except ConfigurationError as e:
            return VerificationOutcome.failure(VerificationStatus.NETWORK_MISMATCH, str(e), payer=evidence.signer)
        return await adapter.verify_evidence(evidence, requirement)

    async def close(self) -> None:
        """Close every chain connection."""
        await self.pool.close()
