"""
Facilitator Verifiers

A facilitator turns payment evidence into a ``VerificationOutcome``. The
ledger facilitator settles directly on chain through the adapter hub; remote
facilitators (see ``remote.py``) delegate to another service speaking the
same evidence shape.
"""

from abc import ABC, abstractmethod

from ..adapters.adapters_hub import AdapterHub
from ..adapters.substrate.constants import NETWORKS
from ..schemas.bases import VerificationOutcome
from ..schemas.https import (
    FacilitatorSupportedResponse,
    PaymentEvidence,
    PaymentRequirement,
    SupportedAsset,
    SupportedNetwork,
)


def supported_networks() -> FacilitatorSupportedResponse:
    """Networks and assets this package can settle."""
    return FacilitatorSupportedResponse(
        networks=[
            SupportedNetwork(
                network=config.network,
                name=config.name,
                assets=[
                    SupportedAsset(symbol=asset.symbol, decimals=asset.decimals)
                    for asset in config.assets.values()
                ],
            )
            for config in NETWORKS.values()
        ]
    )


class Facilitator(ABC):
    """Verifies payment evidence against a requirement."""

    @abstractmethod
    async def verify(self, evidence: PaymentEvidence, requirement: PaymentRequirement) -> VerificationOutcome:
        """
        Verify and settle ``evidence``.

        May wait several block intervals for finalization. Failures are
        returned as unsuccessful outcomes, never raised.
        """

    async def supported(self) -> FacilitatorSupportedResponse:
        return supported_networks()

    async def close(self) -> None:
        return None


class LedgerFacilitator(Facilitator):
    """Settles evidence directly on the ledger."""

    def __init__(self, hub: AdapterHub):
        self.hub = hub

    async def verify(self, evidence: PaymentEvidence, requirement: PaymentRequirement) -> VerificationOutcome:
        return await self.hub.verify(evidence, requirement)

    async def close(self) -> None:
        await self.hub.close()
