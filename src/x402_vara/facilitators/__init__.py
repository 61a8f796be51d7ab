from .bases import Facilitator, LedgerFacilitator, supported_networks
from .remote import RemoteFacilitator, FacilitatorHub
from .router import create_facilitator_router

__all__ = [
    "Facilitator",
    "LedgerFacilitator",
    "supported_networks",
    "RemoteFacilitator",
    "FacilitatorHub",
    "create_facilitator_router",
]
