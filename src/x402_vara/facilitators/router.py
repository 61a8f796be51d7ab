"""
Facilitator HTTP surface.

Lets a server verify evidence on behalf of other servers:

    GET  /supported   networks and assets that can be settled
    POST /verify      {evidence, requirement} -> VerificationOutcome
"""

import logging

from fastapi import APIRouter

from ..schemas.bases import VerificationOutcome
from ..schemas.https import FacilitatorSupportedResponse, FacilitatorVerifyRequest
from .bases import Facilitator

logger = logging.getLogger(__name__)


def create_facilitator_router(facilitator: Facilitator) -> APIRouter:
    """
    Build the facilitator router around ``facilitator``.

    Example:
        app.include_router(create_facilitator_router(facilitator), prefix="/api/facilitator")
    """
    router = APIRouter()

    @router.get("/supported", response_model=FacilitatorSupportedResponse, response_model_by_alias=True)
    async def supported():
        return await facilitator.supported()

    @router.post("/verify", response_model=VerificationOutcome, response_model_by_alias=True)
    async def verify(request: FacilitatorVerifyRequest):
        logger.info("Facilitator verify for %s on %s", request.requirement.resource, request.requirement.network)
        return await facilitator.verify(request.evidence, request.requirement)

    return router
