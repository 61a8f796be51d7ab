"""
Remote facilitators.

``RemoteFacilitator`` posts evidence to ``{url}/verify`` of another service.
``FacilitatorHub`` picks, per requirement, the remote facilitator named in the
requirement or the local one.
"""

import logging
from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from ..schemas.bases import VerificationOutcome, VerificationStatus
from ..schemas.https import (
    FacilitatorSupportedResponse,
    FacilitatorVerifyRequest,
    PaymentEvidence,
    PaymentRequirement,
)
from .bases import Facilitator

logger = logging.getLogger(__name__)

#: Finalization takes several blocks; remote verification must outlast it.
DEFAULT_REMOTE_TIMEOUT: float = 180.0


class RemoteFacilitator(Facilitator):
    """
    Facilitator reached over HTTP.

    Args:
        url: Base URL of the facilitator (``/verify`` and ``/supported`` are appended).
        client: Optional shared ``httpx.AsyncClient``; one is created otherwise.
        timeout: Request timeout in seconds for the owned client.
    """

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_REMOTE_TIMEOUT,
    ):
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def verify(self, evidence: PaymentEvidence, requirement: PaymentRequirement) -> VerificationOutcome:
        body = FacilitatorVerifyRequest(evidence=evidence, requirement=requirement).to_dict()
        try:
            response = await self._client.post(f"{self.url}/verify", json=body)
        except httpx.HTTPError as e:
            logger.warning("Facilitator %s unreachable: %s", self.url, e)
            return VerificationOutcome.failure(
                VerificationStatus.CHAIN_UNAVAILABLE,
                f"Facilitator unreachable: {e}",
                payer=evidence.signer,
            )

        if not response.is_success:
            logger.warning("Facilitator %s answered %d", self.url, response.status_code)
            return VerificationOutcome.failure(
                VerificationStatus.UNKNOWN_ERROR,
                f"Facilitator answered {response.status_code}: {response.text[:200]}",
                payer=evidence.signer,
            )

        try:
            return VerificationOutcome.model_validate_json(response.content)
        except ValidationError as e:
            return VerificationOutcome.failure(
                VerificationStatus.UNKNOWN_ERROR,
                f"Invalid facilitator response: {e.error_count()} errors",
                payer=evidence.signer,
            )

    async def supported(self) -> FacilitatorSupportedResponse:
        """
        Raises:
            httpx.HTTPError: On transport failure or a non-2xx answer.
        """
        response = await self._client.get(f"{self.url}/supported")
        response.raise_for_status()
        return FacilitatorSupportedResponse.model_validate_json(response.content)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class FacilitatorHub(Facilitator):
    """
    Routes each verification to the facilitator of its requirement.

    Requirements with ``facilitator`` set go to a ``RemoteFacilitator`` for
    that URL (one per URL, created on first use); the rest go to ``local``.
    """

    def __init__(self, local: Facilitator, client: Optional[httpx.AsyncClient] = None):
        self.local = local
        self._client = client
        self._remotes: Dict[str, RemoteFacilitator] = {}

    def for_requirement(self, requirement: PaymentRequirement) -> Facilitator:
        if not requirement.facilitator:
            return self.local
        remote = self._remotes.get(requirement.facilitator)
        if remote is None:
            remote = RemoteFacilitator(requirement.facilitator, client=self._client)
            self._remotes[requirement.facilitator] = remote
        return remote

    async def verify(self, evidence: PaymentEvidence, requirement: PaymentRequirement) -> VerificationOutcome:
        facilitator = self.for_requirement(requirement)
        logger.debug("Verifying %s through %s", requirement.resource, type(facilitator).__name__)
        return await facilitator.verify(evidence, requirement)

    async def supported(self) -> FacilitatorSupportedResponse:
        return await self.local.supported()

    async def close(self) -> None:
        remotes, self._remotes = self._remotes, {}
        for remote in remotes.values():
            await remote.close()
        await self.local.close()
