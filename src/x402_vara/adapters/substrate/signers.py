"""
Substrate Transaction Signers

Two signing capabilities share the ``Signer`` interface:

LocalKeypairSigner
    Holds an sr25519 ``Keypair`` in-process and signs the chain's canonical
    signature payload directly.

ExternalAgentSigner
    Delegates to a ``SigningAgent`` (browser extension bridge, hardware
    wallet, remote signer) registered for the payer address in an
    ``AgentRegistry``. ``HttpSigningAgent`` reaches an out-of-process agent
    over HTTP.

Every signer returns a 0x-prefixed hex signature.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from substrateinterface import Keypair

from ...engine.exceptions import SignerUnavailableError, UserRejectedError
from ...schemas.transactions import UnsignedTransaction
from ..bases import ChainHandle
from .constants import get_mnemonic_from_env, get_network_config

logger = logging.getLogger(__name__)

#: SS58 prefix used when no network is given.
VARA_SS58_FORMAT: int = 137


def _to_hex(data: bytes) -> str:
    return "0x" + data.hex()


class Signer(ABC):
    """
    Signing capability for unsigned transactions.

    Attributes:
        address: SS58 address of the account that signs.
    """

    address: str

    @abstractmethod
    async def sign(self, unsigned: UnsignedTransaction, chain: ChainHandle) -> str:
        """
        Sign ``unsigned`` as it will be submitted to ``chain``.

        Returns:
            0x-prefixed hex signature.

        Raises:
            SignerUnavailableError: The signing capability cannot be reached.
            UserRejectedError: The holder of the key declined.
        """


class LocalKeypairSigner(Signer):
    """
    Sign with an in-process sr25519 keypair.

    Example:
        signer = LocalKeypairSigner.from_uri("//Alice")
        signature = await signer.sign(unsigned, chain)
    """

    def __init__(self, keypair: Keypair):
        self.keypair = keypair
        self.address = keypair.ss58_address

    @classmethod
    def from_uri(cls, uri: str, ss58_format: int = VARA_SS58_FORMAT) -> "LocalKeypairSigner":
        """Create from a secret URI such as ``//Alice`` or ``<mnemonic>//hard/soft``."""
        return cls(Keypair.create_from_uri(uri, ss58_format=ss58_format))

    @classmethod
    def from_mnemonic(cls, mnemonic: str, ss58_format: int = VARA_SS58_FORMAT) -> "LocalKeypairSigner":
        return cls(Keypair.create_from_mnemonic(mnemonic, ss58_format=ss58_format))

    @classmethod
    def from_env(cls, network: str = "vara-testnet") -> "LocalKeypairSigner":
        """
        Create from ``VARA_MNEMONIC`` (a mnemonic or secret URI).

        Raises:
            SignerUnavailableError: If ``VARA_MNEMONIC`` is not set.
        """
        secret = get_mnemonic_from_env()
        if not secret:
            raise SignerUnavailableError("VARA_MNEMONIC is not set")
        config = get_network_config(network)
        ss58_format = config.ss58_format if config else VARA_SS58_FORMAT
        return cls.from_uri(secret, ss58_format=ss58_format)

    async def sign(self, unsigned: UnsignedTransaction, chain: ChainHandle) -> str:
        payload = await chain.signature_payload(unsigned)
        return _to_hex(self.keypair.sign(payload))


class SigningAgent(ABC):
    """An out-of-process holder of signing keys."""

    @abstractmethod
    async def sign_payload(self, address: str, request: Dict[str, Any]) -> str:
        """
        Ask the agent to sign ``request["payload"]`` for ``address``.

        Returns:
            0x-prefixed hex signature.

        Raises:
            SignerUnavailableError, UserRejectedError
        """


class AgentRegistry:
    """Maps payer addresses to the agents able to sign for them."""

    def __init__(self):
        self._agents: Dict[str, SigningAgent] = {}

    def register(self, address: str, agent: SigningAgent) -> None:
        self._agents[address] = agent

    def unregister(self, address: str) -> None:
        self._agents.pop(address, None)

    def get(self, address: str) -> SigningAgent:
        """
        Raises:
            SignerUnavailableError: If no agent is registered for ``address``.
        """
        agent = self._agents.get(address)
        if agent is None:
            raise SignerUnavailableError(f"No signing agent registered for {address}")
        return agent


class ExternalAgentSigner(Signer):
    """
    Sign through the agent registered for ``address``.

    The agent receives the hex signature payload together with the readable
    transaction so it can show the user what is being approved.
    """

    def __init__(self, address: str, agents: AgentRegistry):
        self.address = address
        self.agents = agents

    async def sign(self, unsigned: UnsignedTransaction, chain: ChainHandle) -> str:
        agent = self.agents.get(self.address)
        payload = await chain.signature_payload(unsigned)
        request = {
            "address": self.address,
            "network": chain.network,
            "payload": _to_hex(payload),
            "transaction": unsigned.to_dict(),
        }
        signature = await agent.sign_payload(self.address, request)
        if not isinstance(signature, str) or not signature.startswith("0x"):
            raise SignerUnavailableError(f"Agent returned an invalid signature: {signature!r}")
        return signature


class HttpSigningAgent(SigningAgent):
    """
    Signing agent reached over HTTP.

    ``POST {url}`` with the signing request as JSON. A 2xx ``{"signature": ...}``
    is a signature; 401/403 or ``{"rejected": true}`` means the user declined.

    Args:
        url: Endpoint of the agent.
        client: Optional shared ``httpx.AsyncClient``.
        timeout: Request timeout in seconds, used when no client is given.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 120.0):
        self.url = url
        self._client = client
        self._timeout = timeout

    async def sign_payload(self, address: str, request: Dict[str, Any]) -> str:
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=request)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.url, json=request)
        except httpx.HTTPError as e:
            logger.warning("Signing agent %s unreachable: %s", self.url, e)
            raise SignerUnavailableError(f"Signing agent unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise UserRejectedError(f"Signing request for {address} was rejected")
        if not response.is_success:
            raise SignerUnavailableError(f"Signing agent answered {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise SignerUnavailableError("Signing agent answered with invalid JSON") from e
        if not isinstance(body, dict):
            raise SignerUnavailableError("Signing agent answered with an unexpected body")

        if body.get("rejected"):
            raise UserRejectedError(body.get("reason") or f"Signing request for {address} was rejected")
        signature = body.get("signature")
        if not signature:
            raise SignerUnavailableError("Signing agent answered without a signature")
        return signature
