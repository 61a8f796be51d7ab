"""
Payment Requirement Registry

Per-resource price table. Populated at startup; read on every gated request.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Union

from ..schemas.https import PaymentRequirement, Price
from ..sessions.schemas import SessionKind
from .substrate.constants import amount_to_value, get_asset_config, get_network_config


@dataclass(frozen=True)
class SessionPolicy:
    """
    Session granted to a payer of a resource.

    Attributes:
        kind: ``"time-bounded"`` or ``"single-use"``.
        ttl_seconds: Lifetime of the session.
    """
    kind: SessionKind
    ttl_seconds: int

    def __post_init__(self):
        object.__setattr__(self, "kind", SessionKind(self.kind))
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")


class RequirementRegistry:
    """
    Registry of payment requirements keyed by resource.

    Example:
        registry = RequirementRegistry()
        registry.register(
            "/api/pay/session", amount="1.00", asset="VARA",
            network="vara-testnet", pay_to=address,
            session=SessionPolicy("time-bounded", 24 * 3600),
        )
        requirement = registry.lookup("/api/pay/session")
    """

    def __init__(self):
        self._requirements: Dict[str, PaymentRequirement] = {}
        self._policies: Dict[str, SessionPolicy] = {}

    def register(
        self,
        resource: str,
        amount: Union[Decimal, str, int, float],
        asset: str,
        network: str,
        pay_to: str,
        facilitator: Optional[str] = None,
        description: Optional[str] = None,
        session: Optional[SessionPolicy] = None,
    ) -> PaymentRequirement:
        """
        Register the price of ``resource``.

        Raises:
            ValueError: If the resource is already registered, the network or
                asset is unsupported, or the amount is not representable in
                the asset's smallest unit.
        """
        if resource in self._requirements:
            raise ValueError(f"Resource already registered: {resource}")
        if get_network_config(network) is None:
            raise ValueError(f"Unsupported network: {network}")

        asset_config = get_asset_config(network, asset)
        if asset_config is None:
            raise ValueError(f"Unsupported asset {asset} on {network}")

        # Raises ValueError for negative or fractional smallest units.
        amount_to_value(amount=amount, decimals=asset_config.decimals)

        requirement = PaymentRequirement(
            network=network,
            price=Price(amount=Decimal(str(amount)), asset=asset_config.symbol),
            resource=resource,
            pay_to=pay_to,
            facilitator=facilitator,
            description=description,
        )
        self._requirements[resource] = requirement
        if session is not None:
            self._policies[resource] = session
        return requirement

    def lookup(self, resource: str) -> Optional[PaymentRequirement]:
        return self._requirements.get(resource)

    def policy(self, resource: str) -> Optional[SessionPolicy]:
        return self._policies.get(resource)

    def list(self) -> List[PaymentRequirement]:
        return list(self._requirements.values())

    def __contains__(self, resource: str) -> bool:
        return resource in self._requirements

    def __len__(self) -> int:
        return len(self._requirements)
