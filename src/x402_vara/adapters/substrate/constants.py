"""
Substrate Network Configuration Management

Provides unified access to supported Substrate networks and their native
assets, environment-aware RPC URL and key material lookup, and the canonical
amount <-> smallest-unit conversions used by signing and verification.
"""

import os
from typing import Dict, Optional
from decimal import Decimal, InvalidOperation

import dotenv
from pydantic import BaseModel, Field

dotenv.load_dotenv()


#: Default mortality period, in blocks, of a payment extrinsic.
DEFAULT_ERA_PERIOD: int = 64

#: Pallet and call used to move the native asset.
TRANSFER_MODULE: str = "Balances"
TRANSFER_FUNCTION: str = "transfer_keep_alive"

#: Calls accepted as a payment when decoding evidence.
ACCEPTED_TRANSFER_FUNCTIONS = ("transfer_keep_alive", "transfer_allow_death", "transfer")


class SubstrateAssetConfig(BaseModel):
    """Native asset configuration."""
    symbol: str
    decimals: int = Field(..., description="Token decimals")


class SubstrateNetworkConfig(BaseModel):
    """Substrate network configuration."""
    network: str
    name: str
    type: str = Field(default="substrate", description="Blockchain family")
    rpc_url: str = Field(..., description="WebSocket RPC endpoint")
    ss58_format: int = Field(..., description="SS58 address prefix")
    assets: Dict[str, SubstrateAssetConfig] = Field(default_factory=dict, description="Supported assets")


_SUBSTRATE_NETWORKS_DATA: Dict = {
    "vara": {
        "name": "Vara Network",
        "type": "substrate",
        "rpc_url": "wss://rpc.vara.network",
        "ss58_format": 137,
        "assets": {
            "VARA": {"decimals": 12},
        },
    },
    "vara-testnet": {
        "name": "Vara Testnet",
        "type": "substrate",
        "rpc_url": "wss://testnet.vara.network",
        "ss58_format": 137,
        "assets": {
            "VARA": {"decimals": 12},
        },
    },
}


NETWORKS: Dict[str, SubstrateNetworkConfig] = {
    network: SubstrateNetworkConfig(
        network=network,
        name=data["name"],
        type=data["type"],
        rpc_url=data["rpc_url"],
        ss58_format=data["ss58_format"],
        assets={
            symbol: SubstrateAssetConfig(symbol=symbol, **asset)
            for symbol, asset in data["assets"].items()
        },
    )
    for network, data in _SUBSTRATE_NETWORKS_DATA.items()
}


def get_network_config(network: str) -> Optional[SubstrateNetworkConfig]:
    """
    Look up a supported network by identifier (e.g. ``"vara-testnet"``).

    Returns:
        The network configuration, or None if the network is unknown.
    """
    return NETWORKS.get(network)


def get_asset_config(network: str, asset: str) -> Optional[SubstrateAssetConfig]:
    """
    Look up an asset on a network. Symbols are matched case-insensitively.
    """
    config = get_network_config(network)
    if config is None:
        return None
    return config.assets.get(asset.strip().upper())


def get_rpc_url(network: str) -> Optional[str]:
    """
    Resolve the RPC endpoint for a network.

    ``VARA_RPC_URL`` overrides the built-in endpoint of every network, which
    is how local dev nodes are targeted.

    Returns:
        The WebSocket URL, or None if the network is unknown.
    """
    override = os.getenv("VARA_RPC_URL")
    if override:
        return override
    config = get_network_config(network)
    return config.rpc_url if config else None


def get_mnemonic_from_env() -> Optional[str]:
    """
    Load the payer's key material from environment variables.

    Environment Variable:
        - VARA_MNEMONIC: BIP39 mnemonic or secret URI (``//Alice``) of the payer

    Returns:
        str: Key material from environment, or None if not configured

    Note:
        Keep the mnemonic in a ``.env`` file that is never committed.
    """
    return os.getenv("VARA_MNEMONIC")


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable `amount` into a smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. "1.00" VARA). Accepts float/int/str/Decimal.
        decimals: Asset decimals (12 for VARA).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount has fractional smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float artefacts (0.1 -> 0.1000000000000000055...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite() or dec_amount < 0:
        raise ValueError("amount must be a finite, non-negative number")

    scaled = dec_amount * (Decimal(10) ** decimals)

    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable Decimal amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0 or dec_value != dec_value.to_integral_value():
        raise ValueError("value must be a non-negative integer in smallest units")

    return dec_value / (Decimal(10) ** decimals)
