"""
Server configuration loaded from the environment.

Environment Variables:
    - ADDRESS: SS58 address receiving payments (required)
    - NETWORK: Network identifier (default ``vara-testnet``)
    - PORT: HTTP port (default 3001)
    - FACILITATOR_URL: Remote facilitator base URL (optional; built-in ledger
      verification when unset)
"""

import os
from typing import Optional

import dotenv
from pydantic import BaseModel, Field

from ..adapters.substrate.constants import get_network_config
from ..engine.exceptions import ConfigurationError

dotenv.load_dotenv()


class ServerConfig(BaseModel):
    """Payment server settings."""
    pay_to: str = Field(..., min_length=1, description="Recipient address")
    network: str = Field(default="vara-testnet", description="Network identifier")
    port: int = Field(default=3001, ge=1, le=65535)
    facilitator_url: Optional[str] = Field(None, description="Remote facilitator base URL")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Read the configuration from environment variables (and ``.env``).

        Raises:
            ConfigurationError: If ADDRESS is missing, PORT is not a number,
                or NETWORK is unknown.
        """
        pay_to = os.getenv("ADDRESS")
        if not pay_to:
            raise ConfigurationError("Please set your wallet ADDRESS in the environment or .env file")

        network = os.getenv("NETWORK", "vara-testnet")
        if get_network_config(network) is None:
            raise ConfigurationError(f"Unsupported NETWORK: {network}")

        try:
            port = int(os.getenv("PORT", "3001"))
        except ValueError as e:
            raise ConfigurationError(f"PORT must be a number, got {os.getenv('PORT')!r}") from e

        return cls(
            pay_to=pay_to,
            network=network,
            port=port,
            facilitator_url=os.getenv("FACILITATOR_URL") or None,
        )
