from .adapter import SubstrateAdapter, verify_payload_signature
from .chain import SubstrateChain, classify_finalized_events
from .pool import ConnectionPool
from .signers import (
    Signer,
    LocalKeypairSigner,
    SigningAgent,
    AgentRegistry,
    ExternalAgentSigner,
    HttpSigningAgent,
)
from .transactions import build_unsigned_transaction
from .constants import (
    NETWORKS,
    get_network_config,
    get_asset_config,
    amount_to_value,
    value_to_amount,
)

__all__ = [
    "SubstrateAdapter",
    "verify_payload_signature",
    "SubstrateChain",
    "classify_finalized_events",
    "ConnectionPool",
    "Signer",
    "LocalKeypairSigner",
    "SigningAgent",
    "AgentRegistry",
    "ExternalAgentSigner",
    "HttpSigningAgent",
    "build_unsigned_transaction",
    "NETWORKS",
    "get_network_config",
    "get_asset_config",
    "amount_to_value",
    "value_to_amount",
]
