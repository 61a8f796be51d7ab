from .adapters_hub import AdapterHub, get_adapter_type
from .registry import RequirementRegistry, SessionPolicy
from .bases import AdapterFactory, ChainHandle
from .schemas import ChainHead, RuntimeInfo, DecodedTransfer, FinalizationResult
from .substrate import (
    SubstrateAdapter,
    SubstrateChain,
    ConnectionPool,
    Signer,
    LocalKeypairSigner,
    ExternalAgentSigner,
    AgentRegistry,
    HttpSigningAgent,
)

__all__ = [
    "AdapterHub",
    "get_adapter_type",
    "RequirementRegistry",
    "SessionPolicy",
    "AdapterFactory",
    "ChainHandle",
    "ChainHead",
    "RuntimeInfo",
    "DecodedTransfer",
    "FinalizationResult",
    "SubstrateAdapter",
    "SubstrateChain",
    "ConnectionPool",
    "Signer",
    "LocalKeypairSigner",
    "ExternalAgentSigner",
    "AgentRegistry",
    "HttpSigningAgent",
]
