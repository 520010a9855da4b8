"""Chain execution service and test-chain bootstrap exports."""

from .bootstrap import bootstrap_chain, bootstrap_chains
from .nonce_manager import NonceManager
from .registry import CHAIN_REGISTRY, ChainEntry, TokenEntry, get_chain_entry
from .rpc_client import ChainRPCClient
from .service import ChainExecutionService, build_chain_services

__all__ = [
    "bootstrap_chain",
    "bootstrap_chains",
    "NonceManager",
    "CHAIN_REGISTRY",
    "ChainEntry",
    "TokenEntry",
    "get_chain_entry",
    "ChainRPCClient",
    "ChainExecutionService",
    "build_chain_services",
]
