"""Solana adapters: Raydium CPMM pool data and RPC transaction execution."""

from .chain import ChainFeeEstimator, SolanaChain, load_keypair
from .executor import RpcExecutionAdapter
from .raydium_cpmm import RaydiumCpmmSource

__all__ = [
    "ChainFeeEstimator",
    "RaydiumCpmmSource",
    "RpcExecutionAdapter",
    "SolanaChain",
    "load_keypair",
]
