"""
Two-pool AMM arbitrage.

Compares the implied price of one asset pair on two Raydium CPMM pools,
decides whether the spread justifies a round trip, and simulates or
submits both swaps as one atomic Solana transaction. Every run ends with
a JSON report.
"""

from amm_arb.version import __version__

PROJECT_NAME = "solana-amm-arb"
VERSION = __version__

# Export main components for easier imports
from amm_arb.decision_engine import Action, DecisionEngine, Verdict
from amm_arb.exceptions import (
    ArbitrageError,
    ConfigValidationError,
    ExecutionError,
    InvalidPoolData,
    MintMismatch,
    RpcUnavailable,
    SlippageExceeded,
)
from amm_arb.runner import ArbRunner
from amm_arb.types import (
    ArbConfig,
    Decision,
    Direction,
    NormalizedPool,
    PoolSnapshot,
    TradePlan,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "Action",
    "ArbConfig",
    "ArbRunner",
    "ArbitrageError",
    "ConfigValidationError",
    "Decision",
    "DecisionEngine",
    "Direction",
    "ExecutionError",
    "InvalidPoolData",
    "MintMismatch",
    "NormalizedPool",
    "PoolSnapshot",
    "RpcUnavailable",
    "SlippageExceeded",
    "TradePlan",
    "Verdict",
]
