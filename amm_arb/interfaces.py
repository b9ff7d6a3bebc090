"""
Collaborator interfaces.

The engine never talks to the network itself; the runner is handed a pool
data source and an execution adapter that satisfy these protocols, which
keeps the pipeline testable with in-memory fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .pnl import FeeSchedule
from .types import NormalizedPool, PoolSnapshot, TradePlan


@dataclass(frozen=True)
class SimulationOutcome:
    """
    Result of simulating the arbitrage transaction.

    Attributes:
        err: Program error reported by the node, None on success
        logs: Program log lines
        units_consumed: Compute units used by the simulation
    """

    err: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.err is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "err": self.err,
            "logs": list(self.logs),
            "units_consumed": self.units_consumed,
        }


@dataclass(frozen=True)
class SubmissionReceipt:
    """Result of sending the arbitrage transaction."""

    signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {"signature": self.signature}


@runtime_checkable
class PoolDataSource(Protocol):
    """Fetches the current state of one pool."""

    async def fetch(self, pool_id: str) -> PoolSnapshot:
        """
        Raises:
            RpcUnavailable: If the node cannot be reached
            InvalidPoolData: If the account is not a usable pool
        """
        ...


@runtime_checkable
class ExecutionAdapter(Protocol):
    """Simulates or submits the transaction for a trade plan."""

    async def simulate(self, plan: TradePlan) -> SimulationOutcome:
        """
        Raises:
            ExecutionError: If the transaction cannot be built
            RpcUnavailable: If the node cannot be reached
        """
        ...

    async def submit(self, plan: TradePlan) -> SubmissionReceipt:
        """
        Raises:
            ExecutionError: If the node rejects the transaction
            RpcUnavailable: If the node cannot be reached
        """
        ...


@runtime_checkable
class FeeEstimator(Protocol):
    """Prices the network cost of a run once the pools are known."""

    async def estimate(
        self, pool_a: NormalizedPool, pool_b: NormalizedPool, config: Any
    ) -> FeeSchedule:
        """
        Raises:
            RpcUnavailable: If the node cannot be reached
        """
        ...
