"""
Run report assembly.

The report has a fixed schema: every AnalysisResult field is present even
when its value is null, so consumers never have to guess whether a key was
dropped or a value is unknown.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .decision_engine import Verdict
from .interfaces import SimulationOutcome, SubmissionReceipt
from .types import Decision, Direction
from .utils import atomic_write_text, get_logger, safe_json_dump, timestamp_to_iso

logger = get_logger(__name__)

DEFAULT_REPORT_PATH = "arbitrage_result.json"

ANALYSIS_FIELDS = (
    "spread_bps",
    "direction",
    "expected_out",
    "gross_profit",
    "fee_cost_in_base_asset",
    "net_profit_in_mint_in",
    "decision",
    "failure_reason",
)


@dataclass(frozen=True)
class AnalysisResult:
    """
    Outcome of one run. Numeric fields are None when the run failed before
    they could be computed; they are never defaulted to zero.
    """

    spread_bps: Optional[int]
    direction: Optional[Direction]
    expected_out: Optional[Dict[str, Decimal]]
    gross_profit: Optional[Decimal]
    fee_cost_in_base_asset: Optional[Decimal]
    net_profit_in_mint_in: Optional[Decimal]
    decision: Decision
    failure_reason: Optional[str] = None
    price_a: Optional[Decimal] = None
    price_b: Optional[Decimal] = None
    min_out: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spread_bps": self.spread_bps,
            "direction": self.direction.value if self.direction else None,
            "expected_out": dict(self.expected_out) if self.expected_out else None,
            "gross_profit": self.gross_profit,
            "fee_cost_in_base_asset": self.fee_cost_in_base_asset,
            "net_profit_in_mint_in": self.net_profit_in_mint_in,
            "decision": self.decision.value,
            "failure_reason": self.failure_reason,
            "price_a": self.price_a,
            "price_b": self.price_b,
            "min_out": self.min_out,
        }


@dataclass(frozen=True)
class ArbitrageReport:
    """Immutable record of one run, ready for serialization."""

    timestamp: str
    execution_time_ms: int
    analysis: AnalysisResult
    config: Dict[str, Any]
    pools: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    trade_plan: Optional[Dict[str, Any]] = None
    pnl_breakdown: Optional[Dict[str, Any]] = None
    reasons: tuple = ()
    transaction_signature: Optional[str] = None
    simulation: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "execution_time_ms": self.execution_time_ms,
            "analysis": self.analysis.to_dict(),
            "config": dict(self.config),
            "pools": {
                "pool_a": self.pools.get("pool_a"),
                "pool_b": self.pools.get("pool_b"),
            },
            "trade_plan": self.trade_plan,
            "pnl_breakdown": self.pnl_breakdown,
            "reasons": list(self.reasons),
            "transaction_signature": self.transaction_signature,
            "simulation": self.simulation,
        }

    def to_json(self) -> str:
        return safe_json_dump(self.to_dict())


def analysis_result(verdict: Verdict) -> AnalysisResult:
    """Flatten a terminal verdict into the AnalysisResult schema."""
    if verdict.decision is None:
        raise ValueError("Verdict has not been finalized")

    a = verdict.analysis
    spread = a.spread if a is not None else None
    pnl = a.pnl if a is not None else None
    plan = a.plan if a is not None else None

    return AnalysisResult(
        spread_bps=spread.spread_bps if spread else None,
        direction=spread.direction if spread else None,
        expected_out=(
            {"pool_a": a.expected_out.pool_a, "pool_b": a.expected_out.pool_b}
            if a is not None
            else None
        ),
        gross_profit=pnl.gross_profit if pnl else None,
        fee_cost_in_base_asset=pnl.fee_cost_in_base_asset if pnl else None,
        net_profit_in_mint_in=pnl.net_profit_in_mint_in if pnl else None,
        decision=verdict.decision,
        failure_reason=verdict.failure_reason,
        price_a=spread.price_a if spread else None,
        price_b=spread.price_b if spread else None,
        min_out=plan.min_out if plan else None,
    )


def build_report(
    verdict: Verdict,
    config: Dict[str, Any],
    started_at: float,
    finished_at: float,
    snapshots: Optional[Dict[str, Any]] = None,
    simulation: Optional[SimulationOutcome] = None,
    receipt: Optional[SubmissionReceipt] = None,
) -> ArbitrageReport:
    """
    Assemble the report for a finalized verdict.

    Args:
        verdict: Terminal verdict
        config: Resolved configuration as a plain dict
        started_at: Run start (Unix seconds)
        finished_at: Run end (Unix seconds)
        snapshots: Raw pool snapshots keyed ``pool_a``/``pool_b`` for runs
            that failed before normalization
        simulation: Simulation outcome, if the adapter simulated
        receipt: Submission receipt, if the adapter submitted
    """
    a = verdict.analysis
    if a is not None:
        pools = {"pool_a": a.pool_a.to_dict(), "pool_b": a.pool_b.to_dict()}
    else:
        snapshots = snapshots or {}
        pools = {
            key: snap.to_dict() if snap is not None else None
            for key, snap in (
                ("pool_a", snapshots.get("pool_a")),
                ("pool_b", snapshots.get("pool_b")),
            )
        }

    return ArbitrageReport(
        timestamp=timestamp_to_iso(finished_at),
        execution_time_ms=int((finished_at - started_at) * 1000),
        analysis=analysis_result(verdict),
        config=dict(config),
        pools=pools,
        trade_plan=a.plan.to_dict() if a is not None and a.plan else None,
        pnl_breakdown=a.pnl.to_dict() if a is not None and a.pnl else None,
        reasons=tuple(verdict.reasons),
        transaction_signature=receipt.signature if receipt else None,
        simulation=simulation.to_dict() if simulation else None,
    )


def write_report(report: ArbitrageReport, path: Union[str, Path] = DEFAULT_REPORT_PATH) -> Path:
    """Write the report as one JSON object, replacing any previous report."""
    target = atomic_write_text(path, report.to_json() + "\n")
    logger.info(f"📄 Detailed report saved to: {target}")
    return target
