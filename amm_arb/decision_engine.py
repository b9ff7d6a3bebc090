"""
Decision Engine for two-pool arbitrage.

Provides an explicit trade decision with reasoning and metrics. The engine
is a single-transition state machine: a run starts unanalyzed and ends in
exactly one of NoOpportunity, SimulateOnly, Executed or Failed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ArbitrageError
from .normalizer import normalize_pools
from .pnl import FeeSchedule, ProfitBreakdown, compute_pnl
from .slippage import expected_outputs, plan_trade
from .spread import SpreadAnalysis, analyze_spread
from .types import (
    BASE_ASSET_MINT,
    ArbConfig,
    Decision,
    Direction,
    ExpectedOut,
    NormalizedPool,
    PoolSnapshot,
    TradePlan,
)
from .utils import get_logger

logger = get_logger(__name__)


class Action(str, Enum):
    """What the run should do next with the execution adapter."""

    SKIP = "SKIP"
    SIMULATE = "SIMULATE"
    SUBMIT = "SUBMIT"


@dataclass(frozen=True)
class Analysis:
    """Everything computed from the two normalized pools."""

    pool_a: NormalizedPool
    pool_b: NormalizedPool
    spread: SpreadAnalysis
    expected_out: ExpectedOut
    plan: Optional[TradePlan]
    pnl: ProfitBreakdown


@dataclass(frozen=True)
class Verdict:
    """
    Pre-execution decision.

    ``decision`` is already terminal for SKIP (NoOpportunity) and for
    failures found during analysis; otherwise it is None until
    :meth:`DecisionEngine.finalize` sees the adapter's outcome.
    """

    action: Action
    reasons: List[str] = field(default_factory=list)
    analysis: Optional[Analysis] = None
    decision: Optional[Decision] = None
    error: Optional[ArbitrageError] = None

    @property
    def failure_reason(self) -> Optional[str]:
        return self.error.reason if self.error is not None else None

    def metrics(self) -> Dict[str, Any]:
        if self.analysis is None:
            return {}
        a = self.analysis
        metrics = {
            "price_a": a.spread.price_a,
            "price_b": a.spread.price_b,
            "spread_bps": a.spread.spread_bps,
            "direction": a.spread.direction.value,
        }
        if a.plan is not None:
            metrics["expected_out"] = a.plan.expected_out
            metrics["min_out"] = a.plan.min_out
        metrics["gross_profit"] = a.pnl.gross_profit
        metrics["fee_cost"] = a.pnl.fee_cost_in_base_asset
        metrics["net_profit"] = a.pnl.net_profit_in_mint_in
        return metrics


class DecisionEngine:
    """
    Pure decision logic.

    Responsibilities:
    1. Compose normalize -> spread -> slippage -> pnl for two snapshots
    2. Compare the spread against the configured threshold
    3. Choose SKIP, SIMULATE or SUBMIT
    4. Map the execution outcome onto the terminal Decision

    Nothing here touches the network; callers pass configuration in.
    """

    def __init__(self, fees: Optional[FeeSchedule] = None, base_mint: str = BASE_ASSET_MINT):
        self.fees = fees or FeeSchedule()
        self.base_mint = base_mint

    def analyze(
        self,
        snapshot_a: PoolSnapshot,
        snapshot_b: PoolSnapshot,
        config: ArbConfig,
        fees: Optional[FeeSchedule] = None,
    ) -> Analysis:
        """
        Run the computational pipeline. ``fees`` overrides the engine's
        schedule for this run.

        Raises:
            MintMismatch: If a pool does not trade the configured pair
            InvalidPoolData: If a pool cannot be priced
        """
        pool_a, pool_b = normalize_pools(
            snapshot_a, snapshot_b, config.mint_in, config.mint_out
        )
        spread = analyze_spread(pool_a, pool_b)
        expected = expected_outputs(pool_a, pool_b, config.amount_in)

        if spread.direction is Direction.NONE:
            # Equal prices: no plan, but profit is still priced on a nominal
            # round trip (sell on A, buy back on B).
            plan = None
            priced = plan_trade(
                pool_a, pool_b, Direction.BUY_B_SELL_A, config.amount_in, config.slippage_bps
            )
        else:
            plan = priced = plan_trade(
                pool_a, pool_b, spread.direction, config.amount_in, config.slippage_bps
            )
        pnl = compute_pnl(priced, config, fees or self.fees, self.base_mint)

        return Analysis(
            pool_a=pool_a,
            pool_b=pool_b,
            spread=spread,
            expected_out=expected,
            plan=plan,
            pnl=pnl,
        )

    def decide(self, analysis: Analysis, config: ArbConfig) -> Verdict:
        """Choose the action for an analysis."""
        reasons = []
        spread = analysis.spread

        if spread.direction is Direction.NONE:
            reasons.append("direction: prices are equal")
        if spread.spread_bps < config.spread_threshold_bps:
            reasons.append(
                f"threshold: spread {spread.spread_bps} bps < {config.spread_threshold_bps} bps"
            )

        if reasons:
            return Verdict(
                action=Action.SKIP,
                reasons=reasons,
                analysis=analysis,
                decision=Decision.NO_OPPORTUNITY,
            )

        if analysis.pnl.gross_profit <= 0:
            reasons.append(
                f"warning: gross profit {analysis.pnl.gross_profit:.9f} is not positive"
            )

        if config.simulate_only:
            return Verdict(action=Action.SIMULATE, reasons=reasons, analysis=analysis)
        return Verdict(action=Action.SUBMIT, reasons=reasons, analysis=analysis)

    def evaluate(
        self,
        snapshot_a: PoolSnapshot,
        snapshot_b: PoolSnapshot,
        config: ArbConfig,
        fees: Optional[FeeSchedule] = None,
    ) -> Verdict:
        """
        Analyze and decide. Business errors never escape: they come back as
        a Failed verdict carrying the error.
        """
        try:
            analysis = self.analyze(snapshot_a, snapshot_b, config, fees)
        except ArbitrageError as e:
            logger.warning(f"Analysis failed: {e.reason}")
            return self.fail(e)
        return self.decide(analysis, config)

    @staticmethod
    def fail(error: ArbitrageError, analysis: Optional[Analysis] = None) -> Verdict:
        return Verdict(
            action=Action.SKIP,
            reasons=[error.reason],
            analysis=analysis,
            decision=Decision.FAILED,
            error=error,
        )

    @staticmethod
    def finalize(
        verdict: Verdict, error: Optional[ArbitrageError] = None
    ) -> Verdict:
        """
        Resolve a verdict to its terminal state.

        Args:
            verdict: Output of :meth:`evaluate`
            error: Error raised by the execution adapter or the slippage
                re-check, if any

        Returns:
            A verdict whose ``decision`` is set
        """
        if verdict.decision is not None:
            return verdict
        if error is not None:
            return DecisionEngine.fail(error, verdict.analysis)
        if verdict.action is Action.SIMULATE:
            decision = Decision.SIMULATE_ONLY
        elif verdict.action is Action.SUBMIT:
            decision = Decision.EXECUTED
        else:
            decision = Decision.NO_OPPORTUNITY
        return Verdict(
            action=verdict.action,
            reasons=list(verdict.reasons),
            analysis=verdict.analysis,
            decision=decision,
        )

    def format_decision_log(self, verdict: Verdict) -> str:
        """Format a verdict as a single-line log entry."""
        m = verdict.metrics()
        reasons_str = ", ".join(verdict.reasons) if verdict.reasons else "none"
        decision = verdict.decision.value if verdict.decision else "pending"

        parts = [
            f"Decision {decision}",
            f"action={verdict.action.value}",
            f"reasons=[{reasons_str}]",
        ]
        if "spread_bps" in m:
            parts.append(f"spread={m['spread_bps']}bps")
            parts.append(f"direction={m['direction']}")
        if "expected_out" in m:
            parts.append(f"expected_out={m['expected_out']:.9f}")
            parts.append(f"min_out={m['min_out']:.9f}")
        if "gross_profit" in m:
            parts.append(f"gross={m['gross_profit']:.9f}")
            parts.append(f"fees={m['fee_cost']:.9f}SOL")
            net = m["net_profit"]
            parts.append(f"net={net:.9f}" if net is not None else "net=n/a")
        return " ".join(parts)
