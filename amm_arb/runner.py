"""
Single-run orchestration.

One run: fetch both pools concurrently, evaluate, price the network fees
for a trade that will go ahead, then simulate or submit as the verdict
demands, and always finish with a report on disk. Business errors, and
anything unexpected raised by the execution adapter, become a Failed
decision in the report; they do not escape :meth:`ArbRunner.run`.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from .decision_engine import Action, DecisionEngine, Verdict
from .exceptions import ArbitrageError, ExecutionError
from .interfaces import (
    ExecutionAdapter,
    FeeEstimator,
    PoolDataSource,
    SimulationOutcome,
    SubmissionReceipt,
)
from .normalizer import normalize_pools
from .report import ArbitrageReport, build_report, write_report
from .settings import RunConfig
from .slippage import check_slippage
from .types import PoolSnapshot
from .utils import get_logger

logger = get_logger(__name__)


class ArbRunner:
    """
    Runs the pipeline once against injected collaborators.

    Args:
        config: Resolved run configuration
        source: Pool data source
        executor: Execution adapter; required unless every run ends before
            execution
        fee_estimator: Prices rent for missing token accounts when a trade
            will reach the executor; the default fee schedule is used
            otherwise
        engine: Decision engine
        clock: Wall clock in Unix seconds
    """

    def __init__(
        self,
        config: RunConfig,
        source: PoolDataSource,
        executor: Optional[ExecutionAdapter] = None,
        fee_estimator: Optional[FeeEstimator] = None,
        engine: Optional[DecisionEngine] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.source = source
        self.executor = executor
        self.fee_estimator = fee_estimator
        self.engine = engine or DecisionEngine()
        self.clock = clock

    async def fetch_pools(self) -> Tuple[PoolSnapshot, PoolSnapshot]:
        """
        Fetch both pools concurrently. If either fetch fails the other is
        cancelled and the error propagates.
        """
        tasks = [
            asyncio.create_task(self.source.fetch(self.config.pool_a)),
            asyncio.create_task(self.source.fetch(self.config.pool_b)),
        ]
        try:
            snapshot_a, snapshot_b = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return snapshot_a, snapshot_b

    async def _price_fees(
        self, verdict: Verdict, snapshot_a: PoolSnapshot, snapshot_b: PoolSnapshot
    ) -> Verdict:
        """
        Re-evaluate a verdict that will reach the adapter with the estimated
        fee schedule. Verdicts that skip execution keep the default schedule
        and cost no RPC calls.
        """
        if self.fee_estimator is None or verdict.decision is not None:
            return verdict
        analysis = verdict.analysis
        try:
            fees = await self.fee_estimator.estimate(
                analysis.pool_a, analysis.pool_b, self.config
            )
        except ArbitrageError as e:
            logger.error(f"❌ {e.reason}")
            return self.engine.fail(e, analysis)
        return self.engine.evaluate(snapshot_a, snapshot_b, self.config.arb, fees)

    async def _execute(self, verdict: Verdict):
        """
        Carry out SIMULATE or SUBMIT.

        Returns:
            ``(simulation, receipt)``

        Raises:
            ArbitrageError: If the adapter, the simulation or the slippage
                re-check fails
        """
        if verdict.action is Action.SKIP:
            return None, None
        if self.executor is None:
            raise ExecutionError("No execution adapter configured")

        plan = verdict.analysis.plan
        if verdict.action is Action.SIMULATE:
            simulation = await self.executor.simulate(plan)
            if not simulation.success:
                raise ExecutionError(
                    f"Simulation failed: {simulation.err}",
                    logs=simulation.logs,
                    details={"simulation": simulation},
                )
            return simulation, None

        fresh_a, fresh_b = await self.fetch_pools()
        arb = self.config.arb
        fresh_a, fresh_b = normalize_pools(fresh_a, fresh_b, arb.mint_in, arb.mint_out)
        check_slippage(plan, fresh_a, fresh_b)
        return None, await self.executor.submit(plan)

    async def run(self) -> ArbitrageReport:
        """Run once and write the report. Always returns a report."""
        started_at = self.clock()
        snapshots: Dict[str, Optional[PoolSnapshot]] = {}
        simulation: Optional[SimulationOutcome] = None
        receipt: Optional[SubmissionReceipt] = None

        logger.info(
            f"🔍 Checking {self.config.pool_a} vs {self.config.pool_b} "
            f"for {self.config.arb.amount_in} {self.config.arb.mint_in}"
        )

        try:
            snapshot_a, snapshot_b = await self.fetch_pools()
            snapshots = {"pool_a": snapshot_a, "pool_b": snapshot_b}
        except ArbitrageError as e:
            logger.error(f"❌ {e.reason}")
            verdict = self.engine.fail(e)
        else:
            verdict = self.engine.evaluate(snapshot_a, snapshot_b, self.config.arb)
            verdict = await self._price_fees(verdict, snapshot_a, snapshot_b)

        error = None
        if verdict.decision is None:
            try:
                simulation, receipt = await self._execute(verdict)
            except ArbitrageError as e:
                logger.error(f"❌ {e.reason}")
                error = e
                if isinstance(e, ExecutionError):
                    simulation = e.details.get("simulation")
            except Exception as e:
                logger.exception("❌ Unexpected error during execution")
                error = ExecutionError(
                    f"Unexpected {type(e).__name__} during execution: {e}",
                    details={"exception": type(e).__name__},
                )
        verdict = self.engine.finalize(verdict, error)

        logger.info(self.engine.format_decision_log(verdict))

        report = build_report(
            verdict,
            self.config.to_dict(),
            started_at,
            self.clock(),
            snapshots=snapshots,
            simulation=simulation,
            receipt=receipt,
        )
        write_report(report, self.config.report_path)
        log_summary(report)
        return report


def log_summary(report: ArbitrageReport) -> None:
    """Human-readable summary of a run."""
    a = report.analysis
    logger.info("=" * 60)
    logger.info("📊 ARBITRAGE SUMMARY")
    logger.info("=" * 60)
    logger.info(f"  Decision:        {a.decision.value}")
    if a.spread_bps is not None:
        logger.info(f"  Spread:          {a.spread_bps} bps ({a.direction.value})")
    if a.gross_profit is not None:
        logger.info(f"  Gross profit:    {a.gross_profit:.9f}")
        logger.info(f"  Fee cost:        {a.fee_cost_in_base_asset:.9f} SOL")
        net = a.net_profit_in_mint_in
        logger.info(f"  Net profit:      {f'{net:.9f}' if net is not None else 'n/a'}")
    if a.failure_reason:
        logger.info(f"  Failure:         {a.failure_reason}")
    if report.transaction_signature:
        logger.info(f"  Signature:       {report.transaction_signature}")
    logger.info(f"  Duration:        {report.execution_time_ms} ms")
    logger.info("=" * 60)
