"""
RPC execution adapter: simulates or sends the arbitrage transaction.
"""

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from ..exceptions import ExecutionError, RpcUnavailable
from ..interfaces import SimulationOutcome, SubmissionReceipt
from ..types import TradePlan
from ..utils import get_logger
from .chain import SolanaChain
from .transaction import build_transaction

logger = get_logger(__name__)


class RpcExecutionAdapter:
    """
    :class:`~amm_arb.interfaces.ExecutionAdapter` that builds a fresh
    transaction per call (new blockhash, current token account state).
    """

    def __init__(self, chain: SolanaChain, payer: Keypair, priority_fee: int):
        self.chain = chain
        self.payer = payer
        self.priority_fee = priority_fee

    @property
    def client(self) -> AsyncClient:
        return self.chain.client

    async def build(self, plan: TradePlan) -> VersionedTransaction:
        owner = self.payer.pubkey()
        mints = [
            (plan.sell_leg.token_in, plan.sell_leg.accounts.get("token_program_in")),
            (plan.sell_leg.token_out, plan.sell_leg.accounts.get("token_program_out")),
        ]
        if any(program is None for _, program in mints):
            raise ExecutionError(f"Pool {plan.sell_leg.pool_id} is missing token programs")
        missing = await self.chain.missing_token_accounts(owner, mints)

        try:
            resp = await self.client.get_latest_blockhash()
        except (SolanaRpcException, RPCException, OSError) as e:
            raise RpcUnavailable(
                f"Failed to fetch blockhash: {e}", endpoint=self.chain.rpc_url
            ) from e

        return build_transaction(
            self.payer, plan, self.priority_fee, resp.value.blockhash, missing
        )

    async def simulate(self, plan: TradePlan) -> SimulationOutcome:
        tx = await self.build(plan)
        try:
            resp = await self.client.simulate_transaction(tx, sig_verify=False)
        except RPCException as e:
            raise ExecutionError(f"Simulation rejected: {e}") from e
        except (SolanaRpcException, OSError) as e:
            raise RpcUnavailable(
                f"Simulation request failed: {e}", endpoint=self.chain.rpc_url
            ) from e

        result = resp.value
        outcome = SimulationOutcome(
            err=str(result.err) if result.err is not None else None,
            logs=list(result.logs or []),
            units_consumed=result.units_consumed,
        )
        if outcome.success:
            logger.info(f"✅ Simulation succeeded ({outcome.units_consumed} CU)")
        else:
            logger.warning(f"❌ Simulation failed: {outcome.err}")
            for line in outcome.logs:
                logger.debug(f"  {line}")
        return outcome

    async def submit(self, plan: TradePlan) -> SubmissionReceipt:
        tx = await self.build(plan)
        try:
            resp = await self.client.send_transaction(
                tx, opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            )
        except RPCException as e:
            raise ExecutionError(f"Transaction rejected: {e}") from e
        except (SolanaRpcException, OSError) as e:
            raise RpcUnavailable(
                f"Send failed: {e}", endpoint=self.chain.rpc_url
            ) from e

        signature = str(resp.value)
        logger.info(f"✅ Transaction sent: {signature}")
        return SubmissionReceipt(signature=signature)
