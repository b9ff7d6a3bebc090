"""
Constant-product quoting and slippage tolerance.

Quotes follow the x*y=k invariant with the pool fee taken from the input
amount, the way Raydium CPMM pools charge it. The tolerance policy lives
here too: the minimum acceptable output of a plan, and the re-check that a
freshly fetched pool can still deliver it.
"""

from decimal import Decimal
from typing import Tuple

from .exceptions import SlippageExceeded
from .types import Direction, ExpectedOut, NormalizedPool, TradeLeg, TradePlan
from .utils import BPS_DENOMINATOR, bps_to_decimal, get_logger

logger = get_logger(__name__)


def swap_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee_bps: int
) -> Decimal:
    """
    Calculate the output of a constant-product swap.

    Formula (fee on input):
        amountInWithFee = amountIn * (1 - fee)
        amountOut = (amountInWithFee * reserveOut) / (reserveIn + amountInWithFee)

    Args:
        amount_in: Input amount
        reserve_in: Reserve of the input token
        reserve_out: Reserve of the output token
        fee_bps: Pool fee in basis points

    Returns:
        Output amount in the units of ``reserve_out``

    Raises:
        ValueError: If inputs are invalid (negative amount, zero reserves, etc.)
    """
    if amount_in < 0:
        raise ValueError(f"amount_in must not be negative: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if fee_bps < 0 or fee_bps >= 10000:
        raise ValueError(f"Fee must be in [0, 10000) bps: {fee_bps}")

    amount_in_with_fee = amount_in * (Decimal(1) - bps_to_decimal(fee_bps))

    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in + amount_in_with_fee

    return numerator / denominator


def quote(pool: NormalizedPool, amount_in: Decimal, reverse: bool = False) -> Decimal:
    """
    Quote ``amount_in`` against ``pool``.

    ``reverse=False`` swaps ``mint_in -> mint_out``; ``reverse=True`` swaps
    ``mint_out -> mint_in``.
    """
    if reverse:
        return swap_out(amount_in, pool.reserve_out, pool.reserve_in, pool.fee_bps)
    return swap_out(amount_in, pool.reserve_in, pool.reserve_out, pool.fee_bps)


def expected_outputs(
    pool_a: NormalizedPool, pool_b: NormalizedPool, amount_in: Decimal
) -> ExpectedOut:
    """``mint_out`` each pool pays for ``amount_in`` of ``mint_in``."""
    return ExpectedOut(
        pool_a=quote(pool_a, amount_in), pool_b=quote(pool_b, amount_in)
    )


def min_out(expected: Decimal, slippage_bps: int) -> Decimal:
    """Minimum acceptable output: ``expected * (10000 - slippage_bps) / 10000``."""
    if slippage_bps < 0 or slippage_bps > 10000:
        raise ValueError(f"slippage_bps must be in [0, 10000]: {slippage_bps}")
    return expected * (BPS_DENOMINATOR - Decimal(slippage_bps)) / BPS_DENOMINATOR


def order_pools(
    pool_a: NormalizedPool, pool_b: NormalizedPool, direction: Direction
) -> Tuple[NormalizedPool, NormalizedPool]:
    """
    Return ``(sell_pool, buy_pool)``: ``mint_in`` is sold on the first and
    bought back on the second.
    """
    if direction is Direction.BUY_A_SELL_B:
        return pool_b, pool_a
    if direction is Direction.BUY_B_SELL_A:
        return pool_a, pool_b
    raise ValueError("No trade direction for equal prices")


def plan_trade(
    pool_a: NormalizedPool,
    pool_b: NormalizedPool,
    direction: Direction,
    amount_in: Decimal,
    slippage_bps: int,
) -> TradePlan:
    """
    Build the two-leg round trip for ``direction``.

    Leg one sells ``amount_in`` of ``mint_in`` for ``mint_out``; leg two
    spends the whole expected ``mint_out`` to buy ``mint_in`` back.
    """
    sell_pool, buy_pool = order_pools(pool_a, pool_b, direction)

    leg1_out = quote(sell_pool, amount_in)
    leg2_out = quote(buy_pool, leg1_out, reverse=True)

    sell_leg = TradeLeg(
        pool_id=sell_pool.pool_id,
        token_in=sell_pool.token_in,
        token_out=sell_pool.token_out,
        amount_in=amount_in,
        expected_out=leg1_out,
        decimals_in=sell_pool.decimals_in,
        decimals_out=sell_pool.decimals_out,
        accounts=dict(sell_pool.raw),
    )
    buy_leg = TradeLeg(
        pool_id=buy_pool.pool_id,
        token_in=buy_pool.token_out,
        token_out=buy_pool.token_in,
        amount_in=leg1_out,
        expected_out=leg2_out,
        decimals_in=buy_pool.decimals_out,
        decimals_out=buy_pool.decimals_in,
        accounts=buy_pool.flipped().raw,
    )

    plan = TradePlan(
        direction=direction,
        amount_in=amount_in,
        sell_leg=sell_leg,
        buy_leg=buy_leg,
        expected_out=leg2_out,
        min_out=min_out(leg2_out, slippage_bps),
        slippage_bps=slippage_bps,
    )
    logger.debug(
        f"Plan {direction.value}: sell {amount_in} on {sell_pool.pool_id} -> {leg1_out}, "
        f"buy back on {buy_pool.pool_id} -> {leg2_out} (min {plan.min_out})"
    )
    return plan


def requote(
    plan: TradePlan, fresh_a: NormalizedPool, fresh_b: NormalizedPool
) -> Decimal:
    """Final-leg output of ``plan`` against fresh pool state."""
    sell_pool, buy_pool = order_pools(fresh_a, fresh_b, plan.direction)
    leg1_out = quote(sell_pool, plan.amount_in)
    return quote(buy_pool, leg1_out, reverse=True)


def check_slippage(
    plan: TradePlan, fresh_a: NormalizedPool, fresh_b: NormalizedPool
) -> Decimal:
    """
    Pre-submission re-check of ``plan`` against freshly fetched pools.

    Returns:
        The re-quoted final output

    Raises:
        SlippageExceeded: If the re-quoted output is below ``plan.min_out``
    """
    current = requote(plan, fresh_a, fresh_b)
    if current < plan.min_out:
        raise SlippageExceeded(
            f"Re-quoted output {current} is below minimum {plan.min_out} "
            f"(expected {plan.expected_out}, tolerance {plan.slippage_bps} bps)",
            expected=plan.expected_out,
            minimum=plan.min_out,
            details={"requoted_out": current},
        )
    logger.debug(f"Slippage re-check passed: {current} >= {plan.min_out}")
    return current
