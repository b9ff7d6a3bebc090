"""
Implied prices and the relative spread between two normalized pools.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from .types import Direction, NormalizedPool
from .utils import BPS_DENOMINATOR, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SpreadAnalysis:
    """
    Prices are ``mint_out`` per ``mint_in``; ``spread_bps`` is floored.
    """

    price_a: Decimal
    price_b: Decimal
    spread_bps: int
    direction: Direction


def implied_price(pool: NormalizedPool) -> Decimal:
    """Spot price of the pool: out-asset per in-asset."""
    return pool.reserve_out / pool.reserve_in


def spread_bps(price_a: Decimal, price_b: Decimal) -> int:
    """
    Relative spread ``|pa - pb| / min(pa, pb)`` in whole basis points,
    rounded down.
    """
    if price_a == price_b:
        return 0
    raw = abs(price_a - price_b) / min(price_a, price_b) * BPS_DENOMINATOR
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def direction_for(price_a: Decimal, price_b: Decimal) -> Direction:
    """
    A lower price means ``mint_in`` buys fewer ``mint_out`` there, i.e.
    ``mint_in`` is cheap on that pool: buy it there, sell it on the other.
    """
    if price_a < price_b:
        return Direction.BUY_A_SELL_B
    if price_a > price_b:
        return Direction.BUY_B_SELL_A
    return Direction.NONE


def analyze_spread(pool_a: NormalizedPool, pool_b: NormalizedPool) -> SpreadAnalysis:
    """Price both pools and measure the gap between them."""
    price_a = implied_price(pool_a)
    price_b = implied_price(pool_b)
    direction = direction_for(price_a, price_b)
    bps = spread_bps(price_a, price_b) if direction is not Direction.NONE else 0

    logger.debug(
        f"Spread: price_a={price_a:.9f} price_b={price_b:.9f} "
        f"spread={bps} bps direction={direction.value}"
    )
    return SpreadAnalysis(
        price_a=price_a, price_b=price_b, spread_bps=bps, direction=direction
    )
