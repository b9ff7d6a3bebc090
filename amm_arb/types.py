"""
Core data types for two-pool CPMM arbitrage.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, getcontext
from enum import Enum
from typing import Any, Dict

from .exceptions import ConfigValidationError

# High precision for all reserve and price math
getcontext().prec = 50

# Wrapped SOL: the asset network fees are paid in
BASE_ASSET_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = Decimal(1_000_000_000)


class Direction(str, Enum):
    """Which pool the input asset is bought on and which it is sold on."""

    BUY_A_SELL_B = "BuyA_SellB"
    BUY_B_SELL_A = "BuyB_SellA"
    NONE = "None"


class Decision(str, Enum):
    """Terminal state of one run."""

    NO_OPPORTUNITY = "NoOpportunity"
    SIMULATE_ONLY = "SimulateOnly"
    EXECUTED = "Executed"
    FAILED = "Failed"


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Reserve and fee data for one pool, in the pool's native token order.

    Attributes:
        pool_id: On-chain address of the pool state account
        reserve_in: Reserve of ``token_in`` in UI units (raw / 10**decimals)
        reserve_out: Reserve of ``token_out`` in UI units
        fee_bps: Trade fee in basis points, charged on the swap input
        token_in: Mint of the pool's first token
        token_out: Mint of the pool's second token
        decimals_in: Decimals of ``token_in``
        decimals_out: Decimals of ``token_out``
        raw: Decoded on-chain values kept for the report, keyed with
            ``_in``/``_out`` suffixes so normalization can swap them
    """

    pool_id: str
    reserve_in: Decimal
    reserve_out: Decimal
    fee_bps: int
    token_in: str
    token_out: str
    decimals_in: int = 0
    decimals_out: int = 0
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    def flipped(self) -> "PoolSnapshot":
        """Same pool seen from the other side."""
        return replace(
            self,
            reserve_in=self.reserve_out,
            reserve_out=self.reserve_in,
            token_in=self.token_out,
            token_out=self.token_in,
            decimals_in=self.decimals_out,
            decimals_out=self.decimals_in,
            raw=_swap_sides(self.raw),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "reserve_in": self.reserve_in,
            "reserve_out": self.reserve_out,
            "decimals_in": self.decimals_in,
            "decimals_out": self.decimals_out,
            "fee_bps": self.fee_bps,
            "raw": dict(self.raw),
        }


@dataclass(frozen=True)
class NormalizedPool(PoolSnapshot):
    """A PoolSnapshot whose ``token_in`` equals the configured ``mint_in``."""


@dataclass(frozen=True)
class ArbConfig:
    """
    Trading parameters for one run.

    Attributes:
        mint_in: Mint of the asset the trade starts and ends in
        mint_out: Mint of the intermediate asset
        amount_in: Trade size in UI units of ``mint_in``
        spread_threshold_bps: Minimum spread required to act
        slippage_bps: Tolerance applied to the expected output
        priority_fee: Compute unit price in micro-lamports
        simulate_only: Simulate instead of submitting
    """

    mint_in: str
    mint_out: str
    amount_in: Decimal
    spread_threshold_bps: int
    slippage_bps: int
    priority_fee: int
    simulate_only: bool

    def __post_init__(self):
        if self.mint_in == self.mint_out:
            raise ConfigValidationError(
                f"mint_in and mint_out must differ: {self.mint_in}", field="mint_out"
            )
        if not self.amount_in.is_finite() or self.amount_in < 0:
            raise ConfigValidationError(
                f"amount_in must be a finite, non-negative amount: {self.amount_in}",
                field="amount_in",
            )
        if self.spread_threshold_bps < 0:
            raise ConfigValidationError(
                f"spread_threshold_bps must not be negative: {self.spread_threshold_bps}",
                field="spread_threshold_bps",
            )
        if not 0 <= self.slippage_bps <= 10000:
            raise ConfigValidationError(
                f"slippage_bps must be in [0, 10000]: {self.slippage_bps}",
                field="slippage_bps",
            )
        if self.priority_fee < 0:
            raise ConfigValidationError(
                f"priority_fee must not be negative: {self.priority_fee}",
                field="priority_fee",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint_in": self.mint_in,
            "mint_out": self.mint_out,
            "amount_in": self.amount_in,
            "spread_threshold_bps": self.spread_threshold_bps,
            "slippage_bps": self.slippage_bps,
            "priority_fee": self.priority_fee,
            "simulate_only": self.simulate_only,
        }


@dataclass(frozen=True)
class ExpectedOut:
    """Quoted ``mint_out`` received for ``amount_in`` on each pool."""

    pool_a: Decimal
    pool_b: Decimal


@dataclass(frozen=True)
class TradeLeg:
    """
    One swap of the round trip.

    ``accounts`` holds the pool's on-chain metadata oriented to this leg
    (``vault_in`` is the vault receiving ``token_in``).
    """

    pool_id: str
    token_in: str
    token_out: str
    amount_in: Decimal
    expected_out: Decimal
    decimals_in: int = 0
    decimals_out: int = 0
    accounts: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class TradePlan:
    """
    Sell ``mint_in`` on the dear pool, buy it back on the cheap pool.

    ``min_out`` bounds the final (buy-back) leg.
    """

    direction: Direction
    amount_in: Decimal
    sell_leg: TradeLeg
    buy_leg: TradeLeg
    expected_out: Decimal
    min_out: Decimal
    slippage_bps: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "amount_in": self.amount_in,
            "sell_leg": self.sell_leg,
            "buy_leg": self.buy_leg,
            "expected_out": self.expected_out,
            "min_out": self.min_out,
            "slippage_bps": self.slippage_bps,
        }


def _swap_sides(raw: Dict[str, Any]) -> Dict[str, Any]:
    swapped = {}
    for key, value in raw.items():
        if key.endswith("_in"):
            swapped[key[:-3] + "_out"] = value
        elif key.endswith("_out"):
            swapped[key[:-4] + "_in"] = value
        else:
            swapped[key] = value
    return swapped
