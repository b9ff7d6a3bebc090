"""
Profit and cost of a planned round trip.

Conversion policy:
- Gross profit is measured in ``mint_in``: the round trip starts and ends
  in it, so the two legs' own rates already express it there.
- Network costs are paid in the base asset (SOL) and stay in SOL.
- Net profit in ``mint_in`` exists only when ``mint_in`` is the base asset.
  Any other pairing would need a price source this engine does not have,
  so it is reported as ``None``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from .types import BASE_ASSET_MINT, LAMPORTS_PER_SOL, ArbConfig, TradePlan
from .utils import get_logger

logger = get_logger(__name__)

MICRO_LAMPORTS_PER_LAMPORT = Decimal(1_000_000)


@dataclass(frozen=True)
class FeeSchedule:
    """
    Network cost inputs for one run.

    Attributes:
        base_fee_lamports: Fee per signature
        signatures: Signatures on the transaction carrying both legs
        compute_unit_limit: Compute units requested; the priority fee is
            charged per requested unit
        account_rent_lamports: Rent for token accounts the trade must create
    """

    base_fee_lamports: int = 5_000
    signatures: int = 1
    compute_unit_limit: int = 400_000
    account_rent_lamports: int = 0

    def priority_fee_lamports(self, priority_fee_micro_lamports: int) -> Decimal:
        return (
            Decimal(priority_fee_micro_lamports)
            * Decimal(self.compute_unit_limit)
            / MICRO_LAMPORTS_PER_LAMPORT
        )

    def total_lamports(self, priority_fee_micro_lamports: int) -> Decimal:
        return (
            Decimal(self.base_fee_lamports * self.signatures)
            + self.priority_fee_lamports(priority_fee_micro_lamports)
            + Decimal(self.account_rent_lamports)
        )


@dataclass(frozen=True)
class ProfitBreakdown:
    """
    Attributes:
        gross_profit: Final output minus ``amount_in``, in ``mint_in``
        gross_profit_in_mint_out: The same amount valued at the sell leg's rate
        fee_cost_in_base_asset: Network cost in SOL
        net_profit_in_mint_in: ``gross - fees`` when ``mint_in`` is SOL, else None
    """

    gross_profit: Decimal
    gross_profit_in_mint_out: Decimal
    fee_cost_in_base_asset: Decimal
    net_profit_in_mint_in: Optional[Decimal]
    base_fee_cost: Decimal
    priority_fee_cost: Decimal
    rent_cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gross_profit": self.gross_profit,
            "gross_profit_in_mint_out": self.gross_profit_in_mint_out,
            "fee_cost_in_base_asset": self.fee_cost_in_base_asset,
            "net_profit_in_mint_in": self.net_profit_in_mint_in,
            "base_fee_cost": self.base_fee_cost,
            "priority_fee_cost": self.priority_fee_cost,
            "rent_cost": self.rent_cost,
        }

    def format_log(self) -> str:
        net = (
            f"{self.net_profit_in_mint_in:.9f}"
            if self.net_profit_in_mint_in is not None
            else "n/a"
        )
        return (
            f"Gross {self.gross_profit:.9f} (mint_in) - "
            f"Fees {self.fee_cost_in_base_asset:.9f} SOL = Net {net}"
        )


def fee_cost_in_base_asset(priority_fee: int, fees: FeeSchedule) -> Decimal:
    """Network cost of the round trip in SOL."""
    return fees.total_lamports(priority_fee) / LAMPORTS_PER_SOL


def compute_pnl(
    plan: TradePlan,
    config: ArbConfig,
    fees: FeeSchedule,
    base_mint: str = BASE_ASSET_MINT,
) -> ProfitBreakdown:
    """
    Compute the profit breakdown of ``plan``.

    Example:
        >>> # SOL round trip, 0.0011 SOL gross, default fees, no priority fee
        >>> # fee cost = 5000 lamports = 0.000005 SOL
        >>> # net = 0.0011 - 0.000005 = 0.001095 SOL
    """
    gross = plan.expected_out - plan.amount_in

    sell_rate = (
        plan.sell_leg.expected_out / plan.amount_in
        if plan.amount_in > 0
        else Decimal("0")
    )
    gross_in_out = gross * sell_rate

    base_cost = Decimal(fees.base_fee_lamports * fees.signatures) / LAMPORTS_PER_SOL
    priority_cost = fees.priority_fee_lamports(config.priority_fee) / LAMPORTS_PER_SOL
    rent_cost = Decimal(fees.account_rent_lamports) / LAMPORTS_PER_SOL
    fee_cost = fee_cost_in_base_asset(config.priority_fee, fees)

    net = gross - fee_cost if config.mint_in == base_mint else None

    breakdown = ProfitBreakdown(
        gross_profit=gross,
        gross_profit_in_mint_out=gross_in_out,
        fee_cost_in_base_asset=fee_cost,
        net_profit_in_mint_in=net,
        base_fee_cost=base_cost,
        priority_fee_cost=priority_cost,
        rent_cost=rent_cost,
    )
    logger.debug(breakdown.format_log())
    return breakdown
