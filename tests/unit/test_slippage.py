"""
Unit tests for amm_arb/slippage.py

Quotes are checked against the constant-product formula with the fee
taken from the input amount.
"""

from decimal import Decimal

import pytest
from conftest import MINT_IN, MINT_OUT, make_pool

from amm_arb.exceptions import SlippageExceeded
from amm_arb.normalizer import normalize_pools
from amm_arb.slippage import (
    check_slippage,
    expected_outputs,
    min_out,
    order_pools,
    plan_trade,
    quote,
    swap_out,
)
from amm_arb.types import Direction


def _pools(a=("1000", "2000"), b=("1000", "2100"), fee_bps=0):
    return normalize_pools(
        make_pool("A", *a, fee_bps=fee_bps, raw={"vault_in": "VA_SOL", "vault_out": "VA_USDC"}),
        make_pool("B", *b, fee_bps=fee_bps, raw={"vault_in": "VB_SOL", "vault_out": "VB_USDC"}),
        MINT_IN,
        MINT_OUT,
    )


class TestSwapOut:
    def test_no_fee(self):
        out = swap_out(Decimal("10"), Decimal("1000"), Decimal("2100"), 0)
        assert out == Decimal("10") * Decimal("2100") / Decimal("1010")

    def test_fee_charged_on_input(self):
        out = swap_out(Decimal("100"), Decimal("1000"), Decimal("1000"), 30)
        with_fee = Decimal("99.7")
        assert out == with_fee * Decimal("1000") / (Decimal("1000") + with_fee)

    def test_zero_amount(self):
        assert swap_out(Decimal("0"), Decimal("1000"), Decimal("1000"), 30) == 0

    @pytest.mark.parametrize(
        "amount,reserve_in,reserve_out,fee",
        [
            ("-1", "1000", "1000", 0),
            ("1", "0", "1000", 0),
            ("1", "1000", "0", 0),
            ("1", "1000", "1000", 10000),
        ],
    )
    def test_invalid_inputs(self, amount, reserve_in, reserve_out, fee):
        with pytest.raises(ValueError):
            swap_out(Decimal(amount), Decimal(reserve_in), Decimal(reserve_out), fee)


class TestMinOut:
    def test_tolerance(self):
        assert min_out(Decimal("100"), 500) == Decimal("95")
        assert min_out(Decimal("100"), 0) == Decimal("100")
        assert min_out(Decimal("100"), 10000) == Decimal("0")

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            min_out(Decimal("100"), 10001)


class TestPlan:
    def test_expected_outputs(self):
        pool_a, pool_b = _pools()
        expected = expected_outputs(pool_a, pool_b, Decimal("10"))
        assert expected.pool_a == quote(pool_a, Decimal("10"))
        assert expected.pool_b == quote(pool_b, Decimal("10"))
        assert expected.pool_b > expected.pool_a

    def test_order_pools(self):
        pool_a, pool_b = _pools()
        assert order_pools(pool_a, pool_b, Direction.BUY_A_SELL_B) == (pool_b, pool_a)
        assert order_pools(pool_a, pool_b, Direction.BUY_B_SELL_A) == (pool_a, pool_b)
        with pytest.raises(ValueError):
            order_pools(pool_a, pool_b, Direction.NONE)

    def test_buy_a_sell_b_sells_on_b_first(self):
        pool_a, pool_b = _pools()

        plan = plan_trade(pool_a, pool_b, Direction.BUY_A_SELL_B, Decimal("10"), 100)

        assert plan.sell_leg.pool_id == "B"
        assert plan.sell_leg.token_in == MINT_IN
        assert plan.buy_leg.pool_id == "A"
        assert plan.buy_leg.token_in == MINT_OUT
        assert plan.buy_leg.token_out == MINT_IN
        assert plan.buy_leg.amount_in == plan.sell_leg.expected_out
        assert plan.expected_out == plan.buy_leg.expected_out
        assert plan.expected_out > Decimal("10")
        assert plan.min_out == min_out(plan.expected_out, 100)

    def test_leg_accounts_follow_leg_orientation(self):
        pool_a, pool_b = _pools()

        plan = plan_trade(pool_a, pool_b, Direction.BUY_A_SELL_B, Decimal("10"), 100)

        assert plan.sell_leg.accounts["vault_in"] == "VB_SOL"
        assert plan.buy_leg.accounts["vault_in"] == "VA_USDC"
        assert plan.buy_leg.accounts["vault_out"] == "VA_SOL"


class TestCheckSlippage:
    def test_unchanged_pools_pass(self):
        pool_a, pool_b = _pools()
        plan = plan_trade(pool_a, pool_b, Direction.BUY_A_SELL_B, Decimal("10"), 100)

        assert check_slippage(plan, pool_a, pool_b) == plan.expected_out

    def test_moved_pool_raises(self):
        pool_a, pool_b = _pools()
        plan = plan_trade(pool_a, pool_b, Direction.BUY_A_SELL_B, Decimal("10"), 100)
        moved_a, moved_b = _pools(a=("1000", "2500"))

        with pytest.raises(SlippageExceeded) as exc_info:
            check_slippage(plan, moved_a, moved_b)

        err = exc_info.value
        assert err.minimum == plan.min_out
        assert err.details["requoted_out"] < plan.min_out
