"""Shared fixtures and factories for the arbitrage tests."""

from decimal import Decimal
from pathlib import Path

import pytest

from amm_arb.settings import RunConfig
from amm_arb.types import BASE_ASSET_MINT, ArbConfig, PoolSnapshot

MINT_IN = BASE_ASSET_MINT
MINT_OUT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"


def make_pool(
    pool_id="A",
    reserve_in="1000",
    reserve_out="2000",
    fee_bps=0,
    token_in=MINT_IN,
    token_out=MINT_OUT,
    decimals_in=9,
    decimals_out=6,
    raw=None,
):
    return PoolSnapshot(
        pool_id=pool_id,
        reserve_in=Decimal(reserve_in),
        reserve_out=Decimal(reserve_out),
        fee_bps=fee_bps,
        token_in=token_in,
        token_out=token_out,
        decimals_in=decimals_in,
        decimals_out=decimals_out,
        raw=raw or {},
    )


def make_arb_config(**overrides):
    values = dict(
        mint_in=MINT_IN,
        mint_out=MINT_OUT,
        amount_in=Decimal("10"),
        spread_threshold_bps=100,
        slippage_bps=100,
        priority_fee=0,
        simulate_only=True,
    )
    values.update(overrides)
    return ArbConfig(**values)


def make_run_config(report_path, **overrides):
    return RunConfig(
        arb=make_arb_config(**overrides),
        pool_a="A",
        pool_b="B",
        rpc_url="http://localhost:8899",
        keypair_path=Path("/nonexistent/id.json"),
        report_path=Path(report_path),
    )


@pytest.fixture
def pool_a():
    return make_pool("A", "1000", "2000")


@pytest.fixture
def pool_b():
    return make_pool("B", "1000", "2100")


@pytest.fixture
def arb_config():
    return make_arb_config()
