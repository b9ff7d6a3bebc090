"""
Unit tests for amm_arb/normalizer.py
"""

from decimal import Decimal

import pytest
from conftest import MINT_IN, MINT_OUT, OTHER_MINT, make_pool

from amm_arb.exceptions import InvalidPoolData, MintMismatch
from amm_arb.normalizer import normalize_pool, normalize_pools
from amm_arb.types import NormalizedPool


def test_matching_orientation_is_kept():
    pool = make_pool("A", "1000", "2000", fee_bps=25)

    normalized = normalize_pool(pool, MINT_IN, MINT_OUT)

    assert isinstance(normalized, NormalizedPool)
    assert normalized.token_in == MINT_IN
    assert normalized.reserve_in == Decimal("1000")
    assert normalized.reserve_out == Decimal("2000")
    assert normalized.fee_bps == 25


def test_reversed_pool_is_flipped():
    pool = make_pool(
        "A",
        "2000",
        "1000",
        token_in=MINT_OUT,
        token_out=MINT_IN,
        decimals_in=6,
        decimals_out=9,
        raw={"vault_in": "V_USDC", "vault_out": "V_SOL", "amm_config": "CFG"},
    )

    normalized = normalize_pool(pool, MINT_IN, MINT_OUT)

    assert normalized.token_in == MINT_IN
    assert normalized.token_out == MINT_OUT
    assert normalized.reserve_in == Decimal("1000")
    assert normalized.reserve_out == Decimal("2000")
    assert normalized.decimals_in == 9
    assert normalized.decimals_out == 6
    assert normalized.raw == {"vault_in": "V_SOL", "vault_out": "V_USDC", "amm_config": "CFG"}


def test_normalize_is_idempotent():
    pool = make_pool("A", "2000", "1000", token_in=MINT_OUT, token_out=MINT_IN)

    once = normalize_pool(pool, MINT_IN, MINT_OUT)
    twice = normalize_pool(once, MINT_IN, MINT_OUT)

    assert once == twice


def test_foreign_pair_raises_mint_mismatch():
    pool = make_pool("B", token_in=OTHER_MINT, token_out=MINT_OUT)

    with pytest.raises(MintMismatch) as exc_info:
        normalize_pool(pool, MINT_IN, MINT_OUT)

    err = exc_info.value
    assert err.pool_id == "B"
    assert err.expected == (MINT_IN, MINT_OUT)
    assert err.actual == (OTHER_MINT, MINT_OUT)
    assert err.reason.startswith("MintMismatch: ")


def test_zero_reserve_is_invalid():
    pool = make_pool("A", "0", "2000")

    with pytest.raises(InvalidPoolData):
        normalize_pool(pool, MINT_IN, MINT_OUT)


def test_fee_out_of_range_is_invalid():
    pool = make_pool("A", fee_bps=10000)

    with pytest.raises(InvalidPoolData):
        normalize_pool(pool, MINT_IN, MINT_OUT)


def test_normalize_pools_reports_offending_pool():
    good = make_pool("A")
    bad = make_pool("B", token_in=OTHER_MINT, token_out=MINT_IN)

    with pytest.raises(MintMismatch) as exc_info:
        normalize_pools(good, bad, MINT_IN, MINT_OUT)

    assert exc_info.value.pool_id == "B"
