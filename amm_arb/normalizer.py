"""
Pool orientation.

Both pools must be read with the configured ``mint_in`` as the input token
before their prices can be compared. The trade fee is charged on whatever
side is the input, so flipping a pool only swaps reserves and per-token
metadata.
"""

from typing import Tuple

from .exceptions import InvalidPoolData, MintMismatch
from .types import NormalizedPool, PoolSnapshot


def validate_snapshot(snapshot: PoolSnapshot) -> None:
    """Reject snapshots whose reserves cannot be priced."""
    if snapshot.reserve_in <= 0 or snapshot.reserve_out <= 0:
        raise InvalidPoolData(
            f"Pool {snapshot.pool_id} has non-positive reserves: "
            f"in={snapshot.reserve_in}, out={snapshot.reserve_out}",
            pool_id=snapshot.pool_id,
        )
    if snapshot.fee_bps < 0 or snapshot.fee_bps >= 10000:
        raise InvalidPoolData(
            f"Pool {snapshot.pool_id} has fee outside [0, 10000) bps: {snapshot.fee_bps}",
            pool_id=snapshot.pool_id,
        )


def normalize_pool(
    snapshot: PoolSnapshot, mint_in: str, mint_out: str
) -> NormalizedPool:
    """
    Orient ``snapshot`` so that ``token_in == mint_in``.

    Idempotent: a pool already in the configured orientation is returned
    unchanged (as a NormalizedPool).

    Raises:
        MintMismatch: If the pool's pair is not ``{mint_in, mint_out}``
        InvalidPoolData: If a reserve is not strictly positive
    """
    pair = (snapshot.token_in, snapshot.token_out)
    if pair == (mint_in, mint_out):
        oriented = snapshot
    elif pair == (mint_out, mint_in):
        oriented = snapshot.flipped()
    else:
        raise MintMismatch(
            f"Pool {snapshot.pool_id} trades {snapshot.token_in}/{snapshot.token_out}, "
            f"expected {mint_in}/{mint_out}",
            pool_id=snapshot.pool_id,
            expected=(mint_in, mint_out),
            actual=pair,
        )

    validate_snapshot(oriented)

    return NormalizedPool(
        pool_id=oriented.pool_id,
        reserve_in=oriented.reserve_in,
        reserve_out=oriented.reserve_out,
        fee_bps=oriented.fee_bps,
        token_in=oriented.token_in,
        token_out=oriented.token_out,
        decimals_in=oriented.decimals_in,
        decimals_out=oriented.decimals_out,
        raw=dict(oriented.raw),
    )


def normalize_pools(
    pool_a: PoolSnapshot, pool_b: PoolSnapshot, mint_in: str, mint_out: str
) -> Tuple[NormalizedPool, NormalizedPool]:
    """Normalize both pools of the pair; pool A is checked first."""
    return (
        normalize_pool(pool_a, mint_in, mint_out),
        normalize_pool(pool_b, mint_in, mint_out),
    )
