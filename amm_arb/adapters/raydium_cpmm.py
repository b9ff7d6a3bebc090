"""
Raydium CPMM pool data source.

Decodes the program's PoolState and AmmConfig accounts and the SPL token
vaults they point at, and turns them into a :class:`PoolSnapshot` in the
pool's native token order. Reserves exclude the protocol and fund fees
still sitting in the vaults, which are not available to traders.
"""

import hashlib
import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from ..exceptions import InvalidPoolData, RpcUnavailable
from ..types import PoolSnapshot
from ..utils import get_logger

logger = get_logger(__name__)

CPMM_PROGRAM_ID = Pubkey.from_string("CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C")


def account_discriminator(name: str) -> bytes:
    """First eight bytes of ``sha256("account:<Name>")``, as Anchor writes them."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


POOL_STATE_DISCRIMINATOR = account_discriminator("PoolState")
AMM_CONFIG_DISCRIMINATOR = account_discriminator("AmmConfig")

# discriminator, 10 pubkeys, 5 u8, 6 u64
POOL_STATE_LAYOUT = struct.Struct("<8s" + "32s" * 10 + "BBBBB" + "QQQQQQ")
# discriminator, bump, disable_create_pool, index, 4 u64 rates
AMM_CONFIG_LAYOUT = struct.Struct("<8sBBHQQQQ")
# SPL token account: mint, owner, amount
TOKEN_ACCOUNT_LAYOUT = struct.Struct("<32s32sQ")

# Raydium expresses fee rates in millionths
FEE_RATE_DENOMINATOR = 1_000_000
BPS_PER_FEE_RATE_UNIT = FEE_RATE_DENOMINATOR // 10_000


@dataclass(frozen=True)
class PoolState:
    """Decoded CPMM pool account."""

    amm_config: str
    pool_creator: str
    token0_vault: str
    token1_vault: str
    lp_mint: str
    token0_mint: str
    token1_mint: str
    token0_program: str
    token1_program: str
    observation_key: str
    auth_bump: int
    status: int
    lp_mint_decimals: int
    mint0_decimals: int
    mint1_decimals: int
    lp_supply: int
    protocol_fees_token0: int
    protocol_fees_token1: int
    fund_fees_token0: int
    fund_fees_token1: int
    open_time: int


@dataclass(frozen=True)
class AmmConfig:
    """Decoded CPMM fee configuration account."""

    bump: int
    disable_create_pool: bool
    index: int
    trade_fee_rate: int
    protocol_fee_rate: int
    fund_fee_rate: int
    create_pool_fee: int

    @property
    def fee_bps(self) -> int:
        return self.trade_fee_rate // BPS_PER_FEE_RATE_UNIT


def _pubkey(raw: bytes) -> str:
    return str(Pubkey.from_bytes(raw))


def _check_account(data: bytes, layout: struct.Struct, discriminator: bytes, what: str, pool_id: str):
    if len(data) < layout.size:
        raise InvalidPoolData(
            f"{what} account too short: {len(data)} < {layout.size} bytes",
            pool_id=pool_id,
        )
    if data[:8] != discriminator:
        raise InvalidPoolData(f"Account is not a {what}", pool_id=pool_id)


def decode_pool_state(data: bytes, pool_id: str = "") -> PoolState:
    """
    Raises:
        InvalidPoolData: If ``data`` is not a CPMM PoolState account
    """
    _check_account(data, POOL_STATE_LAYOUT, POOL_STATE_DISCRIMINATOR, "PoolState", pool_id)
    fields = POOL_STATE_LAYOUT.unpack_from(data)
    keys = [_pubkey(raw) for raw in fields[1:11]]
    return PoolState(*keys, *fields[11:])


def decode_amm_config(data: bytes, pool_id: str = "") -> AmmConfig:
    """
    Raises:
        InvalidPoolData: If ``data`` is not a CPMM AmmConfig account
    """
    _check_account(data, AMM_CONFIG_LAYOUT, AMM_CONFIG_DISCRIMINATOR, "AmmConfig", pool_id)
    _, bump, disable, index, trade, protocol, fund, create = AMM_CONFIG_LAYOUT.unpack_from(data)
    return AmmConfig(
        bump=bump,
        disable_create_pool=bool(disable),
        index=index,
        trade_fee_rate=trade,
        protocol_fee_rate=protocol,
        fund_fee_rate=fund,
        create_pool_fee=create,
    )


def decode_token_amount(data: bytes, pool_id: str = "") -> int:
    """Balance of an SPL token account, in raw units."""
    if len(data) < TOKEN_ACCOUNT_LAYOUT.size:
        raise InvalidPoolData(
            f"Token account too short: {len(data)} bytes", pool_id=pool_id
        )
    _, _, amount = TOKEN_ACCOUNT_LAYOUT.unpack_from(data)
    return amount


def tradable_reserve(vault_amount: int, protocol_fees: int, fund_fees: int, pool_id: str = "") -> int:
    """Vault balance minus the fees owed to the protocol and the fund."""
    reserve = vault_amount - protocol_fees - fund_fees
    if reserve <= 0:
        raise InvalidPoolData(
            f"No tradable reserve: vault {vault_amount}, protocol fees {protocol_fees}, "
            f"fund fees {fund_fees}",
            pool_id=pool_id,
        )
    return reserve


def build_snapshot(
    pool_id: str, state: PoolState, config: AmmConfig, vault0_amount: int, vault1_amount: int
) -> PoolSnapshot:
    """Combine decoded accounts into a snapshot in native token order."""
    reserve0 = tradable_reserve(
        vault0_amount, state.protocol_fees_token0, state.fund_fees_token0, pool_id
    )
    reserve1 = tradable_reserve(
        vault1_amount, state.protocol_fees_token1, state.fund_fees_token1, pool_id
    )

    raw: Dict[str, Any] = {
        "amm_config": state.amm_config,
        "observation_key": state.observation_key,
        "status": state.status,
        "trade_fee_rate": config.trade_fee_rate,
        "vault_in": state.token0_vault,
        "vault_out": state.token1_vault,
        "token_program_in": state.token0_program,
        "token_program_out": state.token1_program,
        "vault_amount_in": vault0_amount,
        "vault_amount_out": vault1_amount,
        "protocol_fees_in": state.protocol_fees_token0,
        "protocol_fees_out": state.protocol_fees_token1,
        "fund_fees_in": state.fund_fees_token0,
        "fund_fees_out": state.fund_fees_token1,
        "reserve_raw_in": reserve0,
        "reserve_raw_out": reserve1,
    }

    return PoolSnapshot(
        pool_id=pool_id,
        reserve_in=Decimal(reserve0) / (Decimal(10) ** state.mint0_decimals),
        reserve_out=Decimal(reserve1) / (Decimal(10) ** state.mint1_decimals),
        fee_bps=config.fee_bps,
        token_in=state.token0_mint,
        token_out=state.token1_mint,
        decimals_in=state.mint0_decimals,
        decimals_out=state.mint1_decimals,
        raw=raw,
    )


class RaydiumCpmmSource:
    """
    :class:`~amm_arb.interfaces.PoolDataSource` backed by a Solana RPC node.

    Two round trips per pool: the pool account, then its config and both
    vaults in one ``getMultipleAccounts`` call.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    async def fetch(self, pool_id: str) -> PoolSnapshot:
        address = _parse_address(pool_id)

        pool_data = (await self._get_accounts([address], pool_id))[0]
        if pool_data is None:
            raise InvalidPoolData("Pool account not found", pool_id=pool_id)
        state = decode_pool_state(pool_data, pool_id)

        config_data, vault0_data, vault1_data = await self._get_accounts(
            [
                Pubkey.from_string(state.amm_config),
                Pubkey.from_string(state.token0_vault),
                Pubkey.from_string(state.token1_vault),
            ],
            pool_id,
        )
        if config_data is None or vault0_data is None or vault1_data is None:
            raise InvalidPoolData(
                "Pool config or vault account not found", pool_id=pool_id
            )

        snapshot = build_snapshot(
            pool_id,
            state,
            decode_amm_config(config_data, pool_id),
            decode_token_amount(vault0_data, pool_id),
            decode_token_amount(vault1_data, pool_id),
        )
        logger.debug(
            f"Pool {pool_id}: {snapshot.reserve_in} {snapshot.token_in} / "
            f"{snapshot.reserve_out} {snapshot.token_out}, fee {snapshot.fee_bps} bps"
        )
        return snapshot

    async def _get_accounts(
        self, addresses: Sequence[Pubkey], pool_id: str
    ) -> List[Optional[bytes]]:
        try:
            resp = await self.client.get_multiple_accounts(list(addresses))
        except (SolanaRpcException, RPCException, OSError) as e:
            raise RpcUnavailable(
                f"Failed to fetch accounts for pool {pool_id}: {e}",
                endpoint=_endpoint(self.client),
            ) from e
        return [bytes(acc.data) if acc is not None else None for acc in resp.value]


def _parse_address(pool_id: str) -> Pubkey:
    try:
        return Pubkey.from_string(pool_id)
    except ValueError as e:
        raise InvalidPoolData(f"Not a valid address: {e}", pool_id=pool_id) from e


def _endpoint(client: AsyncClient) -> Optional[str]:
    provider = getattr(client, "_provider", None)
    return getattr(provider, "endpoint_uri", None)
