"""
Solana node helpers shared by the data source and the executor:
startup health check, keypair loading, associated token accounts and the
rent they cost to create.
"""

import json
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID

from ..exceptions import ConfigValidationError, RpcUnavailable
from ..pnl import FeeSchedule
from ..settings import RunConfig
from ..types import NormalizedPool
from ..utils import get_logger

logger = get_logger(__name__)

TOKEN_ACCOUNT_SIZE = 165


def load_keypair(path: Union[str, Path]) -> Keypair:
    """
    Read a keypair stored as a JSON array of 64 secret key bytes.

    Raises:
        ConfigValidationError: If the file is missing or malformed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except (OSError, ValueError, TypeError) as e:
        raise ConfigValidationError(
            f"Failed to read keypair {path}: {e}", field="keypair_path"
        ) from e


def associated_token_address(owner: Pubkey, mint: Pubkey, token_program: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(token_program), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM_ID
    )
    return address


class SolanaChain:
    """Thin wrapper over an :class:`AsyncClient` mapping failures to RpcUnavailable."""

    def __init__(self, client: AsyncClient, rpc_url: str = ""):
        self.client = client
        self.rpc_url = rpc_url

    async def check_health(self) -> None:
        """
        Raises:
            ConfigValidationError: If the node does not answer a health check
        """
        try:
            healthy = await self.client.is_connected()
        except (SolanaRpcException, RPCException, OSError) as e:
            logger.debug(f"Health check error: {e}")
            healthy = False
        if not healthy:
            raise ConfigValidationError(
                f"RPC node unreachable or unhealthy: {self.rpc_url}", field="rpc_url"
            )
        logger.info(f"✓ Connected to {self.rpc_url}")

    async def token_account_rent(self) -> int:
        """Lamports needed to make a token account rent exempt."""
        try:
            resp = await self.client.get_minimum_balance_for_rent_exemption(
                TOKEN_ACCOUNT_SIZE
            )
        except (SolanaRpcException, RPCException, OSError) as e:
            raise RpcUnavailable(f"Failed to fetch rent: {e}", endpoint=self.rpc_url) from e
        return resp.value

    async def missing_token_accounts(
        self, owner: Pubkey, mints: Iterable[Tuple[str, str]]
    ) -> List[str]:
        """
        Mints among ``(mint, token_program)`` pairs for which ``owner`` has no
        associated token account yet.
        """
        mints = list(dict.fromkeys(mints))
        addresses = [
            associated_token_address(
                owner, Pubkey.from_string(mint), Pubkey.from_string(program)
            )
            for mint, program in mints
        ]
        try:
            resp = await self.client.get_multiple_accounts(addresses)
        except (SolanaRpcException, RPCException, OSError) as e:
            raise RpcUnavailable(
                f"Failed to look up token accounts: {e}", endpoint=self.rpc_url
            ) from e
        return [mint for (mint, _), acc in zip(mints, resp.value) if acc is None]


def leg_mints(pool: NormalizedPool) -> List[Tuple[str, str]]:
    """``(mint, token_program)`` for both sides of a normalized pool."""
    return [
        (pool.token_in, pool.raw["token_program_in"]),
        (pool.token_out, pool.raw["token_program_out"]),
    ]


class ChainFeeEstimator:
    """
    Builds the run's :class:`FeeSchedule`: one signature, the default compute
    unit limit, and rent for every token account the trade must create.
    """

    def __init__(self, chain: SolanaChain, owner: Pubkey):
        self.chain = chain
        self.owner = owner

    async def estimate(
        self, pool_a: NormalizedPool, pool_b: NormalizedPool, config: RunConfig
    ) -> FeeSchedule:
        missing = await self.chain.missing_token_accounts(
            self.owner, leg_mints(pool_a) + leg_mints(pool_b)
        )
        if not missing:
            return FeeSchedule()
        rent = await self.chain.token_account_rent()
        logger.info(f"Token accounts to create: {len(missing)} ({rent} lamports each)")
        return FeeSchedule(account_rent_lamports=rent * len(missing))
