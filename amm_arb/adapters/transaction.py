"""
Arbitrage transaction assembly.

Both legs go into one versioned transaction so the round trip is atomic:
either both swaps land or neither does. Layout:

1. Compute budget (unit limit, unit price)
2. Associated token accounts the payer is missing; wrapped SOL is funded
   and synced when its account is created here
3. ``swap_base_input`` on the sell pool (``mint_in -> mint_out``)
4. ``swap_base_input`` on the buy pool (``mint_out -> mint_in``), bounded
   by the plan's ``min_out``
"""

import hashlib
import struct
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, List

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import SyncNativeParams, sync_native

from ..exceptions import ExecutionError
from ..types import BASE_ASSET_MINT, TradeLeg, TradePlan
from .chain import associated_token_address
from .raydium_cpmm import CPMM_PROGRAM_ID

COMPUTE_UNIT_LIMIT = 400_000

AUTHORITY_SEED = b"vault_and_lp_mint_auth_seed"
SWAP_BASE_INPUT_DISCRIMINATOR = hashlib.sha256(b"global:swap_base_input").digest()[:8]

# Associated token program instruction index for CreateIdempotent
CREATE_IDEMPOTENT = bytes([1])

U64_MAX = 2**64 - 1


def pool_authority() -> Pubkey:
    authority, _ = Pubkey.find_program_address([AUTHORITY_SEED], CPMM_PROGRAM_ID)
    return authority


def to_raw_amount(amount: Decimal, decimals: int) -> int:
    """
    UI amount to integer base units, rounding down.

    Raises:
        ExecutionError: If the amount does not fit an unsigned 64-bit integer
    """
    raw = int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))
    if raw < 0 or raw > U64_MAX:
        raise ExecutionError(
            f"Amount {amount} with {decimals} decimals is outside the u64 range",
            details={"raw_amount": raw},
        )
    return raw


def create_ata_idempotent(
    payer: Pubkey, owner: Pubkey, mint: Pubkey, token_program: Pubkey
) -> Instruction:
    ata = associated_token_address(owner, mint, token_program)
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        CREATE_IDEMPOTENT,
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(ata, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=False, is_writable=False),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def swap_base_input(
    payer: Pubkey, leg: TradeLeg, amount_in: int, minimum_out: int
) -> Instruction:
    """
    Raydium CPMM ``swap_base_input`` for one leg. The leg's ``accounts``
    must carry the pool's vaults, token programs, config and observation
    account oriented to the leg.
    """
    try:
        acc = leg.accounts
        program_in = Pubkey.from_string(acc["token_program_in"])
        program_out = Pubkey.from_string(acc["token_program_out"])
        amm_config = Pubkey.from_string(acc["amm_config"])
        vault_in = Pubkey.from_string(acc["vault_in"])
        vault_out = Pubkey.from_string(acc["vault_out"])
        observation = Pubkey.from_string(acc["observation_key"])
    except (KeyError, ValueError) as e:
        raise ExecutionError(
            f"Pool {leg.pool_id} is missing account metadata: {e}"
        ) from e

    mint_in = Pubkey.from_string(leg.token_in)
    mint_out = Pubkey.from_string(leg.token_out)
    data = SWAP_BASE_INPUT_DISCRIMINATOR + struct.pack("<QQ", amount_in, minimum_out)

    return Instruction(
        CPMM_PROGRAM_ID,
        data,
        [
            AccountMeta(payer, is_signer=True, is_writable=False),
            AccountMeta(pool_authority(), is_signer=False, is_writable=False),
            AccountMeta(amm_config, is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(leg.pool_id), is_signer=False, is_writable=True),
            AccountMeta(
                associated_token_address(payer, mint_in, program_in),
                is_signer=False,
                is_writable=True,
            ),
            AccountMeta(
                associated_token_address(payer, mint_out, program_out),
                is_signer=False,
                is_writable=True,
            ),
            AccountMeta(vault_in, is_signer=False, is_writable=True),
            AccountMeta(vault_out, is_signer=False, is_writable=True),
            AccountMeta(program_in, is_signer=False, is_writable=False),
            AccountMeta(program_out, is_signer=False, is_writable=False),
            AccountMeta(mint_in, is_signer=False, is_writable=False),
            AccountMeta(mint_out, is_signer=False, is_writable=False),
            AccountMeta(observation, is_signer=False, is_writable=True),
        ],
    )


def build_instructions(
    payer: Pubkey,
    plan: TradePlan,
    priority_fee: int,
    missing_mints: Iterable[str] = (),
) -> List[Instruction]:
    """
    Instructions for the full round trip.

    The sell leg accepts any output (its result is only an intermediate
    balance); the buy leg spends exactly the sell leg's expected output and
    must return at least ``plan.min_out``.
    """
    sell, buy = plan.sell_leg, plan.buy_leg
    instructions = [
        set_compute_unit_limit(COMPUTE_UNIT_LIMIT),
        set_compute_unit_price(priority_fee),
    ]

    sell_in_raw = to_raw_amount(plan.amount_in, sell.decimals_in)
    programs = {
        sell.token_in: sell.accounts.get("token_program_in", str(TOKEN_PROGRAM_ID)),
        sell.token_out: sell.accounts.get("token_program_out", str(TOKEN_PROGRAM_ID)),
    }
    for mint in missing_mints:
        mint_key = Pubkey.from_string(mint)
        program = Pubkey.from_string(programs.get(mint, str(TOKEN_PROGRAM_ID)))
        instructions.append(create_ata_idempotent(payer, payer, mint_key, program))
        if mint == BASE_ASSET_MINT and mint == sell.token_in:
            wsol_account = associated_token_address(payer, mint_key, program)
            instructions.append(
                transfer(
                    TransferParams(
                        from_pubkey=payer, to_pubkey=wsol_account, lamports=sell_in_raw
                    )
                )
            )
            instructions.append(
                sync_native(SyncNativeParams(program_id=program, account=wsol_account))
            )

    instructions.append(swap_base_input(payer, sell, sell_in_raw, 0))
    instructions.append(
        swap_base_input(
            payer,
            buy,
            to_raw_amount(sell.expected_out, buy.decimals_in),
            to_raw_amount(plan.min_out, buy.decimals_out),
        )
    )
    return instructions


def build_transaction(
    payer: Keypair,
    plan: TradePlan,
    priority_fee: int,
    recent_blockhash: Hash,
    missing_mints: Iterable[str] = (),
) -> VersionedTransaction:
    """Compile and sign the round trip as a v0 transaction."""
    instructions = build_instructions(payer.pubkey(), plan, priority_fee, missing_mints)
    message = MessageV0.try_compile(payer.pubkey(), instructions, [], recent_blockhash)
    return VersionedTransaction(message, [payer])
