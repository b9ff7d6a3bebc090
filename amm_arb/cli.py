"""
Command line interface.

Usage:
    amm-arb                                  # one run with persisted settings
    amm-arb --amount-in 0.5 --simulate-only false
    amm-arb config show
    amm-arb config set slippage_bps 300
    amm-arb config set-pools <POOL_A> <POOL_B> --mint-in <MINT>
    amm-arb config unset priority_fee
    amm-arb config reset-defaults
    amm-arb keygen ~/.config/solana/arb.json

Exit codes: 0 when a run completes with any decision (the decision is in
the report), 1 on configuration errors, 2 when keygen refuses to overwrite.
"""

import argparse
import asyncio
import os
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.keypair import Keypair

from . import logging_config
from .adapters import (
    ChainFeeEstimator,
    RaydiumCpmmSource,
    RpcExecutionAdapter,
    SolanaChain,
    load_keypair,
)
from .exceptions import ArbitrageError, ConfigValidationError
from .keygen import generate_keypair_file
from .report import ArbitrageReport
from .runner import ArbRunner
from .settings import (
    RunConfig,
    Settings,
    configure_pools,
    default_settings,
    load_settings,
    merge_settings,
    reset_defaults,
    resolve_run_config,
    save_settings,
    state_file_path,
    update_setting,
)
from .types import PoolSnapshot
from .utils import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_REFUSED = 2
EXIT_INTERRUPTED = 130


def non_negative_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if not parsed.is_finite() or parsed < 0:
        raise argparse.ArgumentTypeError(f"must be a finite, non-negative number: {value}")
    return parsed


def str_to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amm-arb",
        description="Two-pool Raydium CPMM arbitrage: analyze, simulate or execute one run",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze and simulate with persisted settings
  amm-arb

  # Execute for real with a larger size
  amm-arb --amount-in 0.5 --simulate-only false

  # Inspect or change persisted settings
  amm-arb config show
  amm-arb config set spread_threshold_bps 50
  amm-arb config set-pools <POOL_A> <POOL_B>
        """,
    )

    run = parser.add_argument_group("run overrides (take precedence over persisted settings)")
    run.add_argument("--rpc-url", help="Solana RPC endpoint")
    run.add_argument("--keypair", dest="keypair_path", help="Path to the payer keypair JSON")
    run.add_argument("--amount-in", type=non_negative_decimal, help="Trade size in mint_in")
    run.add_argument(
        "--spread-threshold-bps", type=int, help="Minimum spread to act on, in bps"
    )
    run.add_argument("--slippage-bps", type=int, help="Slippage tolerance in bps")
    run.add_argument(
        "--priority-fee", type=int, help="Compute unit price in micro-lamports"
    )
    run.add_argument(
        "--simulate-only",
        type=str_to_bool,
        metavar="{true,false}",
        help="Simulate instead of submitting",
    )
    run.add_argument("--pool-a", help="First pool address")
    run.add_argument("--pool-b", help="Second pool address")
    run.add_argument("--mint-in", help="Mint the round trip starts and ends in")
    run.add_argument("--mint-out", help="Intermediate mint")
    run.add_argument("--report-path", help="Where to write the JSON report")
    parser.add_argument(
        "--state-file",
        help="Persisted settings file (default: $AMM_ARB_STATE or ~/.config/amm-arb/state.yaml)",
    )

    sub = parser.add_subparsers(dest="command")

    # --state-file is also accepted after the config subcommands
    state_file = argparse.ArgumentParser(add_help=False)
    state_file.add_argument(
        "--state-file", default=argparse.SUPPRESS, help="Persisted settings file"
    )

    config = sub.add_parser(
        "config", parents=[state_file], help="Show or edit persisted settings"
    )
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", parents=[state_file], help="Print persisted settings")
    config_sub.add_parser(
        "reset-defaults",
        parents=[state_file],
        help="Overwrite persisted settings with defaults",
    )
    set_parser = config_sub.add_parser("set", parents=[state_file], help="Persist one setting")
    set_parser.add_argument("field", help="Setting name, e.g. slippage_bps")
    set_parser.add_argument("value", help="New value")
    unset_parser = config_sub.add_parser(
        "unset", parents=[state_file], help="Clear one persisted setting"
    )
    unset_parser.add_argument("field", help="Setting name")
    pools_parser = config_sub.add_parser(
        "set-pools",
        parents=[state_file],
        help="Set both pools and adopt the pair they trade (reads the chain)",
    )
    pools_parser.add_argument("pools", nargs=2, metavar=("POOL_A", "POOL_B"))
    pools_parser.add_argument(
        "--mint-in",
        dest="pair_mint_in",
        help="Which of the pair's mints the round trip starts in",
    )

    keygen = sub.add_parser("keygen", help="Generate a new payer keypair")
    keygen.add_argument("path", nargs="?", help="Output path (default: ~/.config/solana/id.json)")

    return parser


def overrides_from_args(args: argparse.Namespace) -> Settings:
    """
    Raises:
        ConfigValidationError: If a flag value is out of range
    """
    values = {
        name: getattr(args, name)
        for name in Settings.model_fields
        if getattr(args, name, None) is not None
    }
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid command line value: {e}") from e


async def check_rpc_url(rpc_url: str) -> None:
    """
    Raises:
        ConfigValidationError: If the node fails its health check
    """
    async with AsyncClient(rpc_url, commitment=Confirmed) as client:
        await SolanaChain(client, rpc_url).check_health()


async def fetch_pool_pair(
    rpc_url: str, pool_a: str, pool_b: str
) -> Tuple[PoolSnapshot, PoolSnapshot]:
    """
    Raises:
        ConfigValidationError: If the node fails its health check
        RpcUnavailable: If a pool cannot be fetched
        InvalidPoolData: If an address is not a CPMM pool
    """
    async with AsyncClient(rpc_url, commitment=Confirmed) as client:
        await SolanaChain(client, rpc_url).check_health()
        source = RaydiumCpmmSource(client)
        return await source.fetch(pool_a), await source.fetch(pool_b)


def validate_setting(settings: Settings, name: str) -> None:
    """
    Check a newly set value against the outside world.

    Raises:
        ConfigValidationError: If the RPC node is unhealthy or the keypair
            cannot be read
    """
    if name == "rpc_url":
        asyncio.run(check_rpc_url(settings.rpc_url))
    elif name == "keypair_path":
        load_keypair(os.path.expanduser(settings.keypair_path))
    elif name in ("pool_a", "pool_b", "mint_in", "mint_out"):
        logger.warning("Mints are not checked against the pools; prefer `config set-pools`")


async def execute_run(config: RunConfig, keypair: Keypair) -> ArbitrageReport:
    """
    Wire the Solana adapters and run once.

    Raises:
        ConfigValidationError: If the node fails its health check
    """
    async with AsyncClient(config.rpc_url, commitment=Confirmed) as client:
        chain = SolanaChain(client, config.rpc_url)
        await chain.check_health()
        runner = ArbRunner(
            config,
            source=RaydiumCpmmSource(client),
            executor=RpcExecutionAdapter(chain, keypair, config.arb.priority_fee),
            fee_estimator=ChainFeeEstimator(chain, keypair.pubkey()),
        )
        return await runner.run()


def cmd_run(args: argparse.Namespace, state_path: Path) -> int:
    try:
        settings = merge_settings(
            default_settings(), load_settings(state_path), overrides_from_args(args)
        )
        config = resolve_run_config(settings, args.report_path)
        keypair = load_keypair(config.keypair_path)
        asyncio.run(execute_run(config, keypair))
    except ConfigValidationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted, no report written", file=sys.stderr)
        return EXIT_INTERRUPTED
    return EXIT_OK


def cmd_config(args: argparse.Namespace, state_path: Path) -> int:
    try:
        if args.config_command == "reset-defaults":
            settings = reset_defaults(state_path)
            print(f"✓ Reset {state_path} to defaults")
        elif args.config_command in ("set", "unset"):
            value = args.value if args.config_command == "set" else None
            settings = update_setting(load_settings(state_path), args.field, value)
            if value is not None:
                validate_setting(settings, args.field)
            save_settings(state_path, settings)
            print(f"✓ {args.field} = {getattr(settings, args.field)}")
            return EXIT_OK
        elif args.config_command == "set-pools":
            current = load_settings(state_path)
            rpc_url = args.rpc_url or current.rpc_url
            if rpc_url is None:
                raise ConfigValidationError("rpc_url is not set", field="rpc_url")
            snapshot_a, snapshot_b = asyncio.run(fetch_pool_pair(rpc_url, *args.pools))
            settings = configure_pools(current, snapshot_a, snapshot_b, args.pair_mint_in)
            save_settings(state_path, settings)
            print(f"✓ Saved pools to {state_path}")
        else:
            settings = load_settings(state_path)
            print(f"# {state_path}")
    except ArbitrageError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False), end="")
    return EXIT_OK


def cmd_keygen(args: argparse.Namespace) -> int:
    try:
        keypair = generate_keypair_file(args.path)
    except FileExistsError as e:
        print(f"❌ Refusing to overwrite existing keypair: {e.filename}", file=sys.stderr)
        return EXIT_REFUSED
    print(f"✓ Public key: {keypair.pubkey()}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code
    """
    load_dotenv()
    logging_config.setup()

    args = build_parser().parse_args(argv)
    state_path = Path(args.state_file) if args.state_file else state_file_path()

    if args.command == "config":
        return cmd_config(args, state_path)
    if args.command == "keygen":
        return cmd_keygen(args)
    return cmd_run(args, state_path)


if __name__ == "__main__":
    sys.exit(main())
