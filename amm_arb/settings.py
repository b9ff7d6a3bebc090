"""
Configuration provider.

Three layers feed a run, highest precedence first:

1. Run-time overrides (command-line flags)
2. Persisted settings (YAML state file, edited with ``config`` commands)
3. Shipped defaults (:func:`default_settings`)

Every layer is a :class:`Settings` value in which any field may be None.
:func:`merge_settings` combines them field by field; :func:`resolve_run_config`
checks that nothing required is still missing and produces the immutable
:class:`RunConfig` the runner consumes.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigValidationError
from .report import DEFAULT_REPORT_PATH
from .types import BASE_ASSET_MINT, ArbConfig, PoolSnapshot
from .utils import atomic_write_text, get_logger

logger = get_logger(__name__)

STATE_PATH_ENV = "AMM_ARB_STATE"
DEFAULT_STATE_PATH = Path("~/.config/amm-arb/state.yaml")

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


class Settings(BaseModel):
    """One configuration layer. ``None`` means "not set in this layer"."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Pools & mints
    pool_a: Optional[str] = None
    pool_b: Optional[str] = None
    mint_in: Optional[str] = None
    mint_out: Optional[str] = None

    # Trading params
    amount_in: Optional[Decimal] = Field(default=None, gt=0)
    spread_threshold_bps: Optional[int] = Field(default=None, ge=0, le=U32_MAX)
    slippage_bps: Optional[int] = Field(default=None, ge=0, le=10000)
    priority_fee: Optional[int] = Field(
        default=None, ge=0, le=U64_MAX, description="Micro-lamports per compute unit"
    )
    simulate_only: Optional[bool] = None

    # Infra
    rpc_url: Optional[str] = None
    keypair_path: Optional[str] = None

    @field_validator("pool_a", "pool_b", "mint_in", "mint_out", "rpc_url", "keypair_path")
    @classmethod
    def validate_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v.strip() if v is not None else v

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"rpc_url must be an http(s) URL: {v}")
        return v


def default_settings() -> Settings:
    """The shipped defaults. A pure constructor: each call returns an equal value."""
    return Settings(
        pool_a="4jgpwmuwaUrZgTvUjio8aBVNQJ6HcsF3YKAekpwwxTou",
        pool_b="7JuwJuNU88gurFnyWeiyGKbFmExMWcmRZntn9imEzdny",
        mint_in="So11111111111111111111111111111111111111112",
        mint_out="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        amount_in=Decimal("0.00001"),
        spread_threshold_bps=100,
        slippage_bps=500,
        priority_fee=100_000,
        simulate_only=True,
        rpc_url="https://api.mainnet-beta.solana.com",
        keypair_path="~/.config/solana/id.json",
    )


def _override_then_persisted_then_default(override: Any, persisted: Any, default: Any) -> Any:
    if override is not None:
        return override
    if persisted is not None:
        return persisted
    return default


# One rule per field. Every rule currently is "first set value wins" in the
# order override > persisted > default.
#
# | field                | rule                                      |
# |----------------------|-------------------------------------------|
# | pool_a               | override > persisted > default            |
# | pool_b               | override > persisted > default            |
# | mint_in              | override > persisted > default            |
# | mint_out             | override > persisted > default            |
# | amount_in            | override > persisted > default            |
# | spread_threshold_bps | override > persisted > default            |
# | slippage_bps         | override > persisted > default            |
# | priority_fee         | override > persisted > default            |
# | simulate_only        | override > persisted > default            |
# | rpc_url              | override > persisted > default            |
# | keypair_path         | override > persisted > default            |
MERGE_RULES: Dict[str, Callable[[Any, Any, Any], Any]] = {
    name: _override_then_persisted_then_default for name in Settings.model_fields
}


def merge_settings(
    default: Settings, persisted: Settings, override: Settings
) -> Settings:
    """
    Combine the three layers using :data:`MERGE_RULES`.

    Total: every field of :class:`Settings` has exactly one rule.
    """
    missing = set(Settings.model_fields) - set(MERGE_RULES)
    if missing:
        raise ConfigValidationError(f"No merge rule for fields: {sorted(missing)}")

    merged = {
        name: rule(
            getattr(override, name), getattr(persisted, name), getattr(default, name)
        )
        for name, rule in MERGE_RULES.items()
    }
    return Settings(**merged)


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration for one run."""

    arb: ArbConfig
    pool_a: str
    pool_b: str
    rpc_url: str
    keypair_path: Path
    report_path: Path

    def to_dict(self) -> Dict[str, Any]:
        data = self.arb.to_dict()
        data.update(
            {
                "pool_a": self.pool_a,
                "pool_b": self.pool_b,
                "rpc_url": self.rpc_url,
                "keypair_path": str(self.keypair_path),
                "report_path": str(self.report_path),
            }
        )
        return data


REQUIRED_FIELDS = (
    "pool_a",
    "pool_b",
    "mint_in",
    "mint_out",
    "amount_in",
    "spread_threshold_bps",
    "slippage_bps",
    "priority_fee",
    "simulate_only",
    "rpc_url",
    "keypair_path",
)


def resolve_run_config(
    settings: Settings, report_path: Union[str, Path, None] = None
) -> RunConfig:
    """
    Check presence of every required field and build the run configuration.

    Raises:
        ConfigValidationError: If a field is missing or the pair is inconsistent
    """
    for name in REQUIRED_FIELDS:
        if getattr(settings, name) is None:
            raise ConfigValidationError(
                f"Missing required parameter `{name}`: not provided as a flag and "
                f"not found in persisted settings",
                field=name,
            )

    if settings.pool_a == settings.pool_b:
        raise ConfigValidationError(
            f"pool_a and pool_b must differ: {settings.pool_a}", field="pool_b"
        )
    if settings.mint_in == settings.mint_out:
        raise ConfigValidationError(
            f"mint_in and mint_out must differ: {settings.mint_in}", field="mint_out"
        )

    arb = ArbConfig(
        mint_in=settings.mint_in,
        mint_out=settings.mint_out,
        amount_in=settings.amount_in,
        spread_threshold_bps=settings.spread_threshold_bps,
        slippage_bps=settings.slippage_bps,
        priority_fee=settings.priority_fee,
        simulate_only=settings.simulate_only,
    )
    return RunConfig(
        arb=arb,
        pool_a=settings.pool_a,
        pool_b=settings.pool_b,
        rpc_url=settings.rpc_url,
        keypair_path=Path(os.path.expanduser(settings.keypair_path)),
        report_path=Path(report_path or DEFAULT_REPORT_PATH),
    )


# ======================= Persisted state =======================


def state_file_path() -> Path:
    """Location of the persisted settings, overridable with ``$AMM_ARB_STATE``."""
    return Path(os.path.expanduser(os.getenv(STATE_PATH_ENV, str(DEFAULT_STATE_PATH))))


def save_settings(path: Union[str, Path], settings: Settings) -> Path:
    """Write settings as YAML, replacing the file atomically."""
    data = settings.model_dump(mode="json")
    return atomic_write_text(path, yaml.safe_dump(data, sort_keys=False))


def load_settings(path: Union[str, Path]) -> Settings:
    """
    Load persisted settings. A missing file is created with the shipped
    defaults, which are returned.

    Raises:
        ConfigValidationError: If the file is unreadable or invalid
    """
    path = Path(path)
    if not path.exists():
        settings = default_settings()
        save_settings(path, settings)
        logger.info(f"Initialized settings at {path} with shipped defaults")
        return settings

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Failed to read settings {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Settings file must contain a YAML mapping: {path}")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid settings in {path}: {e}") from e


def reset_defaults(path: Union[str, Path]) -> Settings:
    """Overwrite persisted settings with the shipped defaults."""
    settings = default_settings()
    save_settings(path, settings)
    return settings


def update_setting(settings: Settings, name: str, raw_value: Optional[str]) -> Settings:
    """
    Return a copy of ``settings`` with ``name`` set from a string value
    (``None`` clears it).

    Raises:
        ConfigValidationError: If the field is unknown or the value invalid
    """
    if name not in Settings.model_fields:
        raise ConfigValidationError(
            f"Unknown setting '{name}' (valid: {', '.join(Settings.model_fields)})",
            field=name,
        )
    data = settings.model_dump()
    data[name] = raw_value
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid value for {name}: {e}", field=name) from e


def configure_pools(
    settings: Settings,
    snapshot_a: PoolSnapshot,
    snapshot_b: PoolSnapshot,
    mint_in: Optional[str] = None,
) -> Settings:
    """
    Point ``settings`` at two pools and adopt the pair they trade.

    The input mint is ``mint_in`` when given. Otherwise the current
    ``mint_in`` is kept if the pools trade it, then wrapped SOL is preferred,
    then pool A's first token.

    Raises:
        ConfigValidationError: If the pools are the same pool or trade
            different pairs, or ``mint_in`` is not one of the pair
    """
    if snapshot_a.pool_id == snapshot_b.pool_id:
        raise ConfigValidationError(
            f"pool_a and pool_b must differ: {snapshot_a.pool_id}", field="pool_b"
        )
    pair = {snapshot_a.token_in, snapshot_a.token_out}
    if pair != {snapshot_b.token_in, snapshot_b.token_out}:
        raise ConfigValidationError(
            f"Incompatible pools: {snapshot_a.pool_id} trades "
            f"{snapshot_a.token_in}/{snapshot_a.token_out}, {snapshot_b.pool_id} trades "
            f"{snapshot_b.token_in}/{snapshot_b.token_out}",
            field="pool_b",
        )

    if mint_in is None:
        if settings.mint_in in pair:
            mint_in = settings.mint_in
        elif BASE_ASSET_MINT in pair:
            mint_in = BASE_ASSET_MINT
        else:
            mint_in = snapshot_a.token_in
    elif mint_in not in pair:
        raise ConfigValidationError(
            f"mint_in {mint_in} is not traded by the pools "
            f"({snapshot_a.token_in}/{snapshot_a.token_out})",
            field="mint_in",
        )
    mint_out = snapshot_a.token_out if mint_in == snapshot_a.token_in else snapshot_a.token_in

    data = settings.model_dump()
    data.update(
        pool_a=snapshot_a.pool_id,
        pool_b=snapshot_b.pool_id,
        mint_in=mint_in,
        mint_out=mint_out,
    )
    logger.info(f"Pools trade {mint_in} -> {mint_out}")
    return Settings.model_validate(data)
