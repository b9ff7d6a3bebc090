"""
Common helpers: logging, JSON serialization, atomic file writes and
basis-point conversions.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

BPS_DENOMINATOR = Decimal("10000")


# Timestamp utilities
def timestamp_to_iso(timestamp: float) -> str:
    """Convert Unix timestamp to ISO 8601 string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


# Basis point helpers
def bps_to_decimal(bps: Union[int, Decimal]) -> Decimal:
    """Convert basis points to a fraction (100 bps = 0.01)."""
    return Decimal(bps) / BPS_DENOMINATOR


# JSON utilities
def safe_json_dump(data: Any, **kwargs) -> str:
    """
    Serialize data to JSON with sensible defaults.

    Decimals are written as strings so no precision is lost, enums by value
    and dataclasses as dicts.
    """
    defaults = {"ensure_ascii": False, "indent": 2, "default": _json_default_handler}
    defaults.update(kwargs)
    return json.dumps(data, **defaults)


def _json_default_handler(obj: Any) -> Any:
    """Default JSON serialization handler for custom types."""
    if isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, (datetime,)):
        return obj.isoformat()
    elif isinstance(obj, Path):
        return str(obj)
    elif is_dataclass(obj):
        return asdict(obj)
    else:
        return str(obj)


# File utilities
def atomic_write_text(path: Union[str, Path], text: str) -> Path:
    """
    Write ``text`` to ``path`` as a whole: the content goes to a temporary
    file in the same directory which then replaces the target.

    Readers never observe a partially written file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return target


# Logging utilities
def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Handlers and levels are owned by :mod:`amm_arb.logging_config`; modules
    only ask for a named logger.
    """
    return logging.getLogger(name)
