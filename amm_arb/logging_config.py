"""
Logging configuration for console output.

Usage:
    from amm_arb import logging_config
    logging_config.setup()            # level from LOG_LEVEL, default INFO
    logging_config.setup("debug")
"""

import logging
import os
import sys
from typing import Optional, Union

LOG_LEVEL_ENV = "LOG_LEVEL"


def resolve_level(level: Optional[Union[str, int]] = None) -> int:
    """Turn ``level`` (or ``$LOG_LEVEL`` when None) into a logging level."""
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "info")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup(level: Optional[Union[str, int]] = None) -> int:
    """
    Configure the root logger.

    - Short timestamp format (HH:MM:SS)
    - Level taken from ``LOG_LEVEL`` unless given explicitly
    - HTTP client chatter from the RPC layer capped at WARNING

    Returns:
        The effective level
    """
    level = resolve_level(level)

    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("amm_arb").setLevel(level)
    return level
