"""
Keypair generation for the trading wallet.
"""

import json
import os
from pathlib import Path
from typing import Union

from solders.keypair import Keypair

from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_KEYPAIR_PATH = Path("~/.config/solana/id.json")


def generate_keypair_file(path: Union[str, Path, None] = None) -> Keypair:
    """
    Create a new keypair and store it as a JSON array of its 64 secret key
    bytes, readable only by the owner.

    Raises:
        FileExistsError: If ``path`` already exists; keys are never overwritten
    """
    target = Path(os.path.expanduser(str(path or DEFAULT_KEYPAIR_PATH)))
    target.parent.mkdir(parents=True, exist_ok=True)

    keypair = Keypair()
    payload = json.dumps(list(bytes(keypair)))

    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(payload)

    logger.info(f"🔑 Wrote keypair {keypair.pubkey()} to {target}")
    return keypair
