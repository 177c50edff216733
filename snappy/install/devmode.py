# snappy/install/devmode.py
from __future__ import annotations
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["PUBLIC_KEYS_NEEDLE", "inDeveloperMode"]

PUBLIC_KEYS_NEEDLE = "public-keys:\n"



def inDeveloperMode(metaDataFile: Path) -> bool:
    """
    Images flashed for development seed ssh keys through cloud-init; the
    presence of a `public-keys:` entry is the only marker there is.
    """
    try:
        data = metaDataFile.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return PUBLIC_KEYS_NEEDLE in data
