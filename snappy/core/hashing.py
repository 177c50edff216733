# snappy/core/hashing.py
from __future__ import annotations

import hashlib
from pathlib import Path

__all__ = ["sha256File"]



def sha256File(path: str | Path) -> str:
    """Returns the SHA-256 hex digest of a file's content, read in chunks."""
    sha = hashlib.sha256()
    with Path(path).open("rb") as file:
        for chunk in iter(lambda: file.read(65536), b""):
            sha.update(chunk)
    return sha.hexdigest()
