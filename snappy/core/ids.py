# snappy/core/ids.py
from __future__ import annotations

import uuid
import uuid6

__all__ = ["uuidv7", "stagingToken", "transactionId"]



def uuidv7(*, prefix: str = "") -> str:
    """Returns a UUIDv7 string (time-ordered), optionally prefixed."""
    return prefix + str(uuid6.uuid7())



def stagingToken(prefix: str = "") -> str:
    """
    Short random token for sibling temp names (staging dirs, temp symlinks).

    Kept short so generated names stay readable in `ls` output.
    """
    if not isinstance(prefix, str):
        raise TypeError("prefix must be a str")
    return f"{prefix}{uuid.uuid4().hex[:10]}"



def transactionId() -> str:
    """Id shared by every trace record of one install/remove operation."""
    return uuidv7(prefix="txn_")
