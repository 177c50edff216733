# snappy/core/redaction.py
from __future__ import annotations

import re

__all__ = ["redactText"]



# Precompiled sensitive-data regex patterns.
# Store credentials end up in logs through command lines and error output.
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Bearer / Macaroon authorization headers
    (re.compile(r"(?iu)(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
    (re.compile(r'(?iu)(Macaroon\s+root=")[^"]+(")'), r"\1***\2"),
    (re.compile(r"(?iu)(Authorization\s*[:=]\s*)[A-Za-z0-9._\-]+"), r"\1***"),

    # Password / token fields in JSON documents
    (re.compile(r'(?iu)("password"\s*:\s*")[^"]+(")'), r"\1***\2"),
    (re.compile(r'(?iu)("token"\s*:\s*")[^"]+(")'), r"\1***\2"),

    # ssh public keys pulled out of cloud meta-data
    (re.compile(r"(ssh-(?:rsa|ed25519|dss)\s+)[A-Za-z0-9+/=]+"), r"\1***"),
]



def redactText(text: str) -> str:
    """Return sanitized text with sensitive substrings replaced by ***."""
    if not text:
        return text
    out = text
    for pattern, repl in _SENSITIVE_PATTERNS:
        out = pattern.sub(repl, out)
    return out
