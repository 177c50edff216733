# snappy/core/logging/formatters.py
from __future__ import annotations
import json
import logging
from typing import Any

from snappy.core.redaction import redactText
from .context import getLogContext

# Context keys DevFormatter appends, in this order.
_DEV_CONTEXT_KEYS = ("snap", "version")



class RedactingFormatter(logging.Formatter):
    """Runs another formatter, then scrubs credentials from its output."""
    def __init__(self, inner: logging.Formatter) -> None:
        super().__init__()
        self._inner = inner

    def format(self, record: logging.LogRecord) -> str:
        return redactText(self._inner.format(record))



class JsonFormatter(logging.Formatter):
    """One JSON object per line for the rotating log file."""
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "ctx": dict(getLogContext() or {}),
            "pid": record.process,
            "thread": record.threadName,
        }
        if record.exc_info:
            excType, excValue, _tb = record.exc_info
            entry["exc"] = {
                "type": getattr(excType, "__name__", "Error"),
                "message": str(excValue),
                "stack": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str, separators=(",", ":"))



class DevFormatter(logging.Formatter):
    """`LEVEL: [logger] message [snap/version]` for the console."""
    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext() or {}
        known = [str(ctx[key]) for key in _DEV_CONTEXT_KEYS if ctx.get(key)]
        suffix = f" [{'/'.join(known)}]" if known else ""

        parts = [record.getMessage()]
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        if record.stack_info:
            parts.append(str(record.stack_info))
        body = "\n".join(parts)
        return f"{record.levelname}: [{record.name}] {body}{suffix}"
