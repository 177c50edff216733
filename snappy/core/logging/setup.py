# snappy/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from collections.abc import Mapping
from typing import Any

from snappy.core.dictpath import getByPath
from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = ["configureLogging", "getLogger"]



def configureLogging(settings: Mapping[str, Any]) -> None:
    """
    Initiate the global logging configuration from merged settings.

    Dev (debug.devModeEnabled):
      - Console pretty logs (DEBUG)
      - JSON file log (DEBUG) when logging.file is set

    Prod:
      - Console INFO
      - JSON file log INFO with rotation when logging.file is set

    Both paths scrub credentials through RedactingFormatter.
    """
    devMode = bool(getByPath(settings, "debug.devModeEnabled", False))
    rootLevel = logging.DEBUG if devMode else logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(rootLevel)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(RedactingFormatter(DevFormatter()))
    root.addHandler(consoleHandler)

    logFile = getByPath(settings, "logging.file")
    if logFile:
        fileHandler = logging.handlers.RotatingFileHandler(
            str(logFile),
            maxBytes=int(getByPath(settings, "logging.maxBytes", 10 * 1024 * 1024)),
            backupCount=int(getByPath(settings, "logging.backupCount", 5)),
            encoding="utf-8",
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(RedactingFormatter(JsonFormatter()))
        root.addHandler(fileHandler)



def getLogger(name: str, side: str = "") -> logging.Logger:
    return logging.getLogger(f"{side}.{name}" if side else name)
