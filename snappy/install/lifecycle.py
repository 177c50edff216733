# snappy/install/lifecycle.py
from __future__ import annotations
from enum import Enum
from pathlib import Path

__all__ = [
    "InstallPhase",
    "InstallListener",
]



class InstallPhase(str, Enum):
    """
    Phases one revision passes through during install.

    Each completed phase is traced as an `install.lifecycle` event and
    reported to listeners. A failure unwinds the completed phases in
    reverse order.
    """
    UNPACKED = "unpacked"                       # Archive extracted into staging, manifests parsed
    VERIFIED = "verified"                       # Signature accepted, staging moved into place
    HOOKS_INSTALLED = "hooksInstalled"          # Policy written, hook symlinks created
    WRAPPERS_GENERATED = "wrappersGenerated"    # Binary wrappers and service units written
    DATA_MIGRATED = "dataMigrated"              # Data copied from the previously active revision
    ACTIVE = "active"                           # `current` points at this revision



class InstallListener:
    """
    Optional observer of install/remove progress.

    Implementations may override any subset of methods; all default to no-ops.
    """

    def onPhase(self, name: str, version: str, phase: InstallPhase, revisionDir: Path) -> None:
        return

    def onUnwound(self, name: str, version: str, failedPhase: str, err: BaseException) -> None:
        return

    def onRemoved(self, name: str, version: str, revisionDir: Path) -> None:
        return
