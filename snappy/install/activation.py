# snappy/install/activation.py
from __future__ import annotations
import logging
import os
from pathlib import Path

from snappy.core.errors import ActivationRaceOrCorruption
from snappy.core.fsutil import atomicSymlink

logger = logging.getLogger(__name__)

__all__ = ["CURRENT_LINK", "currentLink", "currentTarget", "isActive", "activate", "deactivate"]

CURRENT_LINK = "current"



def currentLink(packageDir: Path) -> Path:
    return packageDir / CURRENT_LINK



def currentTarget(packageDir: Path) -> Path | None:
    """The revision dir `current` points at, or None when nothing is active."""
    link = currentLink(packageDir)
    if not link.is_symlink():
        return None
    target = Path(os.readlink(link))
    if not target.is_absolute():
        target = packageDir / target
    return target



def isActive(revisionDir: Path) -> bool:
    target = currentTarget(revisionDir.parent)
    if target is None:
        return False
    return os.path.realpath(target) == os.path.realpath(revisionDir)



def activate(revisionDir: Path) -> Path | None:
    """
    Repoint `current` at `revisionDir` in a single rename.

    The link target is relative (the version dir name) so the tree stays
    valid when mounted elsewhere. Returns the previously active revision.
    """
    packageDir = revisionDir.parent
    previous = currentTarget(packageDir)
    link = currentLink(packageDir)
    if link.exists() and not link.is_symlink():
        raise ActivationRaceOrCorruption(
            f"'{link}' exists and is not a symlink",
            extra={"path": str(link)},
        )
    try:
        atomicSymlink(revisionDir.name, link)
    except OSError as err:
        raise ActivationRaceOrCorruption(
            f"Cannot activate '{revisionDir}': {err}",
            extra={"path": str(link), "target": revisionDir.name},
        ) from err

    if not isActive(revisionDir):
        raise ActivationRaceOrCorruption(
            f"'{link}' does not point at '{revisionDir.name}' after activation",
            extra={"path": str(link), "target": revisionDir.name},
        )
    logger.debug("Activated '%s' (previous: %s)", revisionDir, previous)
    return previous



def deactivate(packageDir: Path) -> None:
    link = currentLink(packageDir)
    if link.is_symlink():
        link.unlink()
