# snappy/core/fsutil.py
from __future__ import annotations
import logging
import os
import shutil
from pathlib import Path

from snappy.core.ids import stagingToken

logger = logging.getLogger(__name__)

__all__ = [
    "atomicWriteText",
    "atomicSymlink",
    "removePath",
    "copyTree",
    "linkTree",
]



def _tempSibling(path: Path, kind: str) -> Path:
    return path.with_name(f".{path.name}.{kind}-{stagingToken()}")



def atomicWriteText(path: Path, text: str, *, mode: int = 0o644) -> None:
    """Write `text` to a sibling temp file, chmod it, then rename over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmpPath = _tempSibling(path, "tmp")
    try:
        with open(tmpPath, "w", encoding="utf-8", newline="") as fl:
            fl.write(text)
        os.chmod(tmpPath, mode)
        os.replace(tmpPath, path)
    except BaseException:
        tmpPath.unlink(missing_ok=True)
        raise



def atomicSymlink(target: str | Path, linkPath: Path) -> None:
    """
    Point `linkPath` at `target`, replacing whatever is there in one rename.

    Readers see either the old link or the new one, never a missing path.
    """
    linkPath.parent.mkdir(parents=True, exist_ok=True)
    tmpPath = _tempSibling(linkPath, "link")
    os.symlink(target, tmpPath)
    try:
        os.replace(tmpPath, linkPath)
    except BaseException:
        tmpPath.unlink(missing_ok=True)
        raise



def removePath(path: Path) -> bool:
    """Remove a file, symlink or directory tree. Returns False if nothing was there."""
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False



def copyTree(src: Path, dst: Path) -> None:
    """Copy `src` into `dst` keeping metadata and symlinks; `dst` may already exist."""
    shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    logger.debug("Copied '%s' -> '%s'", src, dst)



def linkTree(src: Path, dst: Path) -> None:
    """
    Mirror `src` at `dst` with hard links instead of copies; `dst` must not
    exist and must be on the same filesystem. A failure removes the partial
    mirror.
    """
    try:
        shutil.copytree(src, dst, symlinks=True, copy_function=os.link)
    except BaseException:
        removePath(dst)
        raise
    logger.debug("Linked '%s' -> '%s'", src, dst)
