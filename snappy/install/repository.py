# snappy/install/repository.py
from __future__ import annotations
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

import yaml

from snappy.core.errors import MalformedManifest
from snappy.install.activation import CURRENT_LINK, isActive
from snappy.manifest.models import PackageManifest
from snappy.manifest.reader import PACKAGE_YAML_PATH, readPackageManifest

logger = logging.getLogger(__name__)

__all__ = ["HASHES_PATH", "InstalledRevision", "SnapRepository", "writeHashes", "readHashes"]

HASHES_PATH = Path("meta") / "hashes.yaml"



def writeHashes(revisionDir: Path, archiveSha256: str) -> None:
    path = revisionDir / HASHES_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"archive-sha256": archiveSha256}, default_flow_style=False), encoding="utf-8")



def readHashes(revisionDir: Path) -> dict[str, str]:
    path = revisionDir / HASHES_PATH
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as err:
        logger.warning("Cannot read '%s': %s", path, err)
        return {}
    return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}



@dataclass(frozen=True)
class InstalledRevision:
    """
    One installed revision on disk. Holds no activation state of its own;
    `isActive` reads the `current` link each time it is asked.
    """
    baseDir: Path

    @cached_property
    def manifest(self) -> PackageManifest:
        return readPackageManifest(self.baseDir)

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def hash(self) -> str:
        return readHashes(self.baseDir).get("archive-sha256", "")

    @property
    def isActive(self) -> bool:
        return isActive(self.baseDir)



class SnapRepository:
    """Installed revisions under one or more type roots, found by scanning disk."""
    def __init__(self, roots: Path | Iterable[Path]) -> None:
        self.roots: tuple[Path, ...] = (Path(roots),) if isinstance(roots, (str, Path)) else tuple(Path(r) for r in roots)

    def _revisionDirs(self) -> list[Path]:
        found: list[tuple[str, str, Path]] = []
        for root in self.roots:
            if not root.is_dir():
                continue
            for packageDir in root.iterdir():
                if packageDir.name.startswith(".") or packageDir.is_symlink() or not packageDir.is_dir():
                    continue
                for revisionDir in packageDir.iterdir():
                    if revisionDir.name.startswith(".") or revisionDir.name == CURRENT_LINK:
                        continue
                    if revisionDir.is_symlink() or not (revisionDir / PACKAGE_YAML_PATH).is_file():
                        continue
                    found.append((packageDir.name, revisionDir.name, revisionDir))
        found.sort(key=lambda item: (item[0], item[1]))
        return [path for _name, _version, path in found]

    def installed(self) -> list[InstalledRevision]:
        out: list[InstalledRevision] = []
        for revisionDir in self._revisionDirs():
            revision = InstalledRevision(revisionDir)
            try:
                _ = revision.manifest
            except MalformedManifest as err:
                logger.warning("Skipping broken revision '%s': %s", revisionDir, err)
                continue
            out.append(revision)
        return out

    def byName(self, name: str) -> list[InstalledRevision]:
        return [rev for rev in self.installed() if rev.name == name]

    def active(self, name: str) -> InstalledRevision | None:
        for rev in self.byName(name):
            if rev.isActive:
                return rev
        return None
