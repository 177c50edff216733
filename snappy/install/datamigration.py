# snappy/install/datamigration.py
from __future__ import annotations
import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path

from snappy.app.dirs import SnapDirs
from snappy.core.fsutil import copyTree, removePath

logger = logging.getLogger(__name__)

__all__ = ["DataMigration", "homeDataRoots", "migrateData"]



@dataclass
class DataMigration:
    """What one migration created, so an unwind can take it back."""
    systemDataDir: Path
    created: list[Path] = field(default_factory=list)

    def undo(self) -> None:
        for path in reversed(self.created):
            removePath(path)
        self.created.clear()



def homeDataRoots(dirs: SnapDirs) -> list[Path]:
    """Per-user data roots matching the configured glob; no homes is not an error."""
    return [Path(match) for match in sorted(glob.glob(dirs.homeDataGlob)) if Path(match).is_dir()]



def _copyVersion(base: Path, name: str, fromVersion: str, toVersion: str, migration: DataMigration) -> None:
    src = base / name / fromVersion
    dst = base / name / toVersion
    if not src.is_dir() or src == dst:
        return
    if not dst.exists():
        # Recorded first so a copy that fails halfway is still undone.
        migration.created.append(dst)
    copyTree(src, dst)



def migrateData(dirs: SnapDirs, name: str, toVersion: str, fromVersion: str | None = None) -> DataMigration:
    """
    Copy data of `fromVersion` to `toVersion`: the system data dir first,
    then every user home matched by the data glob. The system data dir of
    `toVersion` always exists afterwards.

    A failure part way through removes whatever this call created before
    the error propagates.
    """
    migration = DataMigration(systemDataDir=dirs.dataDir / name / toVersion)
    try:
        if fromVersion is not None:
            _copyVersion(dirs.dataDir, name, fromVersion, toVersion, migration)
            for home in homeDataRoots(dirs):
                _copyVersion(home, name, fromVersion, toVersion, migration)
            logger.info("Migrated data of %s from %s to %s", name, fromVersion, toVersion)

        if not migration.systemDataDir.exists():
            migration.created.append(migration.systemDataDir)
            migration.systemDataDir.mkdir(parents=True)
    except BaseException:
        migration.undo()
        raise
    return migration
