# snappy/app/dirs.py
from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from snappy.app.settings import DEFAULT_SETTINGS, setting

__all__ = ["SnapDirs"]



def _under(root: Path, value: str | Path) -> Path:
    """Resolve a configured path below `root`; absolute values are re-rooted too."""
    rel = str(value).lstrip("/")
    return root / rel if rel else root



@dataclass(frozen=True, slots=True, kw_only=True)
class SnapDirs:
    """
    Filesystem layout handed to every component at construction time.

    Tests build one under tmp_path instead of patching module globals.
    """
    rootDir: Path
    appsDir: Path               # ordinary applications (and frameworks)
    oemDir: Path                # OS-type snaps (oem, os)
    kernelDir: Path             # kernel-type snaps
    dataDir: Path               # <dataDir>/<name>/<version> system data
    homeDataGlob: str           # glob of per-user data roots, e.g. /home/*/apps
    hooksDir: Path              # *.hook definition files
    binariesDir: Path           # generated binary wrappers
    servicesDir: Path           # generated service units
    tmpBase: str                # literal path embedded into wrappers
    cloudMetaData: Path         # developer mode marker file

    @classmethod
    def fromSettings(cls, settings: Mapping[str, Any] | None = None, *, rootDir: str | Path | None = None) -> "SnapDirs":
        settings = settings or DEFAULT_SETTINGS
        root = Path(rootDir) if rootDir is not None else Path(setting(settings, "dirs.root", "/"))

        def dirSetting(key: str) -> Path:
            return _under(root, setting(settings, f"dirs.{key}", DEFAULT_SETTINGS["dirs"][key]))

        return cls(
            rootDir=root,
            appsDir=dirSetting("apps"),
            oemDir=dirSetting("oem"),
            kernelDir=dirSetting("kernel"),
            dataDir=dirSetting("data"),
            homeDataGlob=str(dirSetting("homeDataGlob")),
            hooksDir=dirSetting("hooks"),
            binariesDir=dirSetting("binaries"),
            servicesDir=dirSetting("services"),
            tmpBase=str(setting(settings, "dirs.tmpBase", DEFAULT_SETTINGS["dirs"]["tmpBase"])),
            cloudMetaData=dirSetting("cloudMetaData"),
        )

    def withOverrides(self, **changes: Any) -> "SnapDirs":
        return replace(self, **changes)

    def typeRoots(self) -> tuple[Path, Path, Path]:
        return (self.appsDir, self.oemDir, self.kernelDir)
