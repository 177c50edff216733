# snappy/app/settings.py
from __future__ import annotations
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import json5

from snappy.core.dictpath import getByPath

logger = logging.getLogger(__name__)

__all__ = [
    "SETTINGS_ENV_VAR", "SETTINGS_SYSTEM_PATH", "DEFAULT_SETTINGS",
    "loadSettingsFile", "loadSettings", "deepMerge", "setting", "settingBool",
]



SETTINGS_ENV_VAR = "SNAPPY_SETTINGS"
SETTINGS_SYSTEM_PATH = Path("/etc/snappy/settings.json5")

DEFAULT_SETTINGS: dict[str, Any] = {
    "dirs": {
        # Every other path below is resolved under this root.
        "root": "/",
        "apps": "apps",
        "oem": "oem",
        "kernel": "kernel",
        "data": "var/lib/apps",
        "homeDataGlob": "home/*/apps",
        "hooks": "usr/share/click/hooks",
        "binaries": "apps/bin",
        "services": "etc/systemd/system",
        "tmpBase": "/tmp/snapps",
        "cloudMetaData": "var/lib/cloud/seed/nocloud-net/meta-data",
    },
    "security": {
        "confineCommand": "aa-exec",
        "defaultTemplate": "default",
    },
    "verify": {
        "command": "debsig-verify",
    },
    "logging": {
        "file": None,
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": 5,
    },
    "debug": {
        "devModeEnabled": False,
    },
}



def loadSettingsFile(path: Path) -> dict[str, Any]:
    """Read one JSON5 settings file; a missing file is an empty layer."""
    if not path.exists():
        return {}
    try:
        data = json5.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        logger.error("Failed to parse settings '%s': %s", path, err)
        return {}
    if not isinstance(data, dict):
        logger.error("Settings file '%s' must contain an object, got %s", path, type(data).__name__)
        return {}
    return data



def loadSettings(path: str | Path | None = None, *, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """
    Returns DEFAULT_SETTINGS merged with a settings file and explicit overrides.

    File lookup order: `path` argument, $SNAPPY_SETTINGS, /etc/snappy/settings.json5.
    """
    if path is None:
        envPath = os.environ.get(SETTINGS_ENV_VAR)
        path = Path(envPath) if envPath else SETTINGS_SYSTEM_PATH
    merged = deepMerge(DEFAULT_SETTINGS, loadSettingsFile(Path(path)))
    if overrides:
        merged = deepMerge(merged, dict(overrides))
    return cast(dict[str, Any], merged)



def deepMerge(first: Any, second: Any) -> Any:
    """
    Returns a new value where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are dicts; for every other type
    the right-hand value replaces the left.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, Any] = dict(first)
        for key, value in second.items():
            out[key] = deepMerge(out[key], value) if key in out else value
        return out
    return second

# ---------- Ergonomic accessors over merged settings ----------

def setting(settings: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Returns value at dotted `path`, or `default` if missing or null."""
    val = getByPath(settings, path)
    return default if val is None else val



def settingBool(settings: Mapping[str, Any], path: str, default: bool = False) -> bool:
    val = getByPath(settings, path)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    return bool(val)
