# snappy/hooks/registry.py
from __future__ import annotations
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from snappy.core.errors import HookFileUnreadable

logger = logging.getLogger(__name__)

__all__ = [
    "HOOK_FILE_SUFFIX",
    "ID_PLACEHOLDER",
    "Hook",
    "parseHookText",
    "readHookFile",
    "HookRegistry",
]

HOOK_FILE_SUFFIX = ".hook"
ID_PLACEHOLDER = "${id}"

_KEYS = {
    "hook-name": "name",
    "user": "user",
    "exec": "exec",
    "pattern": "pattern",
}



@dataclass(frozen=True, slots=True)
class Hook:
    """
    A system hook definition, one `*.hook` file.

    `pattern` is an absolute path template containing `${id}`; each
    (package, app) pair gets one symlink at the expanded path.
    """
    name: str
    user: str = ""
    exec: str = ""
    pattern: str = ""

    def symlinkPath(self, instanceId: str) -> Path:
        return Path(self.pattern.replace(ID_PLACEHOLDER, instanceId))



def parseHookText(text: str, *, defaultName: str) -> Hook:
    """
    Parse `Key: value` lines. Blank lines and `#` comments are skipped,
    unknown keys are ignored and key matching is case-insensitive.
    """
    fields: dict[str, str] = {}
    for rawLine in text.splitlines():
        line = rawLine.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        attr = _KEYS.get(key.strip().lower())
        if attr is not None:
            fields[attr] = value.strip()

    # click allows a missing Hook-Name and falls back to the file name
    name = fields.pop("name", "") or defaultName
    return Hook(name=name, **fields)



def readHookFile(path: Path) -> Hook:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise HookFileUnreadable(f"Cannot read hook file '{path}': {err}", extra={"path": str(path)}) from err
    stem = path.name[: -len(HOOK_FILE_SUFFIX)] if path.name.endswith(HOOK_FILE_SUFFIX) else path.stem
    return parseHookText(text, defaultName=stem)



class HookRegistry:
    """
    Catalog of system hooks read from one directory.

    The directory is scanned on first use and the result is cached for the
    lifetime of the instance; create a new registry to pick up changes.
    """
    def __init__(self, hooksDir: Path) -> None:
        self.hooksDir = Path(hooksDir)
        self._hooks: Mapping[str, Hook] | None = None
        self._lock = threading.Lock()

    def hooks(self) -> Mapping[str, Hook]:
        with self._lock:
            if self._hooks is None:
                self._hooks = MappingProxyType(self._scan())
            return self._hooks

    def get(self, name: str) -> Hook | None:
        return self.hooks().get(name)

    def _scan(self) -> dict[str, Hook]:
        if not self.hooksDir.is_dir():
            logger.debug("Hooks dir '%s' does not exist; no system hooks", self.hooksDir)
            return {}

        found: dict[str, Hook] = {}
        origin: dict[str, Path] = {}
        # Lexicographic order so a collision resolves the same way on every host.
        for path in sorted(self.hooksDir.glob(f"*{HOOK_FILE_SUFFIX}"), key=lambda p: p.name):
            hook = readHookFile(path)
            if hook.name in found:
                logger.warning(
                    "Hook '%s' defined by both '%s' and '%s'; using the latter",
                    hook.name, origin[hook.name].name, path.name,
                )
            found[hook.name] = hook
            origin[hook.name] = path

        logger.debug("Loaded %d hook(s) from '%s'", len(found), self.hooksDir)
        return found
