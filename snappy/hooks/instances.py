# snappy/hooks/instances.py
from __future__ import annotations
import logging
import shlex
from collections.abc import Iterator, Mapping
from pathlib import Path

from snappy.core.commands import CommandRunner
from snappy.core.errors import MalformedManifest
from snappy.core.fsutil import atomicSymlink
from snappy.hooks.registry import Hook
from snappy.manifest.models import PackageManifest, isRevisionRelative

logger = logging.getLogger(__name__)

__all__ = ["hookInstanceId", "installHooks", "removeHooks"]



def hookInstanceId(name: str, app: str, version: str) -> str:
    return f"{name}_{app}_{version}"



def _matchedHooks(manifest: PackageManifest, catalog: Mapping[str, Hook]) -> Iterator[tuple[str, Hook, str]]:
    """Yields (app, hook, relative path) for every manifest entry the catalog knows."""
    for appName, appHooks in manifest.hooks.items():
        for hookName, relPath in appHooks.items():
            hook = catalog.get(hookName)
            if hook is None:
                # Not a system hook (bin-path and friends, or a hook this host lacks).
                continue
            yield appName, hook, relPath



def _linkTarget(revisionDir: Path, manifest: PackageManifest, appName: str, relPath: str) -> Path:
    """Hook links only ever point into the revision they belong to."""
    if not isRevisionRelative(relPath):
        raise MalformedManifest(
            f"Hook path '{relPath}' of {manifest.name}/{appName} is outside '{revisionDir}'",
            extra={"snap": manifest.name, "app": appName, "path": relPath},
        )
    return revisionDir / relPath



def _runExecs(hooks: list[Hook], runCommand: CommandRunner | None) -> None:
    if runCommand is None:
        return
    for hook in hooks:
        if hook.exec:
            logger.debug("Running hook '%s': %s", hook.name, hook.exec)
            runCommand(shlex.split(hook.exec))



def _touch(touched: list[Hook], hook: Hook) -> None:
    if all(seen.name != hook.name for seen in touched):
        touched.append(hook)



def installHooks(
    revisionDir: Path,
    manifest: PackageManifest,
    catalog: Mapping[str, Hook],
    runCommand: CommandRunner | None = None,
) -> list[Path]:
    """
    Link every hook file the manifest declares into its system hook dir.

    Existing links with the same instance id are replaced, never duplicated.
    Each touched hook's Exec runs once after all links are in place.
    """
    created: list[Path] = []
    touched: list[Hook] = []
    for appName, hook, relPath in _matchedHooks(manifest, catalog):
        if not hook.pattern:
            logger.warning("Hook '%s' has no Pattern; skipping %s/%s", hook.name, manifest.name, appName)
            continue
        target = _linkTarget(revisionDir, manifest, appName, relPath)
        linkPath = hook.symlinkPath(hookInstanceId(manifest.name, appName, manifest.version))
        atomicSymlink(target, linkPath)
        created.append(linkPath)
        _touch(touched, hook)
        logger.debug("Hook '%s': %s -> %s", hook.name, linkPath, target)

    _runExecs(touched, runCommand)
    return created



def removeHooks(
    manifest: PackageManifest,
    catalog: Mapping[str, Hook],
    runCommand: CommandRunner | None = None,
) -> list[Path]:
    """
    Remove the manifest's hook links (missing ones are fine) and re-run the
    hooks. Only symlinks are removed; anything else at a link path is left
    alone.
    """
    removed: list[Path] = []
    touched: list[Hook] = []
    for appName, hook, _relPath in _matchedHooks(manifest, catalog):
        if not hook.pattern:
            continue
        linkPath = hook.symlinkPath(hookInstanceId(manifest.name, appName, manifest.version))
        if linkPath.is_symlink():
            linkPath.unlink()
            removed.append(linkPath)
        elif linkPath.exists():
            logger.warning("'%s' is not a hook link; leaving it in place", linkPath)
        _touch(touched, hook)

    _runExecs(touched, runCommand)
    return removed
