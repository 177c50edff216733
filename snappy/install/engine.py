# snappy/install/engine.py
from __future__ import annotations
import logging
import os
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from snappy.app.dirs import SnapDirs
from snappy.app.settings import loadSettings, setting, settingBool
from snappy.core.commands import CommandRunner, runCommand as defaultRunCommand
from snappy.core.errors import (
    InterfaceNotAllowed,
    NothingInstalled,
    PackageNotInstalled,
    PartialInstallFailure,
    SnappyError,
    UnknownInterface,
    UnknownSecurityTemplate,
)
from snappy.core.fsutil import atomicSymlink, atomicWriteText, linkTree, removePath
from snappy.core.hashing import sha256File
from snappy.core.ids import stagingToken, transactionId
from snappy.core.logging import resetLogContext, setLogContext
from snappy.core.tracing import Tracer, getTracer
from snappy.hooks.instances import installHooks, removeHooks
from snappy.hooks.registry import HookRegistry
from snappy.install.activation import activate, currentLink, currentTarget, deactivate, isActive
from snappy.install.archive import peekPackageYaml, unpackArchive
from snappy.install.datamigration import migrateData
from snappy.install.devmode import inDeveloperMode
from snappy.install.lifecycle import InstallListener, InstallPhase
from snappy.install.repository import InstalledRevision, SnapRepository, writeHashes
from snappy.install.verify import DebsigVerifier, SignatureVerifier
from snappy.interfaces.composer import PolicyComposer
from snappy.interfaces.registry import InterfaceRegistry, defaultRegistry
from snappy.manifest.models import PackageManifest, SnapType
from snappy.manifest.reader import PACKAGE_YAML_PATH, clickManifestPath, readPackageManifest, serializeClickManifest
from snappy.wrappers.generator import (
    binaryProfileName,
    binaryWrapperName,
    generateBinaryWrapper,
    generateServiceFile,
    serviceFileName,
    serviceProfileName,
    wrapperTarget,
)

logger = logging.getLogger(__name__)

__all__ = ["Decisions", "InstallEngine"]

# app name -> plug or interface names to connect, in order
Decisions = Mapping[str, Sequence[str]]

# Failures in these steps are reported as PartialInstallFailure, except for
# the composition errors, which reach the caller unchanged.
_PARTIAL_PHASES = ("policy", "hooks", "wrappers", "data")
_COMPOSITION_ERRORS = (UnknownInterface, InterfaceNotAllowed, UnknownSecurityTemplate)



class _Unwind:
    """Compensating actions, run newest first."""
    def __init__(self) -> None:
        self._steps: list[tuple[str, Callable[[], Any]]] = []

    def push(self, label: str, action: Callable[[], Any]) -> None:
        self._steps.append((label, action))

    def run(self) -> None:
        while self._steps:
            label, action = self._steps.pop()
            try:
                action()
            except Exception as err:
                # Keep going; the caller sees the failure that started the unwind.
                logger.error("Unwind step '%s' failed: %s", label, err, exc_info=True)

    def discard(self) -> None:
        self._steps.clear()



class InstallEngine:
    """
    Installs, activates and removes snap revisions.

    Every collaborator is injected; nothing reads process-wide state. Calls
    for the same package name are serialized by an in-process lock; callers
    running several processes against one root must serialize themselves.
    """
    def __init__(
        self,
        dirs: SnapDirs,
        *,
        verifier: SignatureVerifier | None = None,
        hookRegistry: HookRegistry | None = None,
        interfaceRegistry: InterfaceRegistry | None = None,
        composer: PolicyComposer | None = None,
        runCommand: CommandRunner = defaultRunCommand,
        tracer: Tracer | None = None,
        confineCommand: str = "aa-exec",
        devModeEnabled: bool = False,
        listeners: Iterable[InstallListener] = (),
    ) -> None:
        self.dirs = dirs
        self.runCommand = runCommand
        self.verifier: SignatureVerifier = verifier if verifier is not None else DebsigVerifier(runCommand=runCommand)
        self.hookRegistry = hookRegistry if hookRegistry is not None else HookRegistry(dirs.hooksDir)
        self.interfaceRegistry = interfaceRegistry if interfaceRegistry is not None else defaultRegistry()
        self.composer = composer if composer is not None else PolicyComposer()
        self.tracer = tracer if tracer is not None else getTracer()
        self.confineCommand = confineCommand
        self.devModeEnabled = devModeEnabled
        self.listeners: list[InstallListener] = list(listeners)

        self._locks: dict[str, threading.RLock] = {}
        self._locksGuard = threading.Lock()

    @classmethod
    def fromSettings(
        cls,
        settings: Mapping[str, Any] | None = None,
        *,
        rootDir: str | Path | None = None,
        **kwargs: Any,
    ) -> "InstallEngine":
        settings = settings if settings is not None else loadSettings()
        dirs = SnapDirs.fromSettings(settings, rootDir=rootDir)
        runCommand = kwargs.get("runCommand", defaultRunCommand)
        kwargs.setdefault("verifier", DebsigVerifier(setting(settings, "verify.command", "debsig-verify"), runCommand))
        kwargs.setdefault("composer", PolicyComposer(defaultTemplate=setting(settings, "security.defaultTemplate", "default")))
        kwargs.setdefault("confineCommand", setting(settings, "security.confineCommand", "aa-exec"))
        kwargs.setdefault("devModeEnabled", settingBool(settings, "debug.devModeEnabled", False))
        return cls(dirs, **kwargs)

    # ----- Layout -----

    def rootFor(self, snapType: SnapType) -> Path:
        if snapType.isOS:
            return self.dirs.oemDir
        if snapType is SnapType.KERNEL:
            return self.dirs.kernelDir
        return self.dirs.appsDir

    def repository(self) -> SnapRepository:
        return SnapRepository(self.dirs.typeRoots())

    def developerMode(self) -> bool:
        return self.devModeEnabled or inDeveloperMode(self.dirs.cloudMetaData)

    # ----- Locking / context -----

    def _lockFor(self, name: str) -> threading.RLock:
        with self._locksGuard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.RLock()
            return lock

    @contextmanager
    def _operation(self, opName: str, name: str, version: str, attrs: dict[str, Any] | None = None) -> Iterator[str]:
        """Package lock + log context + one trace span around a whole operation."""
        txnId = transactionId()
        with self._lockFor(name):
            token = setLogContext(snap=name, version=version, txnId=txnId)
            try:
                spanAttrs = {"snap": name, "version": version, "txnId": txnId, **(attrs or {})}
                with self.tracer.span(opName, spanAttrs, tags=["install", opName]):
                    yield txnId
            finally:
                resetLogContext(token)

    def _phase(self, phase: InstallPhase, manifest: PackageManifest, revisionDir: Path) -> None:
        self.tracer.traceEvent(
            "install.lifecycle",
            attrs={
                "phase": phase.value,
                "snap": manifest.name,
                "version": manifest.version,
                "revisionDir": str(revisionDir),
            },
            level="info",
            tags=["install", "lifecycle"],
        )
        for listener in self.listeners:
            listener.onPhase(manifest.name, manifest.version, phase, revisionDir)

    # ----- Install -----

    def install(
        self,
        packageFile: str | Path,
        *,
        allowUnauthenticated: bool = False,
        decisions: Decisions | None = None,
    ) -> InstalledRevision:
        """
        Install one package archive and make it the active revision.

        On any failure the new revision's artifacts are unwound in reverse
        order and whatever was active before stays active.
        """
        packageFile = Path(packageFile)
        peek = peekPackageYaml(packageFile)
        with self._operation("install", peek.name, peek.version, {"packageFile": str(packageFile)}):
            revision = self._install(packageFile, self.rootFor(peek.type), allowUnauthenticated, decisions)
            logger.info("Installed %s %s into '%s'", revision.name, revision.version, revision.baseDir)
            return revision

    def _install(
        self,
        packageFile: Path,
        root: Path,
        allowUnauthenticated: bool,
        decisions: Decisions | None,
    ) -> InstalledRevision:
        unwind = _Unwind()
        step = "unpack"
        manifest: PackageManifest | None = None
        aside: Path | None = None
        try:
            root.mkdir(parents=True, exist_ok=True)
            staging = root / f".staging-{stagingToken()}"
            unwind.push("staging", lambda: removePath(staging))
            unpackArchive(packageFile, staging)
            manifest = readPackageManifest(staging)
            self._phase(InstallPhase.UNPACKED, manifest, staging)

            step = "verify"
            self.verifier.verify(packageFile, allowUnauthenticated)

            revisionDir = root / manifest.name / manifest.version
            packageDir = revisionDir.parent
            previous = currentTarget(packageDir)
            packageDir.mkdir(parents=True, exist_ok=True)
            if revisionDir.exists() or revisionDir.is_symlink():
                # Re-install of the same revision; keep the old tree until we succeed.
                aside = self._setAside(revisionDir, previous == revisionDir, unwind)
            os.rename(staging, revisionDir)
            if aside is None:
                unwind.push("revision", lambda: removePath(revisionDir))

            atomicWriteText(clickManifestPath(revisionDir, manifest.name), serializeClickManifest(manifest.click))
            writeHashes(revisionDir, sha256File(packageFile))
            self._phase(InstallPhase.VERIFIED, manifest, revisionDir)

            step = "policy"
            self._writePolicies(manifest, revisionDir, decisions)

            step = "hooks"
            catalog = self.hookRegistry.hooks()
            if aside is None:
                unwind.push("hooks", lambda: removeHooks(manifest, catalog, self.runCommand))
            installHooks(revisionDir, manifest, catalog, self.runCommand)
            self._phase(InstallPhase.HOOKS_INSTALLED, manifest, revisionDir)

            step = "wrappers"
            self._writeWrappers(manifest, revisionDir, unwind)
            self._phase(InstallPhase.WRAPPERS_GENERATED, manifest, revisionDir)

            step = "data"
            fromVersion = previous.name if previous is not None and previous.name != manifest.version else None
            migration = migrateData(self.dirs, manifest.name, manifest.version, fromVersion)
            unwind.push("data", migration.undo)
            self._phase(InstallPhase.DATA_MIGRATED, manifest, revisionDir)

            step = "activate"
            unwind.push("activation", lambda: self._restoreActivation(packageDir, previous))
            activate(revisionDir)
            self._phase(InstallPhase.ACTIVE, manifest, revisionDir)

        except BaseException as err:
            self.tracer.traceEvent(
                "install.unwind",
                attrs={"phase": step, "errorType": type(err).__name__, "errorMessage": str(err)},
                level="warning",
                tags=["install", "unwind"],
            )
            unwind.run()
            if manifest is not None:
                for listener in self.listeners:
                    listener.onUnwound(manifest.name, manifest.version, step, err)
            if step in _PARTIAL_PHASES and isinstance(err, (OSError, SnappyError)) and not isinstance(err, _COMPOSITION_ERRORS):
                raise PartialInstallFailure(
                    f"Install of '{packageFile}' failed while writing {step}: {err}",
                    phase=step,
                    extra={"packageFile": str(packageFile)},
                ) from err
            raise

        unwind.discard()
        if aside is not None:
            removePath(aside)
        return InstalledRevision(revisionDir)

    def _setAside(self, revisionDir: Path, isCurrent: bool, unwind: _Unwind) -> Path:
        """
        Move the installed tree of `revisionDir` out of the way. When it is
        the active revision, `current` follows it to a hard-linked mirror
        first, so the link always resolves to a complete tree.
        """
        packageDir = revisionDir.parent
        aside = packageDir / f".{revisionDir.name}.old-{stagingToken()}"
        unwind.push("aside", lambda: removePath(aside))
        linkTree(revisionDir, aside)
        unwind.push("restore", lambda: self._restoreAside(revisionDir, aside, isCurrent))
        if isCurrent:
            atomicSymlink(aside.name, currentLink(packageDir))
        removePath(revisionDir)
        return aside

    def _restoreAside(self, revisionDir: Path, aside: Path, isCurrent: bool) -> None:
        link = currentLink(revisionDir.parent)
        if isCurrent:
            atomicSymlink(aside.name, link)
        removePath(revisionDir)
        os.rename(aside, revisionDir)
        if isCurrent:
            atomicSymlink(revisionDir.name, link)

    def _restoreActivation(self, packageDir: Path, prior: Path | None) -> None:
        if prior is None:
            deactivate(packageDir)
        else:
            atomicSymlink(prior.name, currentLink(packageDir))

    def _writePolicies(self, manifest: PackageManifest, revisionDir: Path, decisions: Decisions | None) -> None:
        """Compose `meta/<app>.apparmor` and `.seccomp` for apps without their own policy."""
        installDir = str(self.rootFor(manifest.type))
        for app in manifest.apps():
            appKey = manifest.appKey(app)
            if app.securityPolicy:
                logger.debug("%s ships its own policy '%s'", appKey, app.securityPolicy)
                continue
            profile = self.composer.composeForApp(self.interfaceRegistry, manifest, app, installDir, decisions)
            metaDir = revisionDir / "meta"
            atomicWriteText(metaDir / f"{appKey}.apparmor", profile.appArmor)
            atomicWriteText(metaDir / f"{appKey}.seccomp", profile.secComp)
            self.tracer.traceEvent(
                "install.policy",
                attrs={"app": appKey, "profile": profile.name, "interfaces": list(profile.interfaces)},
                tags=["install", "policy"],
            )

    def _writeGenerated(self, path: Path, text: str, mode: int, unwind: _Unwind) -> None:
        previous = path.read_text(encoding="utf-8") if path.is_file() else None
        if previous is None:
            unwind.push(f"remove {path.name}", lambda: path.unlink(missing_ok=True))
        else:
            unwind.push(f"restore {path.name}", lambda: atomicWriteText(path, previous, mode=mode))
        atomicWriteText(path, text, mode=mode)

    def _writeWrappers(self, manifest: PackageManifest, revisionDir: Path, unwind: _Unwind) -> None:
        pkgPath = f"{revisionDir}/"
        for binary in manifest.binaries:
            text = generateBinaryWrapper(
                binary,
                pkgPath,
                binaryProfileName(manifest, binary),
                manifest,
                confineCommand=self.confineCommand,
                tmpBase=self.dirs.tmpBase,
            )
            self._writeGenerated(self.dirs.binariesDir / binaryWrapperName(manifest, binary), text, 0o755, unwind)
        for service in manifest.services:
            text = generateServiceFile(service, pkgPath, serviceProfileName(manifest, service), manifest)
            self._writeGenerated(self.dirs.servicesDir / serviceFileName(manifest, service), text, 0o644, unwind)

    def installLocal(
        self,
        paths: Iterable[str | Path],
        *,
        allowUnauthenticated: bool | None = None,
        decisions: Decisions | None = None,
    ) -> list[InstalledRevision]:
        """
        Install every path that names an existing local file.

        Unauthenticated packages are accepted in developer mode unless the
        caller decides explicitly.
        """
        paths = list(paths)
        if allowUnauthenticated is None:
            allowUnauthenticated = self.developerMode()

        installed: list[InstalledRevision] = []
        for path in paths:
            packageFile = Path(path)
            if not packageFile.is_file():
                logger.info("'%s' is not a local package file; skipping", path)
                continue
            installed.append(self.install(packageFile, allowUnauthenticated=allowUnauthenticated, decisions=decisions))

        if not installed:
            names = ",".join(str(path) for path in paths)
            raise NothingInstalled(f"Could not install anything for '{names}'", extra={"paths": [str(p) for p in paths]})
        return installed

    # ----- Remove -----

    def _readInstalled(self, revisionDir: Path) -> PackageManifest:
        if not (revisionDir / PACKAGE_YAML_PATH).is_file():
            raise PackageNotInstalled(f"No installed revision at '{revisionDir}'", extra={"path": str(revisionDir)})
        return readPackageManifest(revisionDir)

    def remove(self, revisionDir: str | Path) -> None:
        """
        Remove one revision: hook links, its wrappers and units, then the tree.

        Removing the active revision leaves the package without an active
        revision; no other revision is activated in its place.
        """
        revisionDir = Path(revisionDir)
        manifest = self._readInstalled(revisionDir)
        with self._operation("remove", manifest.name, manifest.version):
            packageDir = revisionDir.parent
            wasActive = isActive(revisionDir)

            removeHooks(manifest, self.hookRegistry.hooks(), self.runCommand)
            self._removeWrappers(manifest, revisionDir)
            if wasActive:
                deactivate(packageDir)
            removePath(revisionDir)
            if packageDir.is_dir() and not any(packageDir.iterdir()):
                packageDir.rmdir()

            self.tracer.traceEvent(
                "install.removed",
                attrs={"revisionDir": str(revisionDir), "wasActive": wasActive},
                level="info",
                tags=["install", "remove"],
            )
            for listener in self.listeners:
                listener.onRemoved(manifest.name, manifest.version, revisionDir)
            logger.info("Removed %s %s", manifest.name, manifest.version)

    def _removeWrappers(self, manifest: PackageManifest, revisionDir: Path) -> None:
        prefix = f"{str(revisionDir).rstrip('/')}/"
        for binary in manifest.binaries:
            path = self.dirs.binariesDir / binaryWrapperName(manifest, binary)
            if not path.is_file():
                continue
            target = wrapperTarget(path.read_text(encoding="utf-8"))
            if target is not None and target.startswith(prefix):
                path.unlink()
            else:
                logger.debug("Wrapper '%s' belongs to another revision; keeping it", path)
        for service in manifest.services:
            (self.dirs.servicesDir / serviceFileName(manifest, service)).unlink(missing_ok=True)

    # ----- Activation -----

    def setActive(self, revisionDir: str | Path) -> None:
        """
        Make `revisionDir` the active revision of its package.

        Wrappers and service units are regenerated to point at it before the
        `current` link is repointed; a failure restores both.
        """
        revisionDir = Path(revisionDir)
        manifest = self._readInstalled(revisionDir)
        with self._operation("setActive", manifest.name, manifest.version):
            if isActive(revisionDir):
                logger.debug("%s %s is already active", manifest.name, manifest.version)
                return
            unwind = _Unwind()
            try:
                self._writeWrappers(manifest, revisionDir, unwind)
                prior = activate(revisionDir)
            except BaseException:
                unwind.run()
                raise
            self._phase(InstallPhase.ACTIVE, manifest, revisionDir)
            logger.info(
                "Activated %s %s (was %s)",
                manifest.name, manifest.version, prior.name if prior is not None else "nothing",
            )
