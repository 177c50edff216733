# tests/snappy/hooks/test_hooks.py
from __future__ import annotations
import json
import logging
import os
from pathlib import Path

import pytest

from snappy.core.errors import HookFileUnreadable, MalformedManifest
from snappy.hooks.instances import hookInstanceId, installHooks, removeHooks
from snappy.hooks.registry import Hook, HookRegistry, readHookFile
from snappy.manifest.models import ClickManifest, PackageManifest
from snappy.manifest.reader import parseClickManifest, parsePackageYaml


def makeClickHook(hooksDir: Path, hookName: str, hookContent: str) -> Path:
    hooksDir.mkdir(parents=True, exist_ok=True)
    path = hooksDir / f"{hookName}.hook"
    path.write_text(hookContent, encoding="utf-8")
    return path


def _manifest(hooks: dict) -> PackageManifest:
    return PackageManifest(
        packageYaml=parsePackageYaml("name: foo\nversion: 1.0\n"),
        click=parseClickManifest(json.dumps({"name": "foo", "version": "1.0", "hooks": hooks})),
    )


# ----------------------------
# Hook files
# ----------------------------

def test_readHookFile_allKeys(tmp_path: Path) -> None:
    path = makeClickHook(
        tmp_path / "hooks",
        "snappy-systemd",
        "Hook-Name: systemd\nUser: root\nExec: /usr/lib/click-systemd/systemd-clickhook\n"
        "Pattern: /var/lib/systemd/click/${id}",
    )
    hook = readHookFile(path)

    assert hook.name == "systemd"
    assert hook.user == "root"
    assert hook.exec == "/usr/lib/click-systemd/systemd-clickhook"
    assert hook.pattern == "/var/lib/systemd/click/${id}"


def test_readHookFile_missingNameUsesFileName(tmp_path: Path) -> None:
    path = makeClickHook(tmp_path / "hooks", "apparmor", "\nPattern: /var/lib/apparmor/click/${id}")
    assert readHookFile(path).name == "apparmor"


def test_readHookFile_ignoresCommentsAndUnknownKeys(tmp_path: Path) -> None:
    path = makeClickHook(
        tmp_path / "hooks",
        "x",
        "# a comment\n\nHook-Name: x\nSingle-Version: yes\nnot a key line\nPattern: /p/${id}\n",
    )
    assert readHookFile(path) == Hook(name="x", pattern="/p/${id}")


def test_readHookFile_unreadableRaises(tmp_path: Path) -> None:
    with pytest.raises(HookFileUnreadable):
        readHookFile(tmp_path / "missing.hook")


def test_symlinkPath_expandsId() -> None:
    hook = Hook(name="apparmor", pattern="/var/lib/apparmor/click/${id}")
    assert hook.symlinkPath("foo_app_1.0") == Path("/var/lib/apparmor/click/foo_app_1.0")
    assert hookInstanceId("foo", "app", "1.0") == "foo_app_1.0"


# ----------------------------
# Registry
# ----------------------------

def test_hookRegistry_scansDirectory(tmp_path: Path) -> None:
    hooksDir = tmp_path / "hooks"
    makeClickHook(
        hooksDir,
        "snappy-systemd",
        "Hook-Name: systemd\nUser: root\nExec: /usr/lib/click-systemd/systemd-clickhook\n"
        "Pattern: /var/lib/systemd/click/${id}",
    )
    (hooksDir / "README").write_text("not a hook", encoding="utf-8")

    hooks = HookRegistry(hooksDir).hooks()
    assert list(hooks) == ["systemd"]
    assert hooks["systemd"].name == "systemd"


def test_hookRegistry_missingDirIsEmpty(tmp_path: Path) -> None:
    assert dict(HookRegistry(tmp_path / "nope").hooks()) == {}


def test_hookRegistry_cachesFirstScan(tmp_path: Path) -> None:
    hooksDir = tmp_path / "hooks"
    makeClickHook(hooksDir, "a", "Pattern: /a/${id}")
    registry = HookRegistry(hooksDir)
    assert list(registry.hooks()) == ["a"]

    makeClickHook(hooksDir, "b", "Pattern: /b/${id}")
    assert list(registry.hooks()) == ["a"]
    assert list(HookRegistry(hooksDir).hooks()) == ["a", "b"]


def test_hookRegistry_collisionLastFileWins(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    hooksDir = tmp_path / "hooks"
    makeClickHook(hooksDir, "b-second", "Hook-Name: same\nPattern: /second/${id}")
    makeClickHook(hooksDir, "a-first", "Hook-Name: same\nPattern: /first/${id}")

    with caplog.at_level(logging.WARNING, logger="snappy.hooks.registry"):
        hooks = HookRegistry(hooksDir).hooks()

    assert hooks["same"].pattern == "/second/${id}"
    assert any("defined by both" in rec.getMessage() for rec in caplog.records)


def test_hookRegistry_unreadableFileAbortsScan(tmp_path: Path) -> None:
    hooksDir = tmp_path / "hooks"
    makeClickHook(hooksDir, "good", "Pattern: /g/${id}")
    (hooksDir / "broken.hook").mkdir()

    with pytest.raises(HookFileUnreadable):
        HookRegistry(hooksDir).hooks()


# ----------------------------
# Instances
# ----------------------------

def _twoHooks(tmp_path: Path) -> tuple[HookRegistry, Path, Path]:
    hooksDir = tmp_path / "hooks"
    systemdDir = tmp_path / "var" / "lib" / "systemd" / "click"
    apparmorDir = tmp_path / "var" / "lib" / "apparmor" / "click"
    systemdDir.mkdir(parents=True)
    apparmorDir.mkdir(parents=True)
    makeClickHook(hooksDir, "snappy-systemd", f"Hook-Name: systemd\nPattern: {systemdDir}/${{id}}")
    makeClickHook(
        hooksDir,
        "click-apparmor",
        f"Hook-Name: apparmor\nExec: /usr/bin/aa-clickhook -f\nPattern: {apparmorDir}/${{id}}",
    )
    return HookRegistry(hooksDir), systemdDir, apparmorDir


def test_installHooks_linksEveryKnownHook(tmp_path: Path, runner) -> None:
    registry, systemdDir, apparmorDir = _twoHooks(tmp_path)
    instDir = tmp_path / "apps" / "foo" / "1.0"
    instDir.mkdir(parents=True)
    (instDir / "path-to-systemd-file").write_text("", encoding="utf-8")
    (instDir / "path-to-apparmor-file").write_text("", encoding="utf-8")
    manifest = _manifest(
        {
            "app": {
                "systemd": "path-to-systemd-file",
                "apparmor": "path-to-apparmor-file",
                "bin-path": "bin/app",
            }
        }
    )

    created = installHooks(instDir, manifest, registry.hooks(), runner)

    systemdLink = systemdDir / "foo_app_1.0"
    apparmorLink = apparmorDir / "foo_app_1.0"
    assert created == [systemdLink, apparmorLink]
    assert os.path.realpath(systemdLink) == os.path.realpath(instDir / "path-to-systemd-file")
    assert os.path.realpath(apparmorLink) == os.path.realpath(instDir / "path-to-apparmor-file")
    assert runner.calls == [["/usr/bin/aa-clickhook", "-f"]]

    removed = removeHooks(manifest, registry.hooks(), runner)
    assert set(removed) == {systemdLink, apparmorLink}
    assert not systemdLink.exists() and not systemdLink.is_symlink()
    assert not apparmorLink.exists() and not apparmorLink.is_symlink()
    assert runner.calls[-1] == ["/usr/bin/aa-clickhook", "-f"]


def test_installHooks_reinstallReplacesLink(tmp_path: Path) -> None:
    registry, systemdDir, _apparmorDir = _twoHooks(tmp_path)
    manifest = _manifest({"app": {"systemd": "unit"}})
    first = tmp_path / "one"
    second = tmp_path / "two"

    installHooks(first, manifest, registry.hooks())
    installHooks(second, manifest, registry.hooks())

    assert [p.name for p in systemdDir.iterdir()] == ["foo_app_1.0"]
    assert os.readlink(systemdDir / "foo_app_1.0") == str(second / "unit")


def test_removeHooks_missingLinksAreFine(tmp_path: Path) -> None:
    registry, _systemdDir, _apparmorDir = _twoHooks(tmp_path)
    manifest = _manifest({"app": {"systemd": "unit"}})
    assert removeHooks(manifest, registry.hooks()) == []


def test_installHooks_skipsHooksNotInCatalog(tmp_path: Path) -> None:
    manifest = _manifest({"app": {"unknown-hook": "x"}})
    assert installHooks(tmp_path, manifest, {}) == []


def test_installHooks_refusesTargetsOutsideRevision(tmp_path: Path) -> None:
    registry, systemdDir, _apparmorDir = _twoHooks(tmp_path)
    # Skips model validation to reach the link step with a hostile path.
    manifest = PackageManifest(
        packageYaml=parsePackageYaml("name: foo\nversion: 1.0\n"),
        click=ClickManifest.model_construct(name="foo", version="1.0", hooks={"app": {"systemd": "/etc/shadow"}}),
    )

    with pytest.raises(MalformedManifest):
        installHooks(tmp_path / "apps" / "foo" / "1.0", manifest, registry.hooks())
    assert list(systemdDir.iterdir()) == []


def test_removeHooks_leavesRegularFilesAlone(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    registry, systemdDir, _apparmorDir = _twoHooks(tmp_path)
    manifest = _manifest({"app": {"systemd": "unit"}})
    stray = systemdDir / "foo_app_1.0"
    stray.write_text("admin wrote this", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="snappy.hooks.instances"):
        assert removeHooks(manifest, registry.hooks()) == []

    assert stray.read_text(encoding="utf-8") == "admin wrote this"
    assert any("not a hook link" in rec.getMessage() for rec in caplog.records)
