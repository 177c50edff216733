import io
import sys
import tarfile
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from snappy.app.dirs import SnapDirs
from snappy.app.settings import DEFAULT_SETTINGS
from snappy.core.errors import VerificationFailed
from snappy.core.tracing import TraceHub, Tracer
from snappy.hooks.registry import HookRegistry
from snappy.install.engine import InstallEngine

DEFAULT_PACKAGE_YAML = """name: foo
version: 1.0
vendor: Foo Bar <foo@example.com>
"""

HELLO_BINARY = '#!/bin/sh\necho "hello"'



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



class RecordingRunner:
    """Stands in for runCommand; remembers every argv it was asked to run."""
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def __call__(self, args: Sequence[str]) -> None:
        self.calls.append([str(arg) for arg in args])



class FakeVerifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[Path, bool]] = []

    def verify(self, packageFile: Path, allowUnauthenticated: bool) -> None:
        self.calls.append((Path(packageFile), allowUnauthenticated))
        if self.fail:
            raise VerificationFailed("something went wrong")



def _addBytes(tar: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    tar.addfile(info, io.BytesIO(data))



def buildSnapPackage(
    outDir: Path,
    packageYaml: str = "",
    *,
    files: dict[str, str] | None = None,
    manifestJson: str | None = None,
) -> Path:
    """Writes a gzip'ed tar with meta/package.yaml and bin/foo, like a built snap."""
    packageYaml = packageYaml or DEFAULT_PACKAGE_YAML
    outDir.mkdir(parents=True, exist_ok=True)
    index = len(list(outDir.glob("*.snap")))
    path = outDir / f"pkg{index}.snap"
    with tarfile.open(path, "w:gz") as tar:
        _addBytes(tar, "meta/package.yaml", packageYaml.encode("utf-8"))
        _addBytes(tar, "bin/foo", HELLO_BINARY.encode("utf-8"), mode=0o755)
        if manifestJson is not None:
            _addBytes(tar, "meta/manifest.json", manifestJson.encode("utf-8"))
        for name, content in (files or {}).items():
            _addBytes(tar, name, content.encode("utf-8"))
    return path



@pytest.fixture()
def snap_dirs(tmp_path: Path) -> SnapDirs:
    return SnapDirs.fromSettings(DEFAULT_SETTINGS, rootDir=tmp_path)



@pytest.fixture()
def make_snap(tmp_path: Path) -> Callable[..., Path]:
    def _make(packageYaml: str = "", **kwargs) -> Path:
        return buildSnapPackage(tmp_path / "build", packageYaml, **kwargs)
    return _make



@pytest.fixture()
def runner() -> RecordingRunner:
    return RecordingRunner()



@pytest.fixture()
def verifier() -> FakeVerifier:
    return FakeVerifier()



@pytest.fixture()
def trace_hub() -> TraceHub:
    return TraceHub(capacity=1000)



@pytest.fixture()
def engine(snap_dirs: SnapDirs, verifier: FakeVerifier, runner: RecordingRunner, trace_hub: TraceHub) -> InstallEngine:
    return InstallEngine(
        snap_dirs,
        verifier=verifier,
        hookRegistry=HookRegistry(snap_dirs.hooksDir),
        runCommand=runner,
        tracer=Tracer(trace_hub),
    )
