# snappy/install/archive.py
from __future__ import annotations
import logging
import tarfile
from pathlib import Path

from snappy.core.errors import MalformedManifest
from snappy.manifest.models import PackageYaml
from snappy.manifest.reader import PACKAGE_YAML_PATH, parsePackageYaml

logger = logging.getLogger(__name__)

__all__ = ["peekPackageYaml", "unpackArchive"]



def _open(packageFile: Path) -> tarfile.TarFile:
    try:
        # "r:*" sniffs gzip/bz2/xz or plain tar
        return tarfile.open(packageFile, mode="r:*")
    except (OSError, tarfile.TarError) as err:
        raise MalformedManifest(
            f"'{packageFile}' is not a readable package archive: {err}",
            extra={"source": str(packageFile)},
        ) from err



def _memberName(member: tarfile.TarInfo) -> str:
    name = member.name
    while name.startswith("./"):
        name = name[2:]
    return name



def peekPackageYaml(packageFile: Path) -> PackageYaml:
    """Parse `meta/package.yaml` straight from the archive without extracting it."""
    wanted = PACKAGE_YAML_PATH.as_posix()
    with _open(packageFile) as tar:
        for member in tar:
            if _memberName(member) != wanted or not member.isfile():
                continue
            fl = tar.extractfile(member)
            if fl is None:
                break
            with fl:
                return parsePackageYaml(fl.read(), source=f"{packageFile}:{wanted}")
    raise MalformedManifest(f"'{packageFile}' has no {wanted}", extra={"source": str(packageFile)})



def unpackArchive(packageFile: Path, destDir: Path) -> None:
    """
    Extract every member into `destDir`.

    The `data` filter rejects absolute names, `..` traversal, device nodes
    and links pointing outside the destination.
    """
    destDir.mkdir(parents=True, exist_ok=True)
    with _open(packageFile) as tar:
        try:
            tar.extractall(destDir, filter="data")
        except tarfile.TarError as err:
            raise MalformedManifest(
                f"Cannot unpack '{packageFile}': {err}",
                extra={"source": str(packageFile)},
            ) from err
    logger.debug("Unpacked '%s' into '%s'", packageFile, destDir)
