# snappy/manifest/reader.py
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any

import json5
import yaml
from pydantic import ValidationError

from snappy.core.errors import MalformedManifest
from snappy.manifest.models import Binary, ClickManifest, PackageManifest, PackageYaml

logger = logging.getLogger(__name__)

__all__ = [
    "PACKAGE_YAML_PATH",
    "CLICK_INFO_DIR",
    "ARCHIVE_MANIFEST_PATH",
    "clickManifestPath",
    "parsePackageYaml",
    "parseClickManifest",
    "readPackageYaml",
    "readClickManifest",
    "readPackageManifest",
    "synthesizeClickManifest",
    "serializeClickManifest",
]



PACKAGE_YAML_PATH = Path("meta") / "package.yaml"
CLICK_INFO_DIR = Path(".click") / "info"
# Optional package-level manifest shipped inside the archive.
ARCHIVE_MANIFEST_PATH = Path("meta") / "manifest.json"



def clickManifestPath(revisionDir: Path, name: str) -> Path:
    return revisionDir / CLICK_INFO_DIR / f"{name}.manifest"



def _describeValidation(err: ValidationError) -> str:
    parts = []
    for issue in err.errors():
        loc = ".".join(str(item) for item in issue.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {issue.get('msg')}")
    return "; ".join(parts)



def parsePackageYaml(data: str | bytes, *, source: str = "package.yaml") -> PackageYaml:
    """
    Parse a revision-level manifest.

    Scalars are loaded as text (no YAML type resolution) so that versions
    like `1.10` stay opaque strings instead of turning into floats.
    """
    try:
        raw = yaml.load(data, Loader=yaml.BaseLoader)
    except yaml.YAMLError as err:
        raise MalformedManifest(f"{source}: cannot parse YAML: {err}", extra={"source": source}) from err
    if not isinstance(raw, dict):
        raise MalformedManifest(f"{source}: expected a mapping at top level", extra={"source": source})
    try:
        return PackageYaml.model_validate(raw)
    except ValidationError as err:
        raise MalformedManifest(f"{source}: {_describeValidation(err)}", extra={"source": source}) from err



def parseClickManifest(data: str | bytes, *, source: str = "manifest") -> ClickManifest:
    """Parse a package-level manifest (JSON, JSON5 accepted)."""
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedManifest(f"{source}: not valid UTF-8", extra={"source": source}) from err
    try:
        raw = json5.loads(data)
    except ValueError as err:
        raise MalformedManifest(f"{source}: cannot parse JSON: {err}", extra={"source": source}) from err
    if not isinstance(raw, dict):
        raise MalformedManifest(f"{source}: expected an object at top level", extra={"source": source})
    try:
        return ClickManifest.model_validate(raw)
    except ValidationError as err:
        raise MalformedManifest(f"{source}: {_describeValidation(err)}", extra={"source": source}) from err



def _readBytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as err:
        raise MalformedManifest(f"Cannot read manifest '{path}': {err}", extra={"source": str(path)}) from err



def readPackageYaml(path: Path) -> PackageYaml:
    return parsePackageYaml(_readBytes(path), source=str(path))



def readClickManifest(path: Path) -> ClickManifest:
    return parseClickManifest(_readBytes(path), source=str(path))



def readPackageManifest(revisionDir: Path) -> PackageManifest:
    """
    Read both documents of an unpacked or installed revision.

    Installed revisions carry `.click/info/<name>.manifest`; freshly unpacked
    trees may carry `meta/manifest.json` or nothing, in which case the
    package-level manifest is derived from package.yaml.
    """
    packageYaml = readPackageYaml(revisionDir / PACKAGE_YAML_PATH)

    installedPath = clickManifestPath(revisionDir, packageYaml.name)
    if installedPath.exists():
        click = readClickManifest(installedPath)
    elif (revisionDir / ARCHIVE_MANIFEST_PATH).exists():
        click = readClickManifest(revisionDir / ARCHIVE_MANIFEST_PATH)
    else:
        click = synthesizeClickManifest(packageYaml)

    if (click.name, click.version) != (packageYaml.name, packageYaml.version):
        raise MalformedManifest(
            f"Manifest mismatch in '{revisionDir}': package.yaml says "
            f"{packageYaml.name} {packageYaml.version}, manifest says {click.name} {click.version}",
            extra={"source": str(revisionDir)},
        )
    return PackageManifest(packageYaml=packageYaml, click=click)



def synthesizeClickManifest(packageYaml: PackageYaml) -> ClickManifest:
    """
    Derive the package-level manifest from package.yaml.

    Every app gets `apparmor`/`seccomp` hook entries pointing at its policy
    files under meta/; binaries also get `bin-path`. A security-policy
    override points at the policy files the package ships itself.
    """
    hooks: dict[str, dict[str, str]] = {}
    for app in (*packageYaml.binaries, *packageYaml.services):
        appKey = packageYaml.appKey(app)
        policyBase = app.securityPolicy or appKey
        entry = {
            "apparmor": f"meta/{policyBase}.apparmor",
            "seccomp": f"meta/{policyBase}.seccomp",
        }
        if isinstance(app, Binary):
            entry["bin-path"] = app.name
        hooks[appKey] = entry

    logger.debug("Synthesized click hooks for '%s': %s", packageYaml.name, sorted(hooks))

    raw: dict[str, Any] = {
        "name": packageYaml.name,
        "version": packageYaml.version,
        "hooks": hooks,
        "icon": packageYaml.icon,
        "maintainer": packageYaml.vendor,
        "description": packageYaml.description,
    }
    try:
        return ClickManifest.model_validate(raw)
    except ValidationError as err:
        source = f"{packageYaml.name} (synthesized manifest)"
        raise MalformedManifest(f"{source}: {_describeValidation(err)}", extra={"source": source}) from err



def serializeClickManifest(manifest: ClickManifest) -> str:
    payload = manifest.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(payload, indent=4, sort_keys=True, ensure_ascii=False) + "\n"
