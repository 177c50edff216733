# snappy/manifest/__init__.py
from .models import (
    SnapType,
    Plug,
    Binary,
    Service,
    App,
    PackageYaml,
    ClickManifest,
    PackageManifest,
)
from .reader import (
    parsePackageYaml,
    parseClickManifest,
    readPackageYaml,
    readClickManifest,
    readPackageManifest,
    synthesizeClickManifest,
    serializeClickManifest,
)

__all__ = [
    "SnapType",
    "Plug",
    "Binary",
    "Service",
    "App",
    "PackageYaml",
    "ClickManifest",
    "PackageManifest",
    "parsePackageYaml",
    "parseClickManifest",
    "readPackageYaml",
    "readClickManifest",
    "readPackageManifest",
    "synthesizeClickManifest",
    "serializeClickManifest",
]
