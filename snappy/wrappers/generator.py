# snappy/wrappers/generator.py
from __future__ import annotations
import posixpath
from string import Template

from snappy.interfaces.composer import profileName
from snappy.manifest.models import Binary, PackageManifest, Service

__all__ = [
    "TARGET_MARKER",
    "binaryProfileName",
    "serviceProfileName",
    "binaryWrapperName",
    "serviceFileName",
    "binaryTarget",
    "generateBinaryWrapper",
    "generateServiceFile",
    "wrapperTarget",
]

# The installer finds the revision a wrapper belongs to through this line.
TARGET_MARKER = "##TARGET="

# Output of both templates is compared byte for byte; keep whitespace intact.
_WRAPPER_TEMPLATE = Template("""#!/bin/sh
# !!!never remove this line!!!
##TARGET=${target}

set -e

TMPDIR="${tmpBase}/${name}/${version}/tmp"
if [ ! -d "$$TMPDIR" ]; then
    mkdir -p -m1777 "$$TMPDIR"
fi
export TMPDIR
export TEMPDIR="$$TMPDIR"

# app paths (deprecated)
export SNAPP_APP_PATH="${appPath}"
export SNAPP_APP_DATA_PATH="/var/lib/${appPath}"
export SNAPP_APP_USER_DATA_PATH="$$HOME/${appPath}"
export SNAPP_APP_TMPDIR="$$TMPDIR"
export SNAPP_OLD_PWD="$$(pwd)"

# app paths
export SNAP_APP_PATH="${appPath}"
export SNAP_APP_DATA_PATH="/var/lib/${appPath}"
export SNAP_APP_USER_DATA_PATH="$$HOME/${appPath}"
export SNAP_APP_TMPDIR="$$TMPDIR"

# FIXME: this will need to become snappy arch or something
export SNAPPY_APP_ARCH="$$(dpkg --print-architecture)"

if [ ! -d "$$SNAP_APP_USER_DATA_PATH" ]; then
   mkdir -p "$$SNAP_APP_USER_DATA_PATH"
fi
export HOME="$$SNAP_APP_USER_DATA_PATH"

# export old pwd
export SNAP_OLD_PWD="$$(pwd)"
cd ${appPath}
${confineCommand} -p ${profile} -- ${target} "$$@"
""")

_SERVICE_TEMPLATE = Template("""[Unit]
Description=${description}
After=apparmor.service
Requires=apparmor.service
X-Snappy=yes

[Service]
ExecStart=${execStart}
WorkingDirectory=${appPath}
Environment=${environment}
AppArmorProfile=${profile}
${execStop}
${execStopPost}
${timeoutStopSec}

[Install]
WantedBy=multi-user.target
""")



def binaryProfileName(manifest: PackageManifest, binary: Binary) -> str:
    return profileName(manifest, binary)



def serviceProfileName(manifest: PackageManifest, service: Service) -> str:
    return profileName(manifest, service)



def binaryWrapperName(manifest: PackageManifest, binary: Binary) -> str:
    """`bin/foo` of package `foo.mvo` becomes `foo.foo.mvo`."""
    return f"{binary.appName}.{manifest.name}"



def serviceFileName(manifest: PackageManifest, service: Service) -> str:
    return f"{manifest.name}_{service.name}_{manifest.version}.service"



def _joinClean(base: str, rel: str) -> str:
    return posixpath.normpath(posixpath.join(base, rel))



def binaryTarget(binary: Binary, pkgPath: str) -> str:
    return _joinClean(pkgPath, binary.exec or binary.name)



def generateBinaryWrapper(
    binary: Binary,
    pkgPath: str,
    profileName: str,
    manifest: PackageManifest,
    *,
    confineCommand: str = "aa-exec",
    tmpBase: str = "/tmp/snapps",
) -> str:
    """
    Render the shell wrapper that launches `binary` confined by `profileName`.

    Every path is derived from `pkgPath` as given, so a trailing slash there
    shows up verbatim in the exported variables.
    """
    return _WRAPPER_TEMPLATE.substitute(
        target=binaryTarget(binary, pkgPath),
        tmpBase=tmpBase.rstrip("/"),
        name=manifest.name,
        version=manifest.version,
        appPath=pkgPath,
        confineCommand=confineCommand,
        profile=profileName,
    )



def generateServiceFile(service: Service, pkgPath: str, profileName: str, manifest: PackageManifest) -> str:
    env = [
        f"SNAPP_APP_PATH={pkgPath}",
        f"SNAPP_APP_DATA_PATH=/var/lib{pkgPath}",
        f"SNAPP_APP_USER_DATA_PATH=%h{pkgPath}",
        f"SNAP_APP_PATH={pkgPath}",
        f"SNAP_APP_DATA_PATH=/var/lib{pkgPath}",
        f"SNAP_APP_USER_DATA_PATH=%h{pkgPath}",
        f"SNAP_APP={manifest.name}_{service.name}_{manifest.version}",
    ]
    return _SERVICE_TEMPLATE.substitute(
        description=service.description,
        execStart=_joinClean(pkgPath, service.start),
        appPath=pkgPath,
        environment=" ".join(f'"{item}"' for item in env),
        profile=profileName,
        execStop=f"ExecStop={_joinClean(pkgPath, service.stop)}" if service.stop else "",
        execStopPost=f"ExecStopPost={_joinClean(pkgPath, service.poststop)}" if service.poststop else "",
        timeoutStopSec=f"TimeoutStopSec={service.stopTimeout}" if service.stopTimeout else "",
    )



def wrapperTarget(text: str) -> str | None:
    """The `##TARGET=` path of a generated wrapper, or None for foreign files."""
    for line in text.splitlines()[:5]:
        if line.startswith(TARGET_MARKER):
            return line[len(TARGET_MARKER):].strip()
    return None
