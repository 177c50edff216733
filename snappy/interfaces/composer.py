# snappy/interfaces/composer.py
from __future__ import annotations
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from snappy.core.errors import UnknownSecurityTemplate
from snappy.interfaces.registry import Interface, InterfaceRegistry, checkAllowed
from snappy.manifest.models import App, PackageManifest, SnapType

logger = logging.getLogger(__name__)

__all__ = [
    "AppContext",
    "Connection",
    "ConfinementProfile",
    "SecurityTemplate",
    "DEFAULT_TEMPLATES",
    "profileName",
    "templateVariables",
    "resolveConnections",
    "PolicyComposer",
]



@dataclass(frozen=True, slots=True)
class AppContext:
    """Everything per-app that policy text may depend on."""
    appName: str
    snapName: str
    revision: str
    installDir: str
    snapType: SnapType = SnapType.APP

    @classmethod
    def forApp(cls, manifest: PackageManifest, app: App, installDir: str) -> "AppContext":
        return cls(
            appName=manifest.appKey(app),
            snapName=manifest.name,
            revision=manifest.version,
            installDir=installDir,
            snapType=manifest.type,
        )



@dataclass(frozen=True, slots=True)
class Connection:
    plug: str
    interface: Interface



@dataclass(frozen=True, slots=True)
class ConfinementProfile:
    name: str
    appArmor: str
    secComp: str
    interfaces: tuple[str, ...] = ()



@dataclass(frozen=True, slots=True)
class SecurityTemplate:
    """
    Outer text around the composed snippets.

    Placeholders: `###VAR###` (the variable block), `###PROFILEATTACH###`
    (profile declaration) and `###SNIPPETS###` (interface fragments, in
    connection order). The seccomp template only takes `###SNIPPETS###`.
    """
    name: str
    appArmor: str
    secComp: str



_DEFAULT_APPARMOR = """# Description: Allows access to app-specific directories and basic runtime
# Usage: common

#include <tunables/global>

###VAR###

###PROFILEATTACH### (attach_disconnected) {
  #include <abstractions/base>
  #include <abstractions/consoles>
  #include <abstractions/openssl>

  # for python apps/services
  #include <abstractions/python>
  /usr/bin/python{,2,2.[0-9]*,3,3.[0-9]*} ixr,

  # for bash 'binaries' (do *not* use abstractions/bash)
  /{,usr/}bin/bash ixr,
  /{,usr/}bin/dash ixr,
  /etc/bash.bashrc r,
  /usr/share/terminfo/** r,
  /etc/inputrc r,

  # Read-only for the install directory
  @{INSTALL_DIR}/@{SNAP_NAME}/                   r,
  @{INSTALL_DIR}/@{SNAP_NAME}/@{SNAP_REVISION}/    r,
  @{INSTALL_DIR}/@{SNAP_NAME}/@{SNAP_REVISION}/**  mrklix,

  # Writable home area
  owner @{HOME}/apps/@{SNAP_NAME}/                  rw,
  owner @{HOME}/apps/@{SNAP_NAME}/@{SNAP_REVISION}/   rw,
  owner @{HOME}/apps/@{SNAP_NAME}/@{SNAP_REVISION}/** mrwklix,

  # Writable system area
  /var/lib/apps/@{SNAP_NAME}/                   rw,
  /var/lib/apps/@{SNAP_NAME}/@{SNAP_REVISION}/    rw,
  /var/lib/apps/@{SNAP_NAME}/@{SNAP_REVISION}/**  mrwklix,

  # The snap-specific private /tmp
  /tmp/snapps/@{SNAP_NAME}/                      rw,
  /tmp/snapps/@{SNAP_NAME}/@{SNAP_REVISION}/       rw,
  /tmp/snapps/@{SNAP_NAME}/@{SNAP_REVISION}/**     mrwkl,
###SNIPPETS###
}
"""

_DEFAULT_SECCOMP = """# Description: Allows access to app-specific directories and basic runtime
# Usage: common

# Dangerous syscalls that we don't ever want to allow.
deny kexec_load
deny init_module
deny finit_module
deny delete_module

access
alarm
arch_prctl
brk
chdir
chmod
clock_getres
clock_gettime
clock_nanosleep
clone
close
dup
dup2
dup3
epoll_create
epoll_create1
epoll_ctl
epoll_wait
eventfd2
execve
exit
exit_group
faccessat
fchdir
fcntl
fstat
fsync
futex
getcwd
getdents
getdents64
getegid
geteuid
getgid
getpid
getppid
getrandom
getrlimit
getuid
ioctl
lseek
lstat
madvise
mkdir
mmap
mprotect
munmap
nanosleep
open
openat
pipe
pipe2
poll
prctl
pread64
read
readlink
rename
rmdir
rt_sigaction
rt_sigprocmask
rt_sigreturn
select
set_robust_list
set_tid_address
stat
sysinfo
tgkill
umask
uname
unlink
wait4
write
writev
###SNIPPETS###"""

_UNCONFINED_APPARMOR = """# Description: Allows unrestricted access to the system
# Usage: reserved

#include <tunables/global>

###VAR###

###PROFILEATTACH### (attach_disconnected,complain) {
  #include <abstractions/base>
###SNIPPETS###
}
"""

_UNCONFINED_SECCOMP = """# Description: Allows unrestricted access to the system
# Usage: reserved
@unrestricted
###SNIPPETS###"""

DEFAULT_TEMPLATES: dict[str, SecurityTemplate] = {
    "default": SecurityTemplate("default", _DEFAULT_APPARMOR, _DEFAULT_SECCOMP),
    "unconfined": SecurityTemplate("unconfined", _UNCONFINED_APPARMOR, _UNCONFINED_SECCOMP),
}



def profileName(manifest: PackageManifest, app: App) -> str:
    """security-policy, then security-template, then `<package>_<app>_<version>`."""
    if app.securityPolicy:
        return app.securityPolicy
    if app.securityTemplate:
        return app.securityTemplate
    return f"{manifest.name}_{manifest.appKey(app)}_{manifest.version}"



def templateVariables(app: AppContext) -> str:
    """The four variable definitions, in fixed order, no trailing newline."""
    return (
        f'@{{APP_NAME}}="{app.appName}"\n'
        f'@{{SNAP_NAME}}="{app.snapName}"\n'
        f'@{{SNAP_REVISION}}="{app.revision}"\n'
        f'@{{INSTALL_DIR}}="{app.installDir}"'
    )



def resolveConnections(
    registry: InterfaceRegistry,
    manifest: PackageManifest,
    appName: str,
    decisions: Mapping[str, Sequence[str]] | None = None,
) -> list[Connection]:
    """
    Decide which interfaces one app gets.

    With an explicit decision list for the app, every entry is connected in
    the given order (an entry may be a declared plug name or an interface
    name). Otherwise declared plugs are validated and every auto-connect
    interface allowed for the package type is connected in registry order.
    """
    snapType = manifest.type
    declared = manifest.plugsFor(appName)

    if decisions is not None and appName in decisions:
        byPlug = {plug.name: plug.interface for plug in declared}
        out: list[Connection] = []
        for entry in decisions[appName]:
            iface = registry.lookup(byPlug.get(entry, entry))
            checkAllowed(iface, snapType, snapName=manifest.name)
            out.append(Connection(plug=entry, interface=iface))
        return out

    for plug in declared:
        iface = registry.lookup(plug.interface)
        checkAllowed(iface, snapType, snapName=manifest.name)

    plugByInterface: dict[str, str] = {}
    for plug in declared:
        plugByInterface.setdefault(plug.interface, plug.name)

    connections = [
        Connection(plug=plugByInterface.get(iface.name, iface.name), interface=iface)
        for iface in registry.autoConnectable(snapType)
    ]
    connected = {conn.interface.name for conn in connections}
    for plug in declared:
        if plug.interface not in connected:
            logger.info(
                "Plug '%s' of %s/%s needs interface '%s', which is not auto-connected; leaving it disconnected",
                plug.name, manifest.name, appName, plug.interface,
            )
    return connections



class PolicyComposer:
    """
    Turns an app and its connections into confinement text.

    Pure: the same inputs give byte-identical output, and fragments are
    emitted in connection order without sorting or de-duplication.
    """
    def __init__(self, templates: Mapping[str, SecurityTemplate] | None = None, *, defaultTemplate: str = "default") -> None:
        self._templates = dict(templates if templates is not None else DEFAULT_TEMPLATES)
        if defaultTemplate not in self._templates:
            raise UnknownSecurityTemplate(defaultTemplate)
        self._defaultTemplate = defaultTemplate

    def templateNames(self) -> list[str]:
        return list(self._templates)

    def _template(self, name: str | None) -> SecurityTemplate:
        key = name or self._defaultTemplate
        tpl = self._templates.get(key)
        if tpl is None:
            raise UnknownSecurityTemplate(key)
        return tpl

    def compose(
        self,
        app: AppContext,
        connections: Sequence[Connection],
        template: str | None = None,
        *,
        name: str | None = None,
    ) -> ConfinementProfile:
        tpl = self._template(template)
        profile = name or f"{app.snapName}_{app.appName}_{app.revision}"

        appArmorSnippets = "".join(conn.interface.appArmorSnippet(app) for conn in connections)
        secCompSnippets = "".join(conn.interface.secCompSnippet(app) for conn in connections)

        appArmor = (
            tpl.appArmor
            .replace("###VAR###", templateVariables(app))
            .replace("###PROFILEATTACH###", f'profile "{profile}"')
            .replace("###SNIPPETS###", appArmorSnippets)
        )
        secComp = tpl.secComp.replace("###SNIPPETS###", secCompSnippets)
        return ConfinementProfile(
            name=profile,
            appArmor=appArmor,
            secComp=secComp,
            interfaces=tuple(conn.interface.name for conn in connections),
        )

    def composeForApp(
        self,
        registry: InterfaceRegistry,
        manifest: PackageManifest,
        app: App,
        installDir: str,
        decisions: Mapping[str, Sequence[str]] | None = None,
    ) -> ConfinementProfile:
        """Resolve connections for one app of a package and compose its profile."""
        connections = resolveConnections(registry, manifest, manifest.appKey(app), decisions)
        ctx = AppContext.forApp(manifest, app, installDir)
        return self.compose(ctx, connections, app.securityTemplate, name=profileName(manifest, app))
