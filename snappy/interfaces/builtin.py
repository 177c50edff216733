# snappy/interfaces/builtin.py
from __future__ import annotations
import re
from typing import TYPE_CHECKING

from snappy.interfaces.registry import Interface

if TYPE_CHECKING:
    from snappy.interfaces.composer import AppContext

__all__ = [
    "SNAP_NAME_MARKER",
    "substituteSnapName",
    "allInterfaces",
    "BUILTIN_INTERFACE_NAMES",
]

# Every fragment starts and ends with a newline so they concatenate cleanly.

SNAP_NAME_MARKER = "###SNAP_NAME###"

_DBUS_UNSAFE = re.compile(r"[^A-Za-z0-9_]")



def substituteSnapName(app: AppContext, text: str) -> str:
    """Fills `###SNAP_NAME###` with the snap name made safe for D-Bus object paths."""
    return text.replace(SNAP_NAME_MARKER, _DBUS_UNSAFE.sub("_", app.snapName))


# ---------- network ----------

NETWORK_APPARMOR = """
# Description: Can access the network as a client.
# Usage: common
#include <abstractions/nameservice>
#include <abstractions/ssl_certs>

@{PROC}/sys/net/core/somaxconn r,
@{PROC}/sys/net/ipv4/tcp_fastopen r,
"""

NETWORK_SECCOMP = """
# Description: Can access the network as a client.
# Usage: common
connect
getpeername
getsockname
getsockopt
recv
recvfrom
recvmmsg
recvmsg
send
sendmmsg
sendmsg
sendto
setsockopt
shutdown

# LP: #1446748 - limit this to AF_UNIX/AF_LOCAL and perhaps AF_NETLINK
socket

# This is an older interface and single entry point that can be used instead
# of socket(), bind(), connect(), etc individually. While we could allow it,
# we wouldn't be able to properly arg filter socketcall for AF_INET/AF_INET6
# when LP: #1446748 is implemented.
socketcall
"""

# ---------- network-bind ----------

NETWORK_BIND_APPARMOR = """
# Description: Can access the network as a server.
# Usage: common
#include <abstractions/nameservice>
#include <abstractions/ssl_certs>

# These probably shouldn't be something that apps should use, but this offers
# no information disclosure since the files are in the read-only part of the
# system.
/etc/hosts.deny r,
/etc/hosts.allow r,

@{PROC}/sys/net/core/somaxconn r,
@{PROC}/sys/net/ipv4/tcp_fastopen r,
"""

NETWORK_BIND_SECCOMP = """
# Description: Can access the network as a server.
# Usage: common
accept
accept4
bind
connect
getpeername
getsockname
getsockopt
listen
recv
recvfrom
recvmmsg
recvmsg
send
sendmmsg
sendmsg
sendto
setsockopt
shutdown
socketpair
socket
socketcall
"""

# ---------- network-control ----------

NETWORK_CONTROL_APPARMOR = """
# Description: Can configure networking. This is restricted because it gives
# wide, privileged access to networking and should only be used with trusted
# apps.
# Usage: reserved

#include <abstractions/nameservice>
capability net_admin,
capability net_raw,
capability setuid,
network netlink,
network bridge,
network inet raw,
network inet6 raw,
network packet,

@{PROC}/@{pid}/net/ r,
@{PROC}/@{pid}/net/** r,

# used by sysctl, et al
@{PROC}/sys/ r,
@{PROC}/sys/net/ r,
@{PROC}/sys/net/core/ r,
@{PROC}/sys/net/core/** rw,
@{PROC}/sys/net/ipv{4,6}/ r,
@{PROC}/sys/net/ipv{4,6}/** rw,

/{,usr/}{,s}bin/ip ixr,
/{,usr/}{,s}bin/ifconfig ixr,
/{,usr/}{,s}bin/sysctl ixr,
"""

NETWORK_CONTROL_SECCOMP = """
# Description: Can configure networking. This is restricted because it gives
# wide, privileged access to networking and should only be used with trusted
# apps.
# Usage: reserved
accept
accept4
bind
connect
getpeername
getsockname
getsockopt
listen
recv
recvfrom
recvmmsg
recvmsg
send
sendmmsg
sendmsg
sendto
setsockopt
shutdown
socketpair
socket

# for ping and ping6
capset
setuid
"""

# ---------- home ----------

HOME_APPARMOR = """
# Description: Can access non-hidden files in user's $HOME. This is restricted
# because it gives file access to all of the user's $HOME.
# Usage: reserved

# Note, @{HOME} is the user's $HOME, not the snap's $HOME

# Allow read access to toplevel $HOME for the user
owner @{HOME}/ r,

# Allow read/write access to all files in @{HOME}, except snap application
# data in @{HOME}/apps and toplevel hidden directories in @{HOME}.
owner @{HOME}/[^a.]**             rwk,
owner @{HOME}/a[^p]**             rwk,
owner @{HOME}/ap[^p]**            rwk,
owner @{HOME}/app[^s]**           rwk,
owner @{HOME}/apps?*/**           rwk,

# Allow creating a few files not caught above
owner @{HOME}/{a,ap,app}{,/} rwk,

# Allow access to gvfs mounts for files owned by the user (including hidden
# files; only allow writes to files, not the mount point).
owner /run/user/[0-9]*/gvfs/{,**} r,
owner /run/user/[0-9]*/gvfs/*/**  w,
"""

# ---------- unity7 ----------

UNITY7_APPARMOR = """
# Description: Can access Unity7. Restricted because Unity 7 runs on X and
# requires access to various DBus services and this environment does not prevent
# eavesdropping or apps interfering with one another.
# Usage: reserved

#include <abstractions/dbus-strict>
#include <abstractions/dbus-session-strict>

#include <abstractions/fonts>
/var/cache/fontconfig/   r,
/var/cache/fontconfig/** mr,

# Allow use of the application menu in the menu bar
dbus (send)
    bus=session
    path=/com/canonical/menu/###SNAP_NAME###
    interface=com.canonical.dbusmenu
    peer=(label=unconfined),

dbus (receive)
    bus=session
    path=/com/canonical/menu/###SNAP_NAME###
    interface=com.canonical.dbusmenu
    peer=(label=unconfined),

# Allow using the launcher API
dbus (send)
    bus=session
    path=/com/canonical/unity/launcherentry/###SNAP_NAME###
    interface=com.canonical.Unity.LauncherEntry
    member=Update
    peer=(label=unconfined),

# Notifications
dbus (send)
    bus=session
    path=/org/freedesktop/Notifications
    interface=org.freedesktop.Notifications
    member="{GetCapabilities,GetServerInformation,Notify}"
    peer=(label=unconfined),

dbus (receive)
    bus=session
    path=/org/freedesktop/Notifications
    interface=org.freedesktop.Notifications
    member=NotificationClosed
    peer=(label=unconfined),
"""

UNITY7_SECCOMP = """
# Description: Can access Unity7. Restricted because Unity 7 runs on X and
# requires access to various DBus services and this environment does not prevent
# eavesdropping or apps interfering with one another.
# Usage: reserved

# X
shutdown
"""

# ---------- x11 ----------

X11_APPARMOR = """
# Description: Can access the X server. Restricted because X does not prevent
# eavesdropping or apps interfering with one another.
# Usage: reserved

#include <abstractions/X>
"""

X11_SECCOMP = """
# Description: Can access the X server. Restricted because X does not prevent
# eavesdropping or apps interfering with one another.
# Usage: reserved
bind
connect
getpeername
getsockname
getsockopt
recv
recvfrom
recvmsg
send
sendmsg
sendto
setsockopt
shutdown
socket
socketcall
"""

# ---------- opengl ----------

OPENGL_APPARMOR = """
# Description: Can access opengl.
# Usage: reserved

# specific gl libs
/var/lib/snappy/lib/gl/ r,
/var/lib/snappy/lib/gl/** rm,

/dev/dri/ r,
/dev/dri/card0 rw,
# nvidia
@{PROC}/driver/nvidia/params r,
@{PROC}/modules r,
/dev/nvidiactl rw,
/dev/nvidia-modeset rw,
/dev/nvidia* rw,

# FIXME: this is an information leak; policy should instead come from udev for
# the specific accesses associated with the above devices.
/sys/bus/pci/devices/** r,
/run/udev/data/+drm:card* r,
/run/udev/data/+pci:[0-9]* r,
"""

OPENGL_SECCOMP = """
# Description: Can access opengl.
# Usage: reserved
ioctl
"""

# ---------- log-observe ----------

LOG_OBSERVE_APPARMOR = """
# Description: Can read system logs and set kernel log rate-limiting
# Usage: reserved

/var/log/ r,
/var/log/** r,
/run/log/journal/ r,
/run/log/journal/** r,
/var/lib/systemd/catalog/database r,

# Allow sysctl -w kernel.printk_ratelimit=#
/{,usr/}sbin/sysctl ixr,
@{PROC}/sys/kernel/printk_ratelimit rw,
"""

# ---------- system-observe ----------

SYSTEM_OBSERVE_APPARMOR = """
# Description: Can query system status information. This is restricted because
# it gives privileged read access to all processes on the system and should
# only be used with trusted apps.
# Usage: reserved

# Needed by 'ps'
@{PROC}/tty/drivers r,

# This ptrace is an information leak
ptrace (read),

# ptrace can be used to break out of the seccomp sandbox, but ps requests
# 'ptrace (trace)' even though it isn't tracing other processes. Unfortunately,
# this is due to the kernel overloading trace such that the LSMs are unable to
# distinguish between tracing other processes and other accesses. We deny the
# trace here to silence the log.
deny ptrace (trace),

@{PROC}/ r,
@{PROC}/*/{,task/*/}stat r,
@{PROC}/*/{,task/*/}status r,
@{PROC}/loadavg r,
@{PROC}/sys/kernel/pid_max r,
@{PROC}/uptime r,
"""

SYSTEM_OBSERVE_SECCOMP = """
# Description: Can query system status information. This is restricted because
# it gives privileged read access to all processes on the system and should
# only be used with trusted apps.
# Usage: reserved

# ptrace can be used to break out of the seccomp sandbox, but ps requests
# 'ptrace (trace)' from apparmor. 'ps' does not need the ptrace syscall though,
# so we deny the ptrace here to make sure we are always safe.
deny ptrace
"""

# ---------- mount-observe ----------

MOUNT_OBSERVE_APPARMOR = """
# Description: Can query system mount information. This is restricted because
# it gives privileged read access to mount arguments and should only be used
# with trusted apps.
# Usage: reserved

/{,usr/}bin/df ixr,

@{PROC}/*/mounts r,
@{PROC}/*/mountinfo r,
@{PROC}/*/mountstats r,
@{PROC}/devices r,
/sys/devices/**/block/** r,
"""

MOUNT_OBSERVE_SECCOMP = """
# Description: Can query system mount information. This is restricted because
# it gives privileged read access to mount arguments and should only be used
# with trusted apps.
# Usage: reserved

quotactl
"""

# ---------- firewall-control ----------

FIREWALL_CONTROL_APPARMOR = """
# Description: Can configure firewall. This is restricted because it gives
# privileged access to networking and should only be used with trusted apps.
# Usage: reserved

capability net_admin,

/{,usr/}{,s}bin/iptables{,-save,-restore} ixr,
/{,usr/}{,s}bin/ip6tables{,-save,-restore} ixr,
/{,usr/}{,s}bin/iptables-apply ixr,
/{,usr/}{,s}bin/xtables-multi ixr,

# ping - child profile would be nice but seccomp causes problems with that
/{,usr/}{,s}bin/ping ixr,
/{,usr/}{,s}bin/ping6 ixr,
capability net_raw,
capability setuid,
network inet raw,
network inet6 raw,

# iptables needs to use /run/xtables.lock
/run/xtables.lock rwk,

@{PROC}/@{pid}/net/ r,
@{PROC}/@{pid}/net/** r,

/{,usr/}{,s}bin/sysctl ixr,
@{PROC}/sys/net/ipv{4,6}/ip_forward rw,
"""

FIREWALL_CONTROL_SECCOMP = """
# Description: Can configure firewall. This is restricted because it gives
# privileged access to networking and should only be used with trusted apps.
# Usage: reserved

# for ping and ping6
capset

# for ip6tables, iptables and xtables-multi
setuid
"""

# ---------- locale-control ----------

LOCALE_CONTROL_APPARMOR = """
# Description: Can manage locales directly separate from 'config ubuntu-core'.
# Usage: reserved

/etc/default/locale rw,
"""

# ---------- timeserver-control ----------

TIMESERVER_CONTROL_APPARMOR = """
# Description: Can manage timeservers directly separate from config ubuntu-core.
# Usage: reserved

#include <abstractions/dbus-strict>

# Won't work until LP: #1504657 is fixed. Requires reboot until timedatectl
# can talk to systemd-timedated.
/etc/systemd/timesyncd.conf rw,

dbus (receive, send)
    bus=system
    path=/org/freedesktop/timedate1
    interface=org.freedesktop.timedate1
    member="SetNTP"
    peer=(label=unconfined),

# Read configuration
/{,usr/}bin/timedatectl ixr,
"""



def allInterfaces() -> tuple[Interface, ...]:
    """The builtin catalog, in registration (and auto-connect) order."""
    return (
        Interface(
            name="network",
            connectedPlugAppArmor=NETWORK_APPARMOR,
            connectedPlugSecComp=NETWORK_SECCOMP,
            autoConnect=True,
            reservedForOS=True,
        ),
        Interface(
            name="network-bind",
            connectedPlugAppArmor=NETWORK_BIND_APPARMOR,
            connectedPlugSecComp=NETWORK_BIND_SECCOMP,
            autoConnect=True,
        ),
        Interface(
            name="network-control",
            connectedPlugAppArmor=NETWORK_CONTROL_APPARMOR,
            connectedPlugSecComp=NETWORK_CONTROL_SECCOMP,
            reservedForOS=True,
        ),
        Interface(
            name="home",
            connectedPlugAppArmor=HOME_APPARMOR,
            autoConnect=True,
        ),
        Interface(
            name="unity7",
            connectedPlugAppArmor=UNITY7_APPARMOR,
            connectedPlugSecComp=UNITY7_SECCOMP,
            autoConnect=True,
            substitute=substituteSnapName,
        ),
        Interface(
            name="x11",
            connectedPlugAppArmor=X11_APPARMOR,
            connectedPlugSecComp=X11_SECCOMP,
            autoConnect=True,
        ),
        Interface(
            name="opengl",
            connectedPlugAppArmor=OPENGL_APPARMOR,
            connectedPlugSecComp=OPENGL_SECCOMP,
            autoConnect=True,
        ),
        Interface(
            name="log-observe",
            connectedPlugAppArmor=LOG_OBSERVE_APPARMOR,
        ),
        Interface(
            name="system-observe",
            connectedPlugAppArmor=SYSTEM_OBSERVE_APPARMOR,
            connectedPlugSecComp=SYSTEM_OBSERVE_SECCOMP,
        ),
        Interface(
            name="mount-observe",
            connectedPlugAppArmor=MOUNT_OBSERVE_APPARMOR,
            connectedPlugSecComp=MOUNT_OBSERVE_SECCOMP,
        ),
        Interface(
            name="firewall-control",
            connectedPlugAppArmor=FIREWALL_CONTROL_APPARMOR,
            connectedPlugSecComp=FIREWALL_CONTROL_SECCOMP,
            reservedForOS=True,
        ),
        Interface(
            name="locale-control",
            connectedPlugAppArmor=LOCALE_CONTROL_APPARMOR,
            reservedForOS=True,
        ),
        Interface(
            name="timeserver-control",
            connectedPlugAppArmor=TIMESERVER_CONTROL_APPARMOR,
            reservedForOS=True,
        ),
    )



BUILTIN_INTERFACE_NAMES: tuple[str, ...] = tuple(iface.name for iface in allInterfaces())
