# snappy/interfaces/registry.py
from __future__ import annotations
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from snappy.core.errors import InterfaceNotAllowed, UnknownInterface
from snappy.manifest.models import SnapType

if TYPE_CHECKING:
    from snappy.interfaces.composer import AppContext

logger = logging.getLogger(__name__)

__all__ = [
    "Substitution",
    "Interface",
    "InterfaceRegistry",
    "checkAllowed",
    "defaultRegistry",
]

# (app context, fragment text) -> fragment text with per-app values filled in
Substitution = Callable[["AppContext", str], str]



@dataclass(frozen=True, slots=True)
class Interface:
    """
    A named capability and the policy it contributes to a connected plug.

    Records, not subclasses: an interface needing per-app values carries a
    `substitute` function applied to both fragments.
    """
    name: str
    connectedPlugAppArmor: str = ""
    connectedPlugSecComp: str = ""
    autoConnect: bool = False           # connected without user consent
    reservedForOS: bool = False         # only OS-type snaps may connect
    substitute: Substitution | None = None

    def appArmorSnippet(self, app: AppContext) -> str:
        if self.substitute is None:
            return self.connectedPlugAppArmor
        return self.substitute(app, self.connectedPlugAppArmor)

    def secCompSnippet(self, app: AppContext) -> str:
        if self.substitute is None:
            return self.connectedPlugSecComp
        return self.substitute(app, self.connectedPlugSecComp)



def checkAllowed(iface: Interface, snapType: SnapType, *, snapName: str = "") -> None:
    """Raises InterfaceNotAllowed when a reserved interface meets a non-OS snap."""
    if iface.reservedForOS and not snapType.isOS:
        raise InterfaceNotAllowed(iface.name, snapName, snapType.value)



class InterfaceRegistry:
    """
    Ordered catalog of interfaces, keyed by name.

    Filled once at startup, then frozen; a frozen registry is read-only and
    safe to share between concurrent installs.
    """
    def __init__(self, interfaces: Iterable[Interface] = ()) -> None:
        self._byName: dict[str, Interface] = {}
        self._frozen = False
        for iface in interfaces:
            self.register(iface)

    # ----- Registration -----

    def register(self, iface: Interface) -> None:
        if self._frozen:
            raise RuntimeError(f"Interface registry is frozen; cannot register '{iface.name}'")
        if not iface.name:
            raise ValueError("Interface name must be non-empty")
        if iface.name in self._byName:
            raise ValueError(f"Duplicate interface '{iface.name}'")
        self._byName[iface.name] = iface
        logger.debug(
            "Registered interface '%s' (autoConnect=%s, reservedForOS=%s)",
            iface.name, iface.autoConnect, iface.reservedForOS,
        )

    def freeze(self) -> "InterfaceRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ----- Lookup -----

    def lookup(self, name: str) -> Interface:
        iface = self._byName.get(name)
        if iface is None:
            raise UnknownInterface(name)
        return iface

    def __contains__(self, name: object) -> bool:
        return name in self._byName

    def __len__(self) -> int:
        return len(self._byName)

    def names(self) -> list[str]:
        return list(self._byName)

    def all(self) -> tuple[Interface, ...]:
        return tuple(self._byName.values())

    def autoConnectable(self, snapType: SnapType) -> tuple[Interface, ...]:
        """Auto-connect interfaces a snap of `snapType` may use, in registration order."""
        return tuple(
            iface for iface in self._byName.values()
            if iface.autoConnect and (snapType.isOS or not iface.reservedForOS)
        )



def defaultRegistry() -> InterfaceRegistry:
    """A frozen registry holding the builtin catalog."""
    from snappy.interfaces.builtin import allInterfaces
    return InterfaceRegistry(allInterfaces()).freeze()
