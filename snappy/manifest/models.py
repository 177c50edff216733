# snappy/manifest/models.py
from __future__ import annotations
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

__all__ = [
    "SnapType",
    "Plug",
    "Binary",
    "Service",
    "App",
    "PackageYaml",
    "ClickManifest",
    "PackageManifest",
    "isRevisionRelative",
]

# `current` is the active-revision link inside every package dir.
_RESERVED_COMPONENTS = frozenset({"current"})



def _pathComponent(value: str, what: str, reserved: frozenset[str] = _RESERVED_COMPONENTS) -> str:
    """Names and versions become directory and file names; keep them to one plain component."""
    if not value:
        raise ValueError(f"{what} must not be empty")
    if "/" in value or "\0" in value:
        raise ValueError(f"{what} '{value}' must be a single path component")
    if value.startswith("."):
        raise ValueError(f"{what} '{value}' must not start with '.'")
    if value in reserved:
        raise ValueError(f"{what} '{value}' is reserved")
    return value



def isRevisionRelative(relPath: str) -> bool:
    """True when `relPath` names something inside the revision dir it is joined to."""
    if not relPath or posixpath.isabs(relPath):
        return False
    normalized = posixpath.normpath(relPath)
    return normalized != ".." and not normalized.startswith("../")



class SnapType(str, Enum):
    APP = "app"
    FRAMEWORK = "framework"
    OEM = "oem"
    OS = "os"
    KERNEL = "kernel"

    @property
    def isOS(self) -> bool:
        return self in (SnapType.OEM, SnapType.OS)



class Plug(BaseModel):
    """A declared need for a capability: plug name bound to an interface name."""
    model_config = ConfigDict(frozen=True)

    name: str
    interface: str



class _AppBase(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    securityTemplate: str | None = Field(default=None, alias="security-template")
    securityPolicy: str | None = Field(default=None, alias="security-policy")
    # Plug names; each resolves against package-level plugs or names an interface directly.
    plugs: tuple[str, ...] | None = None

    @field_validator("plugs", mode="before")
    @classmethod
    def _plugNames(cls, value: Any) -> Any:
        # package.yaml scalars load as text, so an empty `plugs:` arrives as ""
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return (value,)
        return value



class Binary(_AppBase):
    """A declared binary, e.g. {"name": "bin/foo"}."""
    name: str
    exec: str | None = None

    @property
    def appName(self) -> str:
        return posixpath.basename(self.name)



class Service(_AppBase):
    name: str
    start: str = ""
    description: str = ""
    stop: str | None = None
    poststop: str | None = None
    stopTimeout: str | None = Field(default=None, alias="stop-timeout")

    @field_validator("name")
    @classmethod
    def _nameIsComponent(cls, value: str) -> str:
        return _pathComponent(value, "service name", frozenset())

    @property
    def appName(self) -> str:
        return self.name



App = Union[Binary, Service]



class PackageYaml(BaseModel):
    """Revision-level manifest, `meta/package.yaml` inside the snap."""
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    type: SnapType = SnapType.APP
    icon: str | None = None
    vendor: str | None = None
    description: str | None = None
    architecture: str | None = None
    binaries: tuple[Binary, ...] = ()
    services: tuple[Service, ...] = ()
    plugs: tuple[Plug, ...] = ()

    @field_validator("binaries", "services", mode="before")
    @classmethod
    def _noneIsEmpty(cls, value: Any) -> Any:
        return () if value is None or value == "" else value

    @field_validator("plugs", mode="before")
    @classmethod
    def _normalizePlugs(cls, value: Any) -> Any:
        """
        Accepts any of:
          plugs: [network, home]                       -> plug name == interface name
          plugs: {net: network}                        -> explicit interface
          plugs: {net: {interface: network}}           -> long form
        """
        if value is None or value == "":
            return ()
        if isinstance(value, str):
            return ({"name": value, "interface": value},)
        if isinstance(value, dict):
            out = []
            for plugName, target in value.items():
                if isinstance(target, dict):
                    out.append({"name": plugName, "interface": target.get("interface", plugName)})
                elif target is None or target == "":
                    out.append({"name": plugName, "interface": plugName})
                else:
                    out.append({"name": plugName, "interface": target})
            return tuple(out)
        if isinstance(value, (list, tuple)):
            return tuple(
                {"name": entry, "interface": entry} if isinstance(entry, str) else entry
                for entry in value
            )
        return value

    @field_validator("name", "version")
    @classmethod
    def _pathSafe(cls, value: str, info: ValidationInfo) -> str:
        return _pathComponent(value, info.field_name)

    @model_validator(mode="after")
    def _uniqueAppKeys(self) -> "PackageYaml":
        seen: set[str] = set()
        for app in (*self.binaries, *self.services):
            key = self.appKey(app)
            if key in seen:
                raise ValueError(f"duplicate app name '{key}'")
            seen.add(key)
        return self

    def appKey(self, app: App) -> str:
        """
        Key of one app in the hooks map, its policy file names and its
        profile name. A service named like a binary gets a `.service` suffix
        so the two never share files.
        """
        if isinstance(app, Service) and any(binary.appName == app.appName for binary in self.binaries):
            return f"{app.appName}.service"
        return app.appName



class ClickManifest(BaseModel):
    """
    Package-level manifest; stored as `.click/info/<name>.manifest` once installed.

    `hooks` maps app name -> hook name -> path relative to the revision dir.
    """
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    hooks: dict[str, dict[str, str]] = Field(default_factory=dict)
    icon: str | None = None
    maintainer: str | None = None
    description: str | None = None
    title: str | None = None
    framework: str | None = None
    installedSize: str | None = Field(default=None, alias="installed-size")

    @field_validator("version", "installedSize", mode="before")
    @classmethod
    def _numbersAsText(cls, value: Any) -> Any:
        # JSON writers sometimes emit "installed-size": 59
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("name", "version")
    @classmethod
    def _pathSafe(cls, value: str, info: ValidationInfo) -> str:
        return _pathComponent(value, info.field_name)

    @field_validator("hooks", mode="before")
    @classmethod
    def _noneIsEmpty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("hooks")
    @classmethod
    def _pathsInsideRevision(cls, value: dict[str, dict[str, str]]) -> dict[str, dict[str, str]]:
        for appName, appHooks in value.items():
            for hookName, relPath in appHooks.items():
                if not isRevisionRelative(relPath):
                    raise ValueError(f"hook '{hookName}' of '{appName}' points outside the package: '{relPath}'")
        return value



@dataclass(frozen=True, slots=True)
class PackageManifest:
    """Both manifest documents of one revision, parsed and joined."""
    packageYaml: PackageYaml
    click: ClickManifest

    @property
    def name(self) -> str:
        return self.packageYaml.name

    @property
    def version(self) -> str:
        return self.packageYaml.version

    @property
    def type(self) -> SnapType:
        return self.packageYaml.type

    @property
    def binaries(self) -> tuple[Binary, ...]:
        return self.packageYaml.binaries

    @property
    def services(self) -> tuple[Service, ...]:
        return self.packageYaml.services

    @property
    def hooks(self) -> dict[str, dict[str, str]]:
        return self.click.hooks

    def apps(self) -> tuple[App, ...]:
        """Binaries first, then services, each in declaration order."""
        return (*self.binaries, *self.services)

    def appKey(self, app: App) -> str:
        return self.packageYaml.appKey(app)

    def app(self, appKey: str) -> App | None:
        for app in self.apps():
            if self.appKey(app) == appKey:
                return app
        return None

    def plugsFor(self, appKey: str) -> tuple[Plug, ...]:
        """
        Plugs declared for one app. Apps without their own `plugs` list
        inherit every package-level plug.
        """
        app = self.app(appKey)
        packagePlugs = self.packageYaml.plugs
        if app is None or app.plugs is None:
            return packagePlugs
        byName = {plug.name: plug for plug in packagePlugs}
        return tuple(byName.get(name) or Plug(name=name, interface=name) for name in app.plugs)
