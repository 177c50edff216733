# snappy/core/errors.py
from __future__ import annotations
from typing import Any

__all__ = [
    "SnappyError",
    "MalformedManifest",
    "UnknownInterface",
    "InterfaceNotAllowed",
    "UnknownSecurityTemplate",
    "HookFileUnreadable",
    "VerificationFailed",
    "PartialInstallFailure",
    "ActivationRaceOrCorruption",
    "CommandFailed",
    "NothingInstalled",
    "PackageNotInstalled",
]



class SnappyError(Exception):
    """
    Base for every structured failure raised by snappy.

    `code` is a stable machine-readable identifier, `message` is for humans,
    `extra` carries whatever context the raising layer had at hand.
    """
    code: str = "SNAPPY_ERROR"

    def __init__(self, message: str, *, code: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra or {}



class MalformedManifest(SnappyError):
    """Manifest document could not be parsed or misses required fields."""
    code = "MALFORMED_MANIFEST"



class UnknownInterface(SnappyError):
    code = "UNKNOWN_INTERFACE"

    def __init__(self, name: str) -> None:
        super().__init__(f"Interface '{name}' is not registered", extra={"interface": name})
        self.name = name



class InterfaceNotAllowed(SnappyError):
    code = "INTERFACE_NOT_ALLOWED"

    def __init__(self, name: str, snapName: str, snapType: str) -> None:
        super().__init__(
            f"Interface '{name}' is reserved for OS snaps; '{snapName}' is of type '{snapType}'",
            extra={"interface": name, "snap": snapName, "type": snapType},
        )
        self.name = name



class UnknownSecurityTemplate(SnappyError):
    code = "UNKNOWN_SECURITY_TEMPLATE"

    def __init__(self, template: str) -> None:
        super().__init__(f"Security template '{template}' is not known", extra={"template": template})
        self.template = template



class HookFileUnreadable(SnappyError):
    code = "HOOK_FILE_UNREADABLE"



class VerificationFailed(SnappyError):
    code = "VERIFICATION_FAILED"



class PartialInstallFailure(SnappyError):
    """A step after verification failed; the revision was unwound."""
    code = "PARTIAL_INSTALL_FAILURE"

    def __init__(self, message: str, *, phase: str, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message, extra={"phase": phase, **(extra or {})})
        self.phase = phase



class ActivationRaceOrCorruption(SnappyError):
    code = "ACTIVATION_FAILED"



class CommandFailed(SnappyError):
    code = "COMMAND_FAILED"

    def __init__(self, args: list[str], output: str, returncode: int | None) -> None:
        cmdline = " ".join(args)
        super().__init__(
            f"Failed to run command '{cmdline}': {output} (exit status {returncode})",
            extra={"args": list(args), "returncode": returncode},
        )
        self.cmdArgs = list(args)
        self.output = output
        self.returncode = returncode



class NothingInstalled(SnappyError):
    code = "NOTHING_INSTALLED"



class PackageNotInstalled(SnappyError):
    code = "PACKAGE_NOT_INSTALLED"
