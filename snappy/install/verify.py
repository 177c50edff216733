# snappy/install/verify.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from snappy.core.commands import CommandRunner, runCommand
from snappy.core.errors import CommandFailed, VerificationFailed

logger = logging.getLogger(__name__)

__all__ = ["SignatureVerifier", "DebsigVerifier"]



@runtime_checkable
class SignatureVerifier(Protocol):
    def verify(self, packageFile: Path, allowUnauthenticated: bool) -> None:
        """Raise VerificationFailed when the package must not be installed."""
        ...



class DebsigVerifier:
    """Checks the package signature with `debsig-verify`."""
    def __init__(self, command: str = "debsig-verify", runCommand: CommandRunner = runCommand) -> None:
        self.command = command
        self._runCommand = runCommand

    def verify(self, packageFile: Path, allowUnauthenticated: bool) -> None:
        try:
            self._runCommand([self.command, str(packageFile)])
        except CommandFailed as err:
            if allowUnauthenticated:
                logger.warning(
                    "Signature check failed for '%s' (%s); installing anyway because unauthenticated installs are allowed",
                    packageFile, err.output or err.returncode,
                )
                return
            raise VerificationFailed(
                f"Signature verification failed for '{packageFile}': {err.output}",
                extra={"packageFile": str(packageFile), "returncode": err.returncode},
            ) from err
