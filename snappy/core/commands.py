# snappy/core/commands.py
from __future__ import annotations
import logging
import subprocess
from collections.abc import Callable, Sequence

from snappy.core.errors import CommandFailed

logger = logging.getLogger(__name__)

__all__ = ["CommandRunner", "runCommand"]

# Injected wherever an external process is started (hooks, verifier) so
# callers and tests can substitute the execution.
CommandRunner = Callable[[Sequence[str]], None]



def runCommand(args: Sequence[str]) -> None:
    """
    Run `args` synchronously and raise CommandFailed with the combined
    stdout/stderr when the process cannot be started or exits non-zero.

    There is no timeout; callers own cancellation policy.
    """
    if not args:
        raise ValueError("no command specified")

    args = [str(arg) for arg in args]
    logger.debug("Running: %s", " ".join(args))
    try:
        proc = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False)
    except OSError as err:
        raise CommandFailed(args, str(err), None) from err

    if proc.returncode != 0:
        output = proc.stdout.decode("utf-8", errors="replace").strip()
        raise CommandFailed(args, output, proc.returncode)
