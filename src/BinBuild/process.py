# === NAVMAP v1 ===
# {
#   "module": "BinBuild.process",
#   "purpose": "Run build commands inside the temporary build directory",
#   "sections": [
#     {"id": "constants", "name": "Exit Codes", "anchor": "EXIT", "kind": "constants"},
#     {"id": "api", "name": "Command Execution", "anchor": "RUN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Subprocess execution for build commands."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .errors import BuildCommandError
from .settings import Command

__all__ = ["COMMAND_NOT_EXECUTABLE", "COMMAND_NOT_FOUND", "run_command"]

LOGGER = logging.getLogger("BinBuild.process")

# --- Exit codes -----------------------------------------------------------------

# Statuses reported when the executable cannot be started, as POSIX shells do.
COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127

# --- Command execution ----------------------------------------------------------


def run_command(command: Command, cwd: Path, *, silent: bool = False) -> int:
    """Run ``command`` inside ``cwd`` and return its exit code.

    Output is inherited from the calling process unless ``silent`` is set, in
    which case it is discarded.  A non-zero exit, or an executable that cannot
    be started at all, raises :class:`BuildCommandError`.
    """

    stream = subprocess.DEVNULL if silent else None
    LOGGER.info(
        "running build command",
        extra={"stage": "build", "command": command.display(), "cwd": str(cwd)},
    )
    try:
        completed = subprocess.run(
            command.argv(),
            cwd=str(cwd),
            stdout=stream,
            stderr=stream,
            check=False,
        )
    except OSError as exc:
        exit_code = COMMAND_NOT_FOUND if isinstance(exc, FileNotFoundError) else COMMAND_NOT_EXECUTABLE
        LOGGER.error(
            "build command could not be started",
            extra={
                "stage": "build",
                "command": command.display(),
                "exit_code": exit_code,
                "error": str(exc),
            },
        )
        raise BuildCommandError(command, exit_code) from exc

    if completed.returncode != 0:
        raise BuildCommandError(command, completed.returncode)
    return completed.returncode
