"""Subprocess helpers.

Every external program wsctl starts (git, for now) goes through
run_command(), which captures output and never reads from the terminal.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of a finished command.

    Attributes:
        stdout: Standard output.
        stderr: Standard error.
        returncode: Exit status.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """True if the command exited with status 0."""
        return self.returncode == 0


def run_command(
    args: list[str],
    *,
    timeout: float | None = 60.0,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    Standard input is closed so that a command asking for input (such as
    a credential prompt) fails instead of blocking a worker thread.

    Args:
        args: Program and arguments.
        timeout: Seconds to wait before giving up; None waits forever.
        cwd: Working directory; the current one when None.
        env: Variables added to the inherited environment.

    Returns:
        CommandResult of the finished command, whatever its exit status.

    Raises:
        subprocess.TimeoutExpired: If the command exceeds the timeout.
        FileNotFoundError: If the program is not installed.
    """
    full_env = {**os.environ, **env} if env else None
    logger.debug("Executing %s", args)
    result = subprocess.run(
        args,
        capture_output=True,
        stdin=subprocess.DEVNULL,
        text=True,
        timeout=timeout,
        cwd=cwd,
        env=full_env,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def command_exists(name: str) -> bool:
    """Check if a program is on PATH."""
    return shutil.which(name) is not None
