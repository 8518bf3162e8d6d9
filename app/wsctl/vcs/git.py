"""Git implementation of the VCS interface.

Runs the git executable through run_command() and turns failing
invocations into VCSError carrying the exit status.
"""

import logging
import subprocess
from pathlib import Path

from wsctl.utils.shell import CommandResult, command_exists, run_command
from wsctl.vcs.base import VCS, VCSError

logger = logging.getLogger(__name__)

ORIGIN = "origin"


class GitClient(VCS):
    """VCS client backed by the git command-line tool.

    Attributes:
        timeout: Timeout in seconds for network operations, None to wait forever.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the client.

        Args:
            timeout: Timeout for clone, fetch and ls-remote calls.
        """
        self._timeout = timeout

    @staticmethod
    def is_available() -> bool:
        """Check if git is installed."""
        return command_exists("git")

    def _git(
        self,
        args: list[str],
        *,
        path: Path | None = None,
        timeout: float | None = 60.0,
        allow_failure: bool = False,
    ) -> CommandResult:
        """Run a git command.

        Args:
            args: Arguments following "git".
            path: Repository to run in (passed as -C).
            timeout: Maximum time in seconds to wait.
            allow_failure: If True, return failing results instead of raising.

        Returns:
            CommandResult of the invocation.

        Raises:
            VCSError: If git is missing, times out, or fails and failures aren't allowed.
        """
        cmd = ["git"]
        if path is not None:
            cmd += ["-C", str(path)]
        cmd += args
        printable = " ".join(cmd)
        logger.debug("Running %s", printable)
        try:
            result = run_command(cmd, timeout=timeout)
        except FileNotFoundError as e:
            raise VCSError("git executable not found", command=printable, returncode=127) from e
        except subprocess.TimeoutExpired as e:
            raise VCSError(f"'{printable}' timed out", command=printable) from e

        if not result.success and not allow_failure:
            stderr = result.stderr.strip()
            raise VCSError(
                f"'{printable}' failed with exit status {result.returncode}: {stderr}",
                command=printable,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def clone(self, remote: str, path: Path) -> None:
        logger.info("Cloning %s into %s", remote, path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._git(["clone", "--quiet", remote, str(path)], timeout=self._timeout)

    def fetch(self, path: Path, remote: str) -> None:
        if self.remote_url(path) != remote:
            logger.info("Setting origin of %s to %s", path, remote)
            self._git(["remote", "set-url", ORIGIN, remote], path=path)
        logger.info("Fetching %s", path)
        self._git(["fetch", "--quiet", "--tags", ORIGIN], path=path, timeout=self._timeout)

    def checkout(self, path: Path, revision: str) -> None:
        logger.info("Checking out %s in %s", revision, path)
        self._git(["checkout", "--quiet", "--detach", revision], path=path)

    def discard_changes(self, path: Path) -> None:
        logger.info("Discarding local changes in %s", path)
        self._git(["reset", "--quiet", "--hard", "HEAD"], path=path)
        self._git(["clean", "--quiet", "--force", "-d"], path=path)

    def delete_branch(self, path: Path, branch: str) -> None:
        logger.info("Deleting branch %s in %s", branch, path)
        self._git(["branch", "--quiet", "-D", branch], path=path)

    def current_revision(self, path: Path) -> str:
        return self._git(["rev-parse", "HEAD"], path=path).stdout.strip()

    def resolve_revision(self, path: Path, revision: str) -> str | None:
        result = self._git(
            ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"],
            path=path,
            allow_failure=True,
        )
        if not result.success:
            return None
        return result.stdout.strip() or None

    def remote_head(self, remote: str, branch: str) -> str:
        result = self._git(["ls-remote", remote, f"refs/heads/{branch}"], timeout=self._timeout)
        for line in result.stdout.splitlines():
            fields = line.split()
            if len(fields) == 2 and fields[1] == f"refs/heads/{branch}":
                return fields[0]
        raise VCSError(f"branch {branch!r} not found in {remote}", command="git ls-remote")

    def remote_url(self, path: Path) -> str:
        result = self._git(
            ["config", "--get", f"remote.{ORIGIN}.url"], path=path, allow_failure=True
        )
        return result.stdout.strip()

    def current_branch(self, path: Path) -> str | None:
        result = self._git(
            ["symbolic-ref", "--quiet", "--short", "HEAD"], path=path, allow_failure=True
        )
        if not result.success:
            return None
        return result.stdout.strip() or None

    def local_branches(self, path: Path) -> list[str]:
        result = self._git(["for-each-ref", "--format=%(refname:short)", "refs/heads/"], path=path)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def has_uncommitted_changes(self, path: Path) -> bool:
        result = self._git(["status", "--porcelain", "--untracked-files=no"], path=path)
        return bool(result.stdout.strip())

    def has_untracked_files(self, path: Path) -> bool:
        result = self._git(["ls-files", "--others", "--exclude-standard"], path=path)
        return bool(result.stdout.strip())
