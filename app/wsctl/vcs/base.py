"""Abstract base class for version-control clients.

This module defines the VCS interface used by the import resolver and the
synchronizer. Mutating operations change a checkout or create one; queries
never modify anything, locally or remotely.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class VCSError(Exception):
    """Raised when a version-control operation fails.

    Attributes:
        command: The command that failed.
        returncode: Exit status of the failing command.
        stderr: Error output of the failing command.
    """

    def __init__(
        self, message: str, *, command: str = "", returncode: int = 1, stderr: str = ""
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class VCS(ABC):
    """Abstract base class for version-control clients.

    Example:
        >>> vcs = GitClient()
        >>> vcs.clone("https://example.com/tools.git", Path("/ws/tools"))
        >>> tip = vcs.remote_head("https://example.com/tools.git", "main")
        >>> vcs.checkout(Path("/ws/tools"), tip)
    """

    # Mutations

    @abstractmethod
    def clone(self, remote: str, path: Path) -> None:
        """Clone a remote repository into a new directory.

        Raises:
            VCSError: If the clone fails.
        """

    @abstractmethod
    def fetch(self, path: Path, remote: str) -> None:
        """Fetch from the remote, repointing the origin first if its URL changed.

        Raises:
            VCSError: If the fetch fails.
        """

    @abstractmethod
    def checkout(self, path: Path, revision: str) -> None:
        """Check out a revision, detaching HEAD.

        Raises:
            VCSError: If the checkout fails.
        """

    @abstractmethod
    def discard_changes(self, path: Path) -> None:
        """Throw away uncommitted changes and untracked files; ignored files stay.

        Raises:
            VCSError: If the reset or clean fails.
        """

    @abstractmethod
    def delete_branch(self, path: Path, branch: str) -> None:
        """Delete a local branch, merged or not.

        Raises:
            VCSError: If the branch cannot be deleted.
        """

    # Queries

    @abstractmethod
    def current_revision(self, path: Path) -> str:
        """Return the commit hash HEAD points at."""

    @abstractmethod
    def resolve_revision(self, path: Path, revision: str) -> str | None:
        """Return the commit a revision names locally, or None if unknown."""

    @abstractmethod
    def remote_head(self, remote: str, branch: str) -> str:
        """Return the commit at the tip of a remote branch without fetching."""

    @abstractmethod
    def remote_url(self, path: Path) -> str:
        """Return the URL of the checkout's origin remote."""

    @abstractmethod
    def current_branch(self, path: Path) -> str | None:
        """Return the checked-out branch, or None when HEAD is detached."""

    @abstractmethod
    def local_branches(self, path: Path) -> list[str]:
        """Return the names of all local branches."""

    @abstractmethod
    def has_uncommitted_changes(self, path: Path) -> bool:
        """Check for staged or unstaged changes to tracked files."""

    @abstractmethod
    def has_untracked_files(self, path: Path) -> bool:
        """Check for files that are neither tracked nor ignored."""
