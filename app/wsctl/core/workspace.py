"""Workspace root discovery and on-disk layout.

Every managed project and all wsctl metadata live under a single workspace
root, named by the WSCTL_ROOT environment variable:

- <root>/.wsctl_manifest: root manifest, entry point of import resolution
- <root>/.wsctl_root/bin: tool executables, prepended to PATH
- <root>/.wsctl_root/update_history: snapshot entries and their index
- <root>/.wsctl_root/profiles: profile installation roots
- <root>/.wsctl_root/profiles.toml: installed profiles and targets
"""

from __future__ import annotations

import logging
import os
import platform
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ROOT_ENV = "WSCTL_ROOT"
PRESERVE_PATH_ENV = "WSCTL_PRESERVE_PATH"
ARCH_ENV = "WSCTL_ARCH"

ROOT_MANIFEST_NAME = ".wsctl_manifest"
ROOT_META_DIR = ".wsctl_root"
PROJECT_META_DIR = ".wsctl"
PROJECT_META_FILE = "metadata.toml"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}


class WorkspaceError(Exception):
    """Raised when the workspace root is missing or invalid."""


def host_os() -> str:
    """Return the normalized name of the host operating system."""
    return platform.system().lower() or "unknown"


def host_arch() -> str:
    """Return the host architecture, honoring the WSCTL_ARCH override."""
    override = os.environ.get(ARCH_ENV)
    if override:
        return override
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine or "unknown")


@dataclass(frozen=True, slots=True)
class Workspace:
    """A resolved workspace root and the paths derived from it.

    Attributes:
        root: Absolute, symlink-free path to the workspace root.
    """

    root: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Workspace:
        """Locate the workspace from the WSCTL_ROOT environment variable.

        Args:
            environ: Environment mapping to read. Defaults to os.environ.

        Returns:
            Workspace rooted at the resolved directory.

        Raises:
            WorkspaceError: If the variable is unset, not absolute after symlink
                evaluation, or does not name an existing directory.
        """
        env = os.environ if environ is None else environ
        value = env.get(ROOT_ENV, "")
        if not value:
            raise WorkspaceError(f"{ROOT_ENV} is not set")
        return cls.at(value)

    @classmethod
    def at(cls, path: str | Path) -> Workspace:
        """Create a workspace for an explicit root directory.

        Raises:
            WorkspaceError: If the path is not an absolute, existing directory.
        """
        raw = str(path)
        if not os.path.isabs(raw):
            raise WorkspaceError(f"{ROOT_ENV}={raw} is not an absolute path")
        resolved = Path(os.path.realpath(raw))
        if not resolved.exists():
            raise WorkspaceError(f"workspace root {resolved} does not exist")
        if not resolved.is_dir():
            raise WorkspaceError(f"workspace root {resolved} is not a directory")
        return cls(root=resolved)

    @property
    def manifest_path(self) -> Path:
        """Path to the root manifest file."""
        return self.root / ROOT_MANIFEST_NAME

    @property
    def meta_dir(self) -> Path:
        """Path to the root metadata directory."""
        return self.root / ROOT_META_DIR

    @property
    def bin_dir(self) -> Path:
        """Directory holding tool executables."""
        return self.meta_dir / "bin"

    @property
    def history_dir(self) -> Path:
        """Directory holding update history snapshots."""
        return self.meta_dir / "update_history"

    @property
    def profiles_root(self) -> Path:
        """Directory under which profiles are installed."""
        return self.meta_dir / "profiles"

    @property
    def profile_manifest_path(self) -> Path:
        """Path to the installed-profiles manifest."""
        return self.meta_dir / "profiles.toml"

    def lock_path(self, name: str) -> Path:
        """Path of the process-level lock file guarding a shared resource."""
        return self.meta_dir / f"{name}.lock"

    def project_dir(self, relative: str) -> Path:
        """Absolute checkout directory for a workspace-relative project path."""
        return self.root / relative

    def relative(self, path: Path) -> str:
        """Workspace-relative POSIX form of an absolute path."""
        return path.relative_to(self.root).as_posix()

    def ensure_dirs(self) -> None:
        """Create the metadata directory tree if it doesn't exist.

        Raises:
            WorkspaceError: If a directory cannot be created.
        """
        for path in (self.meta_dir, self.bin_dir, self.history_dir, self.profiles_root):
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise WorkspaceError(f"Cannot create directory {path}: {e}") from e

    def prepend_bin_to_path(self, environ: MutableMapping[str, str] | None = None) -> bool:
        """Put the tool directory first on PATH unless WSCTL_PRESERVE_PATH is set.

        Args:
            environ: Environment mapping to modify. Defaults to os.environ.

        Returns:
            True if PATH was changed.
        """
        env = os.environ if environ is None else environ
        if env.get(PRESERVE_PATH_ENV):
            return False
        bin_dir = str(self.bin_dir)
        entries = [p for p in env.get("PATH", "").split(os.pathsep) if p]
        if entries and entries[0] == bin_dir:
            return False
        entries = [bin_dir] + [p for p in entries if p != bin_dir]
        env["PATH"] = os.pathsep.join(entries)
        logger.debug("Prepended %s to PATH", bin_dir)
        return True

    def target_bin_dir(self, os_name: str | None = None, arch: str | None = None) -> Path:
        """Directory holding tool executables built for a specific target."""
        return self.bin_dir / f"{os_name or host_os()}_{arch or host_arch()}"

    def find_tool(self, name: str) -> Path | None:
        """Locate an installed tool, preferring the target-specific build.

        Args:
            name: Tool name.

        Returns:
            Path to the executable, or None if it is not installed.
        """
        for candidate in (self.target_bin_dir() / name, self.bin_dir / name):
            if candidate.is_file():
                return candidate
        return None
