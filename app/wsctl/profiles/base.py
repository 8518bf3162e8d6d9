"""Abstract base class for profile managers.

This module defines the ProfileManager interface every installable profile
implements, together with the versions, flags, and context it works with.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from wsctl.profiles.target import Target, version_key


class ProfileError(Exception):
    """Base exception for profile-related errors."""


class UnsupportedProfileError(ProfileError):
    """Raised when a profile name is not registered."""


class ProfileStateError(ProfileError):
    """Raised when an operation is not valid in a profile/target's current state."""


class AlreadyInstalledError(ProfileStateError):
    """Raised when installing a profile that is already installed for a target."""


class NoIncrementalUpdateError(ProfileError):
    """Raised by a manager that can only update by reinstalling."""


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """Versions a profile manager can install.

    Attributes:
        profile: Profile name, used in error messages.
        supported: Supported versions.
        default: Version installed when none is requested.
    """

    profile: str
    supported: tuple[str, ...]
    default: str

    def __post_init__(self) -> None:
        """Validate that the default is supported."""
        if self.default not in self.supported:
            msg = f"default version {self.default} of {self.profile} is not supported"
            raise ValueError(msg)

    def select(self, version: str) -> str:
        """Pick the version to install.

        Args:
            version: Requested version; empty selects the default.

        Returns:
            The version to install.

        Raises:
            ProfileError: If the version is not supported.
        """
        if not version:
            return self.default
        if version not in self.supported:
            raise ProfileError(
                f"unsupported version {version} of {self.profile}; "
                f"supported: {', '.join(self.ordered())}"
            )
        return version

    def is_older_than_default(self, version: str) -> bool:
        """Check if an installed version predates the default."""
        return version_key(version) < version_key(self.default)

    def ordered(self) -> list[str]:
        """Supported versions, newest first."""
        return sorted(self.supported, key=version_key, reverse=True)


@dataclass(frozen=True, slots=True)
class Flag:
    """An option a profile manager accepts.

    Attributes:
        name: Qualified name, "<profile>.<key>".
        default: Value used when the flag is not given.
        help: One-line description.
    """

    name: str
    default: str
    help: str


@dataclass
class ProfileFlags:
    """Flags declared by profile managers and the values given for them."""

    declared: dict[str, Flag] = field(default_factory=dict)
    values: dict[str, str] = field(default_factory=dict)

    def declare(self, name: str, default: str, help: str) -> None:
        """Declare a flag.

        Raises:
            ValueError: If a flag of that name was already declared.
        """
        if name in self.declared:
            msg = f"flag {name} declared twice"
            raise ValueError(msg)
        self.declared[name] = Flag(name=name, default=default, help=help)

    def set(self, assignment: str) -> None:
        """Apply a "<profile>.<key>=<value>" assignment.

        Raises:
            ProfileError: If the assignment is malformed or names an undeclared flag.
        """
        name, sep, value = assignment.partition("=")
        if not sep:
            raise ProfileError(f"invalid flag {assignment!r}, expected <profile>.<key>=<value>")
        if name not in self.declared:
            known = ", ".join(sorted(self.declared)) or "none"
            raise ProfileError(f"unknown flag {name}; known flags: {known}")
        self.values[name] = value

    def get(self, name: str) -> str:
        """Value of a declared flag, or its default."""
        if name in self.values:
            return self.values[name]
        return self.declared[name].default


@dataclass(frozen=True, slots=True)
class ProfileContext:
    """What a manager needs to install into the workspace.

    Attributes:
        root: Directory under which profiles are installed.
        flags: Declared flags and their values.
        dry_run: If True, managers only report what they would do.
    """

    root: Path
    flags: ProfileFlags = field(default_factory=ProfileFlags)
    dry_run: bool = False

    def install_dir(self, profile: str, target: Target) -> Path:
        """Installation directory of a profile for a target."""
        return self.root / profile / target.dirname


class ProfileManager(ABC):
    """Abstract base class for installable profiles.

    A manager installs, updates, and uninstalls one profile for a target.
    It does not record anything: the caller persists the Target it returns.

    Example:
        >>> manager = registry.lookup("native")
        >>> installed = manager.install(ctx, Target.parse("amd64-linux@2"))
        >>> installed.env_vars()["WSCTL_NATIVE_ROOT"]
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Profile name used on the command line and in the profile manifest."""

    @property
    @abstractmethod
    def info(self) -> str:
        """One-line description of the profile."""

    @property
    @abstractmethod
    def versions(self) -> VersionInfo:
        """Versions this manager can install."""

    def add_flags(self, flags: ProfileFlags) -> None:
        """Declare the flags this manager accepts. Managers without flags keep this."""

    @abstractmethod
    def install(self, ctx: ProfileContext, target: Target) -> Target:
        """Install the profile for a target.

        Args:
            ctx: Installation context.
            target: Target to install for; its version is already selected.

        Returns:
            The target as installed, with its environment and installation_dir.

        Raises:
            ProfileError: If installation fails.
        """

    @abstractmethod
    def update(self, ctx: ProfileContext, target: Target) -> Target:
        """Update an installed profile to target.version in place.

        Args:
            ctx: Installation context.
            target: Installed target, with version set to the version to move to.

        Returns:
            The target as updated.

        Raises:
            NoIncrementalUpdateError: If the profile can only be reinstalled.
            ProfileError: If the update fails.
        """

    @abstractmethod
    def uninstall(self, ctx: ProfileContext, target: Target) -> None:
        """Remove the profile for a target.

        Raises:
            ProfileError: If removal fails.
        """
