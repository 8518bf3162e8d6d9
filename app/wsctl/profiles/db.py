"""Installed-profile manifest.

The profile manifest is the single record of which profiles are installed
for which targets. It lives in its own TOML file, independent of the
project manifest:

    version = 1

    [[profiles]]
    name = "native"
    root = "/ws/.wsctl_root/profiles/native"

    [[profiles.targets]]
    arch = "amd64"
    os = "linux"
    version = "2"
    installation_dir = "/ws/.wsctl_root/profiles/native/amd64_linux"
    date = "2026-10-19T10:15:00+00:00"
    env = ["WSCTL_NATIVE_ROOT=/ws/.wsctl_root/profiles/native/amd64_linux"]
    command_line_env = []

A profile whose last target is removed is dropped from the file.
"""

from __future__ import annotations

import logging
import shutil
import tomllib
from pathlib import Path
from typing import Annotated, Any

import tomli_w
from filelock import FileLock
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wsctl.core.manifest import write_atomic
from wsctl.profiles.base import AlreadyInstalledError, ProfileError
from wsctl.profiles.target import Target, sort_targets

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class TargetRecord(BaseModel):
    """Persisted form of an installed target."""

    model_config = ConfigDict(extra="forbid")

    arch: Annotated[str, Field(min_length=1, description="Architecture")]
    os: Annotated[str, Field(min_length=1, description="Operating system")]
    version: Annotated[str, Field(description="Installed profile version")] = ""
    installation_dir: Annotated[str, Field(description="Installation directory")] = ""
    date: Annotated[str, Field(description="Time of the last install or update")] = ""
    env: Annotated[list[str], Field(default_factory=list, description="Target environment")]
    command_line_env: Annotated[
        list[str],
        Field(default_factory=list, description="Environment given on the command line"),
    ]

    @classmethod
    def from_target(cls, target: Target) -> TargetRecord:
        return cls(
            arch=target.arch,
            os=target.os,
            version=target.version,
            installation_dir=target.installation_dir,
            date=target.update_time,
            env=list(target.env),
            command_line_env=list(target.command_line_env),
        )

    def to_target(self) -> Target:
        return Target(
            arch=self.arch,
            os=self.os,
            version=self.version,
            env=tuple(self.env),
            command_line_env=tuple(self.command_line_env),
            installation_dir=self.installation_dir,
            update_time=self.date,
        )


class ProfileRecord(BaseModel):
    """Persisted form of an installed profile."""

    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1, description="Profile name")]
    root: Annotated[str, Field(description="Profile installation root")] = ""
    targets: Annotated[
        list[TargetRecord],
        Field(default_factory=list, description="Installed targets"),
    ]


class ProfilesDocument(BaseModel):
    """The profile manifest file."""

    model_config = ConfigDict(extra="forbid")

    version: Annotated[int, Field(description="Schema version")] = SCHEMA_VERSION
    profiles: Annotated[
        list[ProfileRecord],
        Field(default_factory=list, description="Installed profiles"),
    ]


class ProfileDB:
    """In-memory view of the profile manifest.

    Changes are only persisted by save(), which rewrites the whole file
    atomically under a process-level lock and keeps the previous version
    next to it with a ".prev" suffix.

    Attributes:
        path: Location of the profile manifest.
    """

    def __init__(self, path: Path, lock_path: Path | None = None) -> None:
        """Initialize an empty database.

        Args:
            path: Location of the profile manifest.
            lock_path: Lock guarding writes. Defaults to "<path>.lock".
        """
        self.path = path
        self._lock_path = lock_path or path.with_name(path.name + ".lock")
        self._roots: dict[str, str] = {}
        self._targets: dict[str, list[Target]] = {}

    @classmethod
    def load(cls, path: Path, lock_path: Path | None = None) -> ProfileDB:
        """Read the profile manifest; a missing file is an empty database.

        Raises:
            ProfileError: If the file cannot be read or is malformed.
        """
        db = cls(path, lock_path)
        if not path.exists():
            return db
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            document = ProfilesDocument.model_validate(data)
        except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
            raise ProfileError(f"Invalid profile manifest {path}: {e}") from e

        for record in document.profiles:
            db._roots[record.name] = record.root
            db._targets[record.name] = [t.to_target() for t in record.targets]
        return db

    def profiles(self) -> list[str]:
        """Installed profile names, sorted."""
        return sorted(self._targets)

    def root(self, profile: str) -> str:
        """Installation root recorded for a profile."""
        return self._roots.get(profile, "")

    def targets(self, profile: str) -> list[Target]:
        """Installed targets of a profile, in display order."""
        return sort_targets(list(self._targets.get(profile, [])))

    def lookup_target(self, profile: str, target: Target) -> Target | None:
        """Find the installed target matching a requested one."""
        for installed in self.targets(profile):
            if installed.matches(target):
                return installed
        return None

    def add_target(self, profile: str, root: str, target: Target) -> None:
        """Record a newly installed target.

        Raises:
            AlreadyInstalledError: If the profile is already installed for that target.
        """
        if self.lookup_target(profile, target) is not None:
            raise AlreadyInstalledError(f"profile {profile} is already installed for {target}")
        self._roots[profile] = root
        self._targets.setdefault(profile, []).append(target)

    def replace_target(self, profile: str, target: Target) -> None:
        """Replace the record of an installed target.

        Raises:
            ProfileError: If the target is not installed.
        """
        targets = self._targets.get(profile, [])
        for i, installed in enumerate(targets):
            if installed.arch == target.arch and installed.os == target.os:
                targets[i] = target
                return
        raise ProfileError(f"profile {profile} is not installed for {target}")

    def remove_target(self, profile: str, target: Target) -> bool:
        """Forget an installed target, and the profile with its last target.

        Returns:
            True if a target was removed.
        """
        targets = self._targets.get(profile, [])
        remaining = [t for t in targets if not t.matches(target)]
        removed = len(remaining) != len(targets)
        if remaining:
            self._targets[profile] = remaining
        else:
            self._targets.pop(profile, None)
            self._roots.pop(profile, None)
        return removed

    def to_dict(self) -> dict[str, Any]:
        """Serializable form, sorted by profile name and target order."""
        document = ProfilesDocument(
            profiles=[
                ProfileRecord(
                    name=name,
                    root=self.root(name),
                    targets=[TargetRecord.from_target(t) for t in self.targets(name)],
                )
                for name in self.profiles()
            ]
        )
        return document.model_dump(mode="json")

    def save(self) -> Path:
        """Write the profile manifest.

        Raises:
            ProfileError: If the file cannot be written.
        """
        content = tomli_w.dumps(self.to_dict())
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(str(self._lock_path)):
                if self.path.exists():
                    shutil.copyfile(self.path, self.path.with_name(self.path.name + ".prev"))
                write_atomic(self.path, content)
        except OSError as e:
            raise ProfileError(f"Failed to write profile manifest {self.path}: {e}") from e
        logger.debug("Wrote profile manifest %s", self.path)
        return self.path

    def delete(self) -> None:
        """Remove the profile manifest and its backup, forgetting every profile.

        Raises:
            ProfileError: If the files cannot be removed.
        """
        try:
            with FileLock(str(self._lock_path)):
                for path in (self.path, self.path.with_name(self.path.name + ".prev")):
                    path.unlink(missing_ok=True)
        except OSError as e:
            raise ProfileError(f"Failed to remove profile manifest {self.path}: {e}") from e
        self._roots.clear()
        self._targets.clear()
        logger.debug("Removed profile manifest %s", self.path)
