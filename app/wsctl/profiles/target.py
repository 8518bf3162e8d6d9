"""Build targets for profile installation.

A target names an architecture/OS pair, optionally a profile version, and
carries the environment variables that building for it requires. On the
command line a target is written as ``<arch>-<os>[@<version>]``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from wsctl.core.workspace import host_arch, host_os


class TargetError(ValueError):
    """Raised when a target or environment specification is malformed."""


def parse_env(value: str) -> tuple[str, ...]:
    """Parse a comma-separated list of ``KEY=VALUE`` assignments.

    Args:
        value: Assignments, e.g. "CC=clang,CFLAGS=-O2". Empty means none.

    Returns:
        Tuple of the individual assignments, in order.

    Raises:
        TargetError: If an assignment has no "=" or an empty key.
    """
    assignments: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, _ = item.partition("=")
        if not sep or not key:
            raise TargetError(f"invalid environment assignment {item!r}, expected KEY=VALUE")
        assignments.append(item)
    return tuple(assignments)


def env_to_dict(assignments: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` assignments into a mapping; later keys win."""
    result: dict[str, str] = {}
    for item in assignments:
        key, _, val = item.partition("=")
        result[key] = val
    return result


def merge_env(*layers: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Merge assignment lists; later layers override earlier ones. Sorted by key."""
    merged: dict[str, str] = {}
    for layer in layers:
        merged.update(env_to_dict(layer))
    return tuple(f"{k}={v}" for k, v in sorted(merged.items()))


def version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key for dotted version strings; numeric parts compare as numbers."""
    parts: list[tuple[int, int | str]] = []
    for part in version.split("."):
        parts.append((0, int(part)) if part.isdigit() else (1, part))
    return tuple(parts)


@dataclass(frozen=True, slots=True)
class Target:
    """An architecture/OS tuple that profiles are installed for.

    Attributes:
        arch: Architecture, e.g. "amd64".
        os: Operating system, e.g. "linux".
        version: Profile version; empty means the profile's default.
        env: Environment variables in effect for this target.
        command_line_env: Variables the user supplied when installing.
        installation_dir: Where the profile is installed for this target.
        update_time: ISO 8601 time of the last install or update.
    """

    arch: str
    os: str
    version: str = ""
    env: tuple[str, ...] = field(default=())
    command_line_env: tuple[str, ...] = field(default=())
    installation_dir: str = ""
    update_time: str = ""

    def __post_init__(self) -> None:
        """Validate target data after initialization."""
        if not self.arch or not self.os:
            msg = f"target needs both an architecture and an OS, got {self.arch!r}-{self.os!r}"
            raise TargetError(msg)

    @classmethod
    def parse(cls, spec: str, env: str = "") -> Target:
        """Parse ``<arch>-<os>[@<version>]``.

        Args:
            spec: Target specification.
            env: Comma-separated ``KEY=VALUE`` assignments supplied by the user.

        Returns:
            Target with the supplied variables as its command-line environment.

        Raises:
            TargetError: If the specification is malformed.
        """
        body, at, version = spec.strip().partition("@")
        if at and not version:
            raise TargetError(f"invalid target {spec!r}: empty version after '@'")
        arch, sep, os_name = body.partition("-")
        if not sep or not arch or not os_name or "-" in os_name:
            raise TargetError(f"invalid target {spec!r}, expected <arch>-<os>[@<version>]")
        assignments = parse_env(env)
        return cls(
            arch=arch,
            os=os_name,
            version=version,
            env=assignments,
            command_line_env=assignments,
        )

    @classmethod
    def host(cls, env: str = "") -> Target:
        """The target of the machine wsctl runs on (honors WSCTL_ARCH)."""
        assignments = parse_env(env)
        return cls(arch=host_arch(), os=host_os(), env=assignments, command_line_env=assignments)

    def __str__(self) -> str:
        base = f"{self.arch}-{self.os}"
        return f"{base}@{self.version}" if self.version else base

    @property
    def dirname(self) -> str:
        """Directory name used for target-specific files."""
        return f"{self.arch}_{self.os}"

    def matches(self, other: Target) -> bool:
        """Check if two targets name the same arch/OS (and version, when both have one)."""
        if self.arch != other.arch or self.os != other.os:
            return False
        if self.version and other.version:
            return self.version == other.version
        return True

    def env_vars(self) -> dict[str, str]:
        """Environment of this target as a mapping."""
        return env_to_dict(self.env)

    def replace(self, **changes: object) -> Target:
        """Copy of the target with some fields changed."""
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]


def sort_targets(targets: list[Target]) -> list[Target]:
    """Order targets by architecture, then OS, then newest version first."""
    by_version = sorted(targets, key=lambda t: version_key(t.version), reverse=True)
    return sorted(by_version, key=lambda t: (t.arch, t.os))
