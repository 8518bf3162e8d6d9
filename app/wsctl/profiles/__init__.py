"""Installable, per-target build profiles."""

from wsctl.profiles.base import (
    AlreadyInstalledError,
    NoIncrementalUpdateError,
    ProfileContext,
    ProfileError,
    ProfileManager,
    ProfileStateError,
    UnsupportedProfileError,
    VersionInfo,
)
from wsctl.profiles.registry import ProfileRegistry, default_registry
from wsctl.profiles.target import Target

__all__ = [
    "AlreadyInstalledError",
    "NoIncrementalUpdateError",
    "ProfileContext",
    "ProfileError",
    "ProfileManager",
    "ProfileRegistry",
    "ProfileStateError",
    "Target",
    "UnsupportedProfileError",
    "VersionInfo",
    "default_registry",
]
