"""Unit tests for the profile registry and flags."""

import pytest
from wsctl.profiles.base import ProfileError, ProfileFlags, UnsupportedProfileError, VersionInfo
from wsctl.profiles.managers.native import NativeProfile
from wsctl.profiles.registry import ProfileRegistry, default_registry


class TestProfileRegistry:
    """Tests for ProfileRegistry."""

    def test_default_registry(self) -> None:
        """The built-in managers are registered."""
        registry = default_registry()

        assert registry.names() == ["native", "sysroot"]
        assert "native" in registry

    def test_unsupported_name(self) -> None:
        """Looking up an unknown name lists the supported ones."""
        with pytest.raises(UnsupportedProfileError, match="native, sysroot"):
            default_registry().lookup("nope")

    def test_duplicate_registration(self) -> None:
        """A name can only be registered once."""
        registry = ProfileRegistry()
        registry.register(NativeProfile())

        with pytest.raises(ValueError):
            registry.register(NativeProfile())


class TestProfileFlags:
    """Tests for flags declared by managers."""

    def test_defaults_and_overrides(self) -> None:
        """Flags fall back to their defaults until set."""
        flags = default_registry().flags()

        assert flags.get("native.cc") == "cc"
        flags.set("native.cc=clang")
        assert flags.get("native.cc") == "clang"

    @pytest.mark.parametrize("assignment", ["native.cc", "native.nope=1"])
    def test_invalid_assignment(self, assignment: str) -> None:
        """Malformed or unknown flags are rejected."""
        with pytest.raises(ProfileError):
            default_registry().flags().set(assignment)

    def test_declare_twice(self) -> None:
        """A flag cannot be declared twice."""
        flags = ProfileFlags()
        flags.declare("a.b", "", "help")

        with pytest.raises(ValueError):
            flags.declare("a.b", "", "help")


class TestVersionInfo:
    """Tests for version selection."""

    def test_select(self) -> None:
        """An empty request selects the default."""
        versions = VersionInfo(profile="p", supported=("1", "2"), default="2")

        assert versions.select("") == "2"
        assert versions.select("1") == "1"
        assert versions.is_older_than_default("1")
        assert versions.ordered() == ["2", "1"]

    def test_unsupported_version(self) -> None:
        """Requesting an unknown version fails."""
        versions = VersionInfo(profile="p", supported=("1",), default="1")

        with pytest.raises(ProfileError, match="unsupported version 3"):
            versions.select("3")

    def test_default_must_be_supported(self) -> None:
        """The default version has to be one of the supported ones."""
        with pytest.raises(ValueError):
            VersionInfo(profile="p", supported=("1",), default="2")
