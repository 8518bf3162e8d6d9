"""Unit tests for build targets."""

import pytest
from wsctl.profiles.target import (
    Target,
    TargetError,
    merge_env,
    parse_env,
    sort_targets,
    version_key,
)


class TestParse:
    """Tests for Target.parse."""

    def test_arch_and_os(self) -> None:
        """A plain target has no version."""
        target = Target.parse("amd64-linux")

        assert (target.arch, target.os, target.version) == ("amd64", "linux", "")
        assert str(target) == "amd64-linux"

    def test_with_version(self) -> None:
        """A version follows '@'."""
        target = Target.parse("arm64-darwin@2")

        assert target.version == "2"
        assert str(target) == "arm64-darwin@2"
        assert target.dirname == "arm64_darwin"

    def test_env_is_recorded_twice(self) -> None:
        """User-supplied variables become both env and command-line env."""
        target = Target.parse("amd64-linux", env="CC=clang,CFLAGS=-O2")

        assert target.env == ("CC=clang", "CFLAGS=-O2")
        assert target.command_line_env == target.env
        assert target.env_vars() == {"CC": "clang", "CFLAGS": "-O2"}

    @pytest.mark.parametrize("spec", ["amd64", "-linux", "amd64-", "a-b-c", "amd64-linux@"])
    def test_malformed(self, spec: str) -> None:
        """Malformed specifications raise TargetError."""
        with pytest.raises(TargetError):
            Target.parse(spec)

    def test_host_honors_arch_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The host target uses WSCTL_ARCH when set."""
        monkeypatch.setenv("WSCTL_ARCH", "riscv64")

        assert Target.host().arch == "riscv64"


class TestEnv:
    """Tests for environment helpers."""

    def test_parse_env_skips_blanks(self) -> None:
        """Empty items are ignored."""
        assert parse_env(" A=1, ,B=2 ") == ("A=1", "B=2")

    @pytest.mark.parametrize("value", ["NOVALUE", "=x"])
    def test_parse_env_rejects(self, value: str) -> None:
        """Items need a key and '='."""
        with pytest.raises(TargetError):
            parse_env(value)

    def test_merge_env_later_wins(self) -> None:
        """Later layers override earlier ones; output is sorted by key."""
        assert merge_env(("B=1", "A=1"), ["A=2"]) == ("A=2", "B=1")


class TestMatching:
    """Tests for target matching and ordering."""

    def test_version_is_optional_when_matching(self) -> None:
        """An unversioned target matches any version of the same tuple."""
        installed = Target.parse("amd64-linux@2")

        assert installed.matches(Target.parse("amd64-linux"))
        assert installed.matches(Target.parse("amd64-linux@2"))
        assert not installed.matches(Target.parse("amd64-linux@1"))
        assert not installed.matches(Target.parse("arm64-linux"))

    def test_sort_targets(self) -> None:
        """Targets sort by arch and OS, newest version first."""
        targets = [
            Target.parse("arm64-linux"),
            Target.parse("amd64-linux@1.2"),
            Target.parse("amd64-linux@1.10"),
        ]

        ordered = [str(t) for t in sort_targets(targets)]

        assert ordered == ["amd64-linux@1.10", "amd64-linux@1.2", "arm64-linux"]

    def test_version_key_numeric(self) -> None:
        """Numeric parts compare as numbers."""
        assert version_key("2024.1") > version_key("2023.12")
        assert version_key("10") > version_key("9")
