"""Unit tests for the built-in profile managers."""

import tomllib
from pathlib import Path

import pytest
from wsctl.profiles.base import NoIncrementalUpdateError, ProfileContext, ProfileError
from wsctl.profiles.managers.native import NativeProfile
from wsctl.profiles.managers.sysroot import MARKER, SysrootProfile
from wsctl.profiles.registry import default_registry
from wsctl.profiles.target import Target


@pytest.fixture
def ctx(tmp_path: Path) -> ProfileContext:
    """Installation context rooted in a temporary directory."""
    return ProfileContext(root=tmp_path / "profiles", flags=default_registry().flags())


class TestNativeProfile:
    """Tests for NativeProfile."""

    def test_install_creates_prefix(self, ctx: ProfileContext) -> None:
        """Installing creates the prefix and records its environment."""
        target = Target.parse("amd64-linux@2", env="CC=clang")

        installed = NativeProfile().install(ctx, target)

        prefix = ctx.root / "native" / "amd64_linux"
        assert (prefix / "lib" / "pkgconfig").is_dir()
        env = installed.env_vars()
        assert env["WSCTL_NATIVE_ROOT"] == str(prefix)
        assert env["WSCTL_NATIVE_VERSION"] == "2"
        assert env["CC"] == "clang"
        assert installed.installation_dir == str(prefix)

    def test_flags_feed_environment(self, ctx: ProfileContext) -> None:
        """Compiler flags end up in the environment."""
        ctx.flags.set("native.cxx=clang++")

        installed = NativeProfile().install(ctx, Target.parse("amd64-linux@2"))

        assert installed.env_vars()["CXX"] == "clang++"

    def test_dry_run_touches_nothing(self, tmp_path: Path) -> None:
        """A dry run reports the environment without creating files."""
        ctx = ProfileContext(
            root=tmp_path / "profiles", flags=default_registry().flags(), dry_run=True
        )

        installed = NativeProfile().install(ctx, Target.parse("amd64-linux@2"))

        assert not ctx.root.exists()
        assert installed.installation_dir

    def test_uninstall_removes_prefix(self, ctx: ProfileContext) -> None:
        """Uninstalling removes the prefix."""
        manager = NativeProfile()
        installed = manager.install(ctx, Target.parse("amd64-linux@2"))

        manager.uninstall(ctx, installed)

        assert not Path(installed.installation_dir).exists()


class TestSysrootProfile:
    """Tests for SysrootProfile."""

    def test_install_stages_tree(self, ctx: ProfileContext) -> None:
        """The sysroot is laid out with a marker naming the target."""
        ctx.flags.set("sysroot.packages=zlib,openssl")

        installed = SysrootProfile().install(ctx, Target.parse("arm64-linux@2024.1"))

        root = Path(installed.installation_dir)
        assert (root / "usr" / "include").is_dir()
        marker = tomllib.loads((root / MARKER).read_text())
        assert marker == {
            "target": "arm64-linux@2024.1",
            "version": "2024.1",
            "packages": ["openssl", "zlib"],
        }
        assert installed.env_vars()["SYSROOT"] == str(root)
        assert [p.name for p in root.parent.iterdir()] == [root.name]

    def test_existing_sysroot(self, ctx: ProfileContext) -> None:
        """An existing sysroot is never overwritten."""
        manager = SysrootProfile()
        manager.install(ctx, Target.parse("arm64-linux@2024.1"))

        with pytest.raises(ProfileError, match="already exists"):
            manager.install(ctx, Target.parse("arm64-linux@2024.1"))

    def test_update_requires_rebuild(self, ctx: ProfileContext) -> None:
        """Sysroots cannot be updated in place."""
        with pytest.raises(NoIncrementalUpdateError):
            SysrootProfile().update(ctx, Target.parse("arm64-linux@2024.1"))
