"""The sysroot profile: a staged root filesystem for cross builds.

A sysroot is laid out in a staging directory and moved into place in one
rename, so an interrupted install never leaves a half-built tree. Sysroots
are never patched in place: moving to another version means rebuilding.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

import tomli_w

from wsctl.profiles.base import (
    NoIncrementalUpdateError,
    ProfileContext,
    ProfileError,
    ProfileFlags,
    ProfileManager,
    VersionInfo,
)
from wsctl.profiles.target import Target, merge_env

logger = logging.getLogger(__name__)

SYSROOT_DIRS = ("usr/include", "usr/lib", "usr/share/pkgconfig")
MARKER = ".wsctl-sysroot"


class SysrootProfile(ProfileManager):
    """Profile providing a per-target sysroot."""

    @property
    def name(self) -> str:
        return "sysroot"

    @property
    def info(self) -> str:
        return "Per-target root filesystem for cross compilation."

    @property
    def versions(self) -> VersionInfo:
        return VersionInfo(profile=self.name, supported=("2023.1", "2024.1"), default="2024.1")

    def add_flags(self, flags: ProfileFlags) -> None:
        flags.declare("sysroot.packages", "", "Comma-separated packages to stage.")

    def install(self, ctx: ProfileContext, target: Target) -> Target:
        root = ctx.install_dir(self.name, target)
        packages = sorted(p for p in ctx.flags.get("sysroot.packages").split(",") if p)
        if ctx.dry_run:
            logger.info("[dry-run] Would stage sysroot %s for %s", root, target)
        else:
            self._stage(root, target, packages)
        env = (
            f"SYSROOT={root}",
            f"CFLAGS=--sysroot={root}",
            f"LDFLAGS=--sysroot={root}",
            f"PKG_CONFIG_SYSROOT_DIR={root}",
        )
        return target.replace(
            env=merge_env(env, target.command_line_env),
            installation_dir=str(root),
        )

    def update(self, ctx: ProfileContext, target: Target) -> Target:
        raise NoIncrementalUpdateError(f"sysroot for {target} must be rebuilt")

    def uninstall(self, ctx: ProfileContext, target: Target) -> None:
        root = ctx.install_dir(self.name, target)
        if ctx.dry_run:
            logger.info("[dry-run] Would remove sysroot %s", root)
            return
        logger.info("Removing sysroot %s", root)
        shutil.rmtree(root, ignore_errors=True)

    def _stage(self, root: Path, target: Target, packages: list[str]) -> None:
        if root.exists():
            raise ProfileError(f"sysroot {root} already exists")
        logger.info("Staging sysroot %s for %s", root, target)
        staging: Path | None = None
        try:
            root.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(dir=root.parent, prefix=f".{root.name}-"))
            for sub in SYSROOT_DIRS:
                (staging / sub).mkdir(parents=True, exist_ok=True)
            marker = {"target": str(target), "version": target.version, "packages": packages}
            (staging / MARKER).write_text(tomli_w.dumps(marker), encoding="utf-8")
            os.rename(staging, root)
        except OSError as e:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)
            raise ProfileError(f"cannot stage sysroot {root}: {e}") from e
