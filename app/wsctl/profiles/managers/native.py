"""The native profile: a build environment for the host toolchain.

Installing it creates a per-target prefix for locally built dependencies
and records the variables that point the host compilers at it. Moving to
a newer version only rewrites the environment, so updates are incremental.
"""

import logging
import shutil

from wsctl.profiles.base import (
    ProfileContext,
    ProfileError,
    ProfileFlags,
    ProfileManager,
    VersionInfo,
)
from wsctl.profiles.target import Target, merge_env

logger = logging.getLogger(__name__)

PREFIX_DIRS = ("bin", "include", "lib/pkgconfig")


class NativeProfile(ProfileManager):
    """Profile for building with the host's own compilers."""

    @property
    def name(self) -> str:
        return "native"

    @property
    def info(self) -> str:
        return "Host toolchain with a per-target prefix for local dependencies."

    @property
    def versions(self) -> VersionInfo:
        return VersionInfo(profile=self.name, supported=("1", "2"), default="2")

    def add_flags(self, flags: ProfileFlags) -> None:
        flags.declare("native.cc", "cc", "C compiler to build with.")
        flags.declare("native.cxx", "c++", "C++ compiler to build with.")

    def install(self, ctx: ProfileContext, target: Target) -> Target:
        prefix = ctx.install_dir(self.name, target)
        if ctx.dry_run:
            logger.info("[dry-run] Would create native prefix %s", prefix)
        else:
            logger.info("Creating native prefix %s", prefix)
            try:
                for sub in PREFIX_DIRS:
                    (prefix / sub).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ProfileError(f"cannot create {prefix}: {e}") from e
        return self._installed(ctx, target)

    def update(self, ctx: ProfileContext, target: Target) -> Target:
        logger.info("Updating native profile for %s to version %s", target, target.version)
        return self.install(ctx, target)

    def uninstall(self, ctx: ProfileContext, target: Target) -> None:
        prefix = ctx.install_dir(self.name, target)
        if ctx.dry_run:
            logger.info("[dry-run] Would remove native prefix %s", prefix)
            return
        logger.info("Removing native prefix %s", prefix)
        shutil.rmtree(prefix, ignore_errors=True)

    def _installed(self, ctx: ProfileContext, target: Target) -> Target:
        prefix = ctx.install_dir(self.name, target)
        env = (
            f"CC={ctx.flags.get('native.cc')}",
            f"CXX={ctx.flags.get('native.cxx')}",
            f"PKG_CONFIG_PATH={prefix / 'lib' / 'pkgconfig'}",
            f"WSCTL_NATIVE_ROOT={prefix}",
            f"WSCTL_NATIVE_VERSION={target.version}",
        )
        return target.replace(
            env=merge_env(env, target.command_line_env),
            installation_dir=str(prefix),
        )
