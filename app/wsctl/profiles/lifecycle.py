"""Profile install/update/uninstall batches.

Each (profile, target) pair is absent, up to date (installed at the
manager's default version), or out of date (installed at an older one).
Install moves a pair from absent to up to date, update from out of date to
up to date, and uninstall from either installed state back to absent.

Every batch ends by rewriting the profile manifest, even when some pairs
failed, so the pairs that did change are never lost.
"""

import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from wsctl.profiles.base import (
    AlreadyInstalledError,
    NoIncrementalUpdateError,
    ProfileContext,
    ProfileError,
    ProfileManager,
    ProfileStateError,
)
from wsctl.profiles.db import ProfileDB
from wsctl.profiles.registry import ProfileRegistry
from wsctl.profiles.target import Target

logger = logging.getLogger(__name__)


class ProfileAction(str, Enum):
    """Operations applied to a (profile, target) pair."""

    INSTALL = "install"
    UPDATE = "update"
    REINSTALL = "reinstall"
    UNINSTALL = "uninstall"
    UP_TO_DATE = "up-to-date"


@dataclass(frozen=True, slots=True)
class ProfileOutcome:
    """A pair that was changed (or found current).

    Attributes:
        profile: Profile name.
        target: Target as recorded, or as requested for uninstalls.
        action: What was done.
    """

    profile: str
    target: Target
    action: ProfileAction


@dataclass(frozen=True, slots=True)
class ProfileFailure:
    """A pair whose operation failed.

    Attributes:
        profile: Profile name.
        target: Requested target.
        action: Operation that failed.
        message: Error description.
    """

    profile: str
    target: Target
    action: ProfileAction
    message: str


class ProfileBatchError(ProfileError):
    """Raised after a batch in which one or more pairs failed.

    Attributes:
        failures: The failed pairs.
        outcomes: The pairs that succeeded.
    """

    def __init__(self, failures: list[ProfileFailure], outcomes: list[ProfileOutcome]) -> None:
        self.failures = failures
        self.outcomes = outcomes
        lines = [f"{f.action.value} {f.profile} {f.target}: {f.message}" for f in failures]
        super().__init__(f"{len(failures)} profile operation(s) failed:\n" + "\n".join(lines))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProfileService:
    """Runs profile operations and keeps the profile manifest in step.

    Attributes:
        registry: Supported profile managers.
        db: The profile manifest.
        context: Installation context handed to managers.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        db: ProfileDB,
        context: ProfileContext,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the service.

        Args:
            registry: Supported profile managers.
            db: Profile manifest to read and update.
            context: Installation context handed to managers.
            clock: Source of the time stamped on installed targets.
        """
        self.registry = registry
        self.db = db
        self.context = context
        self._clock = clock

    def install(
        self, names: Iterable[str], targets: Iterable[Target], force: bool = False
    ) -> list[ProfileOutcome]:
        """Install profiles for targets.

        Args:
            names: Profiles to install.
            targets: Targets to install each profile for.
            force: Reinstall pairs that are already installed.

        Returns:
            One outcome per pair.

        Raises:
            UnsupportedProfileError: If a name is not registered; nothing is changed.
            ProfileBatchError: If any pair failed; the others are still recorded.
        """
        return self._batch(names, targets, ProfileAction.INSTALL, force)

    def update(
        self, names: Iterable[str], targets: Iterable[Target] | None, force: bool = False
    ) -> list[ProfileOutcome]:
        """Update installed profiles to their default versions.

        A pair already at the default version is left alone unless force is
        set. A manager that cannot update in place, and every forced update,
        is handled by uninstalling and installing again.

        Args:
            names: Profiles to update.
            targets: Targets to update; None means every installed target.
            force: Reinstall even pairs that are up to date.

        Raises:
            UnsupportedProfileError: If a name is not registered; nothing is changed.
            ProfileBatchError: If any pair failed; the others are still recorded.
        """
        return self._batch(names, targets, ProfileAction.UPDATE, force)

    def uninstall(
        self, names: Iterable[str], targets: Iterable[Target] | None
    ) -> list[ProfileOutcome]:
        """Uninstall profiles for targets; None means every installed target.

        Raises:
            UnsupportedProfileError: If a name is not registered; nothing is changed.
            ProfileBatchError: If any pair failed; the others are still recorded.
        """
        return self._batch(names, targets, ProfileAction.UNINSTALL, False)

    def collect_garbage(self, names: Iterable[str] | None = None) -> list[ProfileOutcome]:
        """Uninstall every installed target older than its profile's default version.

        Args:
            names: Profiles to clean; None means every installed, supported profile.

        Raises:
            UnsupportedProfileError: If a named profile is not registered.
            ProfileBatchError: If any uninstall failed; the others are still recorded.
        """
        if names is None:
            names = [name for name in self.db.profiles() if name in self.registry]
        managers = [self.registry.lookup(name) for name in names]
        pairs = [
            (manager, target)
            for manager in managers
            for target in self.db.targets(manager.name)
            if manager.versions.is_older_than_default(target.version)
        ]
        return self._run(pairs, ProfileAction.UNINSTALL, False)

    def remove_all(self) -> None:
        """Delete the profiles root and the profile manifest.

        Nothing is uninstalled one by one; the record of every profile is
        dropped together with everything installed under the root.

        Raises:
            ProfileError: If the files cannot be removed.
        """
        root = self.context.root
        if self.context.dry_run:
            logger.info("Would remove %s and %s", root, self.db.path)
            return
        logger.info("Removing %s", root)
        try:
            if root.exists():
                shutil.rmtree(root)
        except OSError as e:
            raise ProfileError(f"Failed to remove {root}: {e}") from e
        self.db.delete()

    def rewrite(self) -> None:
        """Write the profile manifest back in the current schema.

        Raises:
            ProfileError: If the file cannot be written.
        """
        if self.context.dry_run:
            logger.info("Would rewrite %s", self.db.path)
            return
        self.db.save()

    def env(self, name: str, target: Target, variables: Iterable[str] = ()) -> dict[str, str]:
        """Environment recorded for an installed pair.

        Args:
            name: Profile name.
            target: Installed target.
            variables: Names to report; all variables when empty.

        Returns:
            Mapping of variable names to values; unset requested names map to "".

        Raises:
            ProfileStateError: If the profile is not installed for the target.
        """
        installed = self._require_installed(name, target, "show the environment of")
        env = installed.env_vars()
        wanted = list(variables)
        if not wanted:
            return dict(sorted(env.items()))
        return {var: env.get(var, "") for var in wanted}

    def _batch(
        self,
        names: Iterable[str],
        targets: Iterable[Target] | None,
        action: ProfileAction,
        force: bool,
    ) -> list[ProfileOutcome]:
        managers = [self.registry.lookup(name) for name in names]
        target_list = list(targets) if targets is not None else None
        pairs = []
        for manager in managers:
            selected = target_list if target_list is not None else self.db.targets(manager.name)
            pairs.extend((manager, target) for target in selected)
        return self._run(pairs, action, force)

    def _run(
        self, pairs: list[tuple[ProfileManager, Target]], action: ProfileAction, force: bool
    ) -> list[ProfileOutcome]:
        outcomes: list[ProfileOutcome] = []
        failures: list[ProfileFailure] = []
        try:
            for manager, target in pairs:
                try:
                    outcomes.append(self._apply(manager, target, action, force))
                except (ProfileError, OSError) as e:
                    logger.debug("%s %s %s failed: %s", action.value, manager.name, target, e)
                    failures.append(ProfileFailure(manager.name, target, action, str(e)))
        finally:
            if not self.context.dry_run:
                self.db.save()

        if failures:
            raise ProfileBatchError(failures, outcomes)
        return outcomes

    def _apply(
        self, manager: ProfileManager, target: Target, action: ProfileAction, force: bool
    ) -> ProfileOutcome:
        if action == ProfileAction.INSTALL:
            return self._install(manager, target, force)
        if action == ProfileAction.UPDATE:
            return self._update(manager, target, force)
        return self._uninstall(manager, target)

    def _install(self, manager: ProfileManager, target: Target, force: bool) -> ProfileOutcome:
        installed = self.db.lookup_target(manager.name, target)
        if installed is not None:
            if not force:
                raise AlreadyInstalledError(
                    f"profile {manager.name} is already installed for {installed}"
                )
            return self._reinstall(manager, installed, target)
        installed = self._do_install(manager, target)
        return ProfileOutcome(manager.name, installed, ProfileAction.INSTALL)

    def _update(self, manager: ProfileManager, target: Target, force: bool) -> ProfileOutcome:
        installed = self._require_installed(manager.name, target, "update")
        versions = manager.versions
        if not force and not versions.is_older_than_default(installed.version):
            logger.info("%s for %s is up to date", manager.name, installed)
            return ProfileOutcome(manager.name, installed, ProfileAction.UP_TO_DATE)

        if not force:
            try:
                updated = manager.update(
                    self.context, installed.replace(version=versions.default)
                )
            except NoIncrementalUpdateError as e:
                logger.info("%s; reinstalling %s", e, manager.name)
            else:
                updated = self._stamp(updated)
                self.db.replace_target(manager.name, updated)
                return ProfileOutcome(manager.name, updated, ProfileAction.UPDATE)

        return self._reinstall(manager, installed, target.replace(version=""))

    def _reinstall(
        self, manager: ProfileManager, installed: Target, requested: Target
    ) -> ProfileOutcome:
        """Uninstall then install, as the user would have done by hand.

        Variables given with the request replace the ones recorded at the
        previous install; without any, the recorded ones are kept.
        """
        manager.uninstall(self.context, installed)
        self.db.remove_target(manager.name, installed)
        user_env = requested.command_line_env or installed.command_line_env
        request = Target(
            arch=installed.arch,
            os=installed.os,
            version=requested.version,
            env=user_env,
            command_line_env=user_env,
        )
        try:
            reinstalled = self._do_install(manager, request)
        except ProfileError as e:
            raise ProfileError(f"reinstall after uninstall failed: {e}") from e
        return ProfileOutcome(manager.name, reinstalled, ProfileAction.REINSTALL)

    def _uninstall(self, manager: ProfileManager, target: Target) -> ProfileOutcome:
        installed = self._require_installed(manager.name, target, "uninstall")
        manager.uninstall(self.context, installed)
        self.db.remove_target(manager.name, installed)
        return ProfileOutcome(manager.name, installed, ProfileAction.UNINSTALL)

    def _do_install(self, manager: ProfileManager, target: Target) -> Target:
        version = manager.versions.select(target.version)
        installed = manager.install(self.context, target.replace(version=version))
        installed = self._stamp(installed)
        root = str(self.context.root / manager.name)
        self.db.add_target(manager.name, root, installed)
        return installed

    def _stamp(self, target: Target) -> Target:
        return target.replace(update_time=self._clock().isoformat())

    def _require_installed(self, name: str, target: Target, verb: str) -> Target:
        installed = self.db.lookup_target(name, target)
        if installed is None:
            raise ProfileStateError(
                f"cannot {verb} profile {name} for {target}: it is not installed"
            )
        return installed
