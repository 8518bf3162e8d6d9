"""Registry of supported profile managers.

The registry is an ordinary value built at startup and handed to whatever
needs to look managers up by name.
"""

import logging

from wsctl.profiles.base import ProfileFlags, ProfileManager, UnsupportedProfileError

logger = logging.getLogger(__name__)


class ProfileRegistry:
    """Maps profile names to their managers."""

    def __init__(self) -> None:
        self._managers: dict[str, ProfileManager] = {}

    def register(self, manager: ProfileManager) -> None:
        """Add a manager.

        Raises:
            ValueError: If a manager with the same name is already registered.
        """
        if manager.name in self._managers:
            msg = f"profile {manager.name} is already registered"
            raise ValueError(msg)
        logger.debug("Registered profile %s", manager.name)
        self._managers[manager.name] = manager

    def lookup(self, name: str) -> ProfileManager:
        """Find the manager for a profile.

        Raises:
            UnsupportedProfileError: If no manager is registered under that name.
        """
        try:
            return self._managers[name]
        except KeyError:
            supported = ", ".join(self.names()) or "none"
            raise UnsupportedProfileError(
                f"profile {name} is not supported; supported profiles: {supported}"
            ) from None

    def names(self) -> list[str]:
        """Registered profile names, sorted."""
        return sorted(self._managers)

    def managers(self) -> list[ProfileManager]:
        """Registered managers, sorted by name."""
        return [self._managers[name] for name in self.names()]

    def flags(self) -> ProfileFlags:
        """Collect the flags declared by every registered manager."""
        flags = ProfileFlags()
        for manager in self.managers():
            manager.add_flags(flags)
        return flags

    def __contains__(self, name: object) -> bool:
        return name in self._managers


def default_registry() -> ProfileRegistry:
    """Registry holding the built-in profile managers."""
    from wsctl.profiles.managers.native import NativeProfile
    from wsctl.profiles.managers.sysroot import SysrootProfile

    registry = ProfileRegistry()
    registry.register(NativeProfile())
    registry.register(SysrootProfile())
    return registry
