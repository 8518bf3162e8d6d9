"""Fixtures for CLI command tests."""

from collections.abc import Iterator
from unittest.mock import patch

import pytest
from fakes import FakeVCS

GIT_USERS = (
    "wsctl.cli.commands.update.require_git",
    "wsctl.cli.commands.rollback.require_git",
    "wsctl.cli.commands.snapshot.require_git",
    "wsctl.cli.commands.project.require_git",
)


@pytest.fixture
def git(fake_vcs: FakeVCS) -> Iterator[FakeVCS]:
    """Make every command use the fake VCS instead of the git binary."""
    patchers = [patch(target, return_value=fake_vcs) for target in GIT_USERS]
    for patcher in patchers:
        patcher.start()
    yield fake_vcs
    for patcher in patchers:
        patcher.stop()
