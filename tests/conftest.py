"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest
from fakes import FakeVCS, FixedClock
from wsctl.core.workspace import Workspace


@pytest.fixture
def fake_vcs() -> FakeVCS:
    """An empty in-memory VCS."""
    return FakeVCS()


@pytest.fixture
def clock() -> FixedClock:
    """Deterministic clock."""
    return FixedClock()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Workspace:
    """An empty workspace named by WSCTL_ROOT."""
    root = tmp_path / "ws"
    root.mkdir()
    monkeypatch.setenv("WSCTL_ROOT", str(root))
    monkeypatch.setenv("WSCTL_PRESERVE_PATH", "1")
    ws = Workspace.at(root)
    ws.ensure_dirs()
    return ws
