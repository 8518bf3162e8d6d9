"""Snapshot command implementation.

This module provides the `wsctl snapshot` command, which writes the
current state of the workspace as a manifest pinning every project to the
commit it is checked out at.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from wsctl.cli.types import require_git, require_workspace
from wsctl.core.history import HistoryError, UpdateHistory
from wsctl.core.manifest import ManifestError, save_manifest
from wsctl.core.projects import scan_local_projects
from wsctl.core.sync import capture_snapshot
from wsctl.core.workspace import WorkspaceError
from wsctl.models.manifest import Host, Tool
from wsctl.utils.formatting import print_error, print_success
from wsctl.vcs.base import VCSError

logger = logging.getLogger(__name__)


def _recorded_hosts_and_tools(history: UpdateHistory) -> tuple[list[Host], list[Tool]]:
    """Hosts and tools of the latest successful update, if there is one."""
    try:
        latest = history.latest()
        if latest is None:
            return [], []
        recorded = history.load(latest)
    except HistoryError as e:
        logger.warning("Not carrying over hosts and tools: %s", e)
        return [], []
    return recorded.hosts, recorded.tools


def snapshot(
    file: Annotated[Path, typer.Argument(help="Manifest file to write.")],
) -> None:
    """Write the current workspace state as a manifest.

    Every project found in the workspace is recorded at the commit it is
    checked out at. The result can be restored with
    'wsctl rollback --snapshot FILE'.

    Examples:
        wsctl snapshot release-1.4.toml
    """
    workspace = require_workspace()
    vcs = require_git()

    try:
        local = scan_local_projects(workspace)
        hosts, tools = _recorded_hosts_and_tools(UpdateHistory(workspace.history_dir))
        present = set(local)
        tools = [t for t in tools if t.project in present]
        pinned = capture_snapshot(workspace, vcs, local.values(), hosts, tools)
        save_manifest(pinned, file)
    except (WorkspaceError, ManifestError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except VCSError as e:
        print_error(str(e))
        raise typer.Exit(code=e.returncode) from e

    print_success(f"Wrote snapshot of {len(local)} project(s) to {file}")
