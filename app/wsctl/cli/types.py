"""Shared helpers for CLI commands.

This module provides the workspace, VCS and target lookups used across
multiple CLI command modules to avoid code duplication.
"""

import typer

from wsctl.core.workspace import Workspace, WorkspaceError
from wsctl.profiles.target import Target, TargetError
from wsctl.utils.formatting import print_error, print_info
from wsctl.vcs.git import GitClient


def require_workspace() -> Workspace:
    """Locate the workspace or exit with a helpful error message.

    Returns:
        Workspace named by WSCTL_ROOT, with its metadata directories created.

    Raises:
        typer.Exit: If the workspace root is missing or invalid.
    """
    try:
        workspace = Workspace.from_env()
        workspace.ensure_dirs()
    except WorkspaceError as e:
        print_error(str(e))
        print_info("Set WSCTL_ROOT to the absolute path of your workspace.")
        raise typer.Exit(code=1) from e
    return workspace


def require_git() -> GitClient:
    """Get a git client or exit if git is not installed.

    Raises:
        typer.Exit: If the git executable cannot be found.
    """
    if not GitClient.is_available():
        print_error("git is not installed or not on PATH.")
        raise typer.Exit(code=127)
    return GitClient()


def parse_targets(specs: list[str] | None, env: str = "") -> list[Target]:
    """Parse --target values, defaulting to the host target.

    Args:
        specs: Values given on the command line, "<arch>-<os>[@<version>]".
        env: Comma-separated KEY=VALUE assignments applied to every target.

    Returns:
        Parsed targets, in the order given.

    Raises:
        typer.Exit: If a target or the environment is malformed.
    """
    try:
        if not specs:
            return [Target.host(env)]
        return [Target.parse(spec, env) for spec in specs]
    except TargetError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
