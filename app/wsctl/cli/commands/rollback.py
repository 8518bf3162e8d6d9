"""Rollback command implementation.

This module provides the `wsctl rollback` command, which synchronizes
the workspace to a universe recorded earlier: an update history entry or
a snapshot file.
"""

from pathlib import Path
from typing import Annotated

import typer

from wsctl.cli.commands.update import resolve_universe, run_synchronization
from wsctl.cli.types import require_git, require_workspace
from wsctl.core.history import HistoryError, UpdateHistory
from wsctl.utils.formatting import print_error, print_info

app = typer.Typer(
    name="rollback",
    help="Restore the workspace to a recorded state.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def rollback(
    ctx: typer.Context,
    second_latest: Annotated[
        bool,
        typer.Option(
            "--second-latest",
            help="Restore the state before the most recent update.",
        ),
    ] = False,
    snapshot: Annotated[
        Path | None,
        typer.Option(
            "--snapshot",
            "-s",
            help="Restore the state recorded in a snapshot file.",
        ),
    ] = None,
    gc: Annotated[
        bool,
        typer.Option(
            "--gc",
            help="Remove projects that the restored state does not declare.",
        ),
    ] = False,
    jobs: Annotated[
        int | None,
        typer.Option(
            "--jobs",
            "-j",
            min=1,
            help="Number of projects to process concurrently (default: CPU count).",
        ),
    ] = None,
) -> None:
    """Restore the workspace to a recorded state.

    By default the state recorded by the latest successful update is
    restored, which repairs a workspace left behind by a failed update.
    A successful rollback is itself recorded in the update history.

    Examples:
        wsctl rollback                          # Latest recorded state
        wsctl rollback --second-latest          # State before the last update
        wsctl rollback --snapshot release.toml  # A snapshot file
    """
    if ctx.invoked_subcommand is not None:
        return

    if second_latest and snapshot is not None:
        print_error("--second-latest and --snapshot cannot be combined.")
        raise typer.Exit(code=1)

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    workspace = require_workspace()
    vcs = require_git()

    if snapshot is not None:
        source = snapshot.resolve()
    else:
        update_history = UpdateHistory(workspace.history_dir)
        try:
            entry = update_history.second_latest() if second_latest else update_history.latest()
        except HistoryError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e
        if entry is None:
            which = "second-latest" if second_latest else "latest"
            print_error(f"No {which} update recorded.")
            raise typer.Exit(code=1)
        source = update_history.entry_path(entry)

    print_info(f"Restoring {source}")
    universe = resolve_universe(workspace, vcs, source)
    run_synchronization(workspace, vcs, universe, gc=gc, jobs=jobs, verbose=verbose)
