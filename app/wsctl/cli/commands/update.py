"""Update command implementation.

Resolves the root manifest and every manifest it imports, converges every
project checkout to the consolidated universe, and records the result in
the update history.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from wsctl.cli.display import create_results_table, print_failures, print_sync_summary
from wsctl.cli.types import require_git, require_workspace
from wsctl.core.history import HistoryError, UpdateHistory
from wsctl.core.manifest import ManifestError
from wsctl.core.projects import ProjectStateError
from wsctl.core.resolver import Resolver, VCSImportFetcher
from wsctl.core.sync import SyncAbortedError, SyncError, Synchronizer
from wsctl.core.workspace import Workspace, WorkspaceError
from wsctl.models.manifest import Manifest
from wsctl.utils.formatting import console, print_error, print_info
from wsctl.vcs.base import VCS, VCSError

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="update",
    help="Synchronize the workspace with its manifest.",
    invoke_without_command=True,
)


def resolve_universe(workspace: Workspace, vcs: VCS, source: Path) -> Manifest:
    """Resolve a manifest and its imports, exiting on failure.

    Shared by the update and rollback commands.

    Raises:
        typer.Exit: 1 for manifest errors, the git status for fetch
            failures, 130 if interrupted.
    """
    try:
        return Resolver(VCSImportFetcher(workspace, vcs)).resolve(source)
    except (ManifestError, WorkspaceError, ProjectStateError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except VCSError as e:
        print_error(f"Failed to fetch an imported manifest: {e}")
        raise typer.Exit(code=e.returncode) from e
    except KeyboardInterrupt:
        print_error("Interrupted while resolving imports.")
        raise typer.Exit(code=130) from None


def run_synchronization(
    workspace: Workspace,
    vcs: VCS,
    manifest: Manifest,
    *,
    gc: bool,
    jobs: int | None,
    verbose: bool = False,
) -> None:
    """Synchronize the workspace and print the outcome.

    Shared by the update and rollback commands.

    Args:
        workspace: Workspace to synchronize.
        vcs: Client used for every repository operation.
        manifest: Consolidated universe to converge to.
        gc: Remove checkouts that are no longer declared.
        jobs: Worker pool size; None uses the number of CPUs.
        verbose: Also list projects that were already current.

    Raises:
        typer.Exit: If any project failed or the run was interrupted.
    """
    synchronizer = Synchronizer(
        workspace, vcs, jobs=jobs, history=UpdateHistory(workspace.history_dir)
    )
    try:
        report = synchronizer.synchronize(manifest, gc=gc)
    except SyncError as e:
        if e.report.results:
            console.print(create_results_table(e.report, show_unchanged=verbose))
        print_failures(e.failures)
        print_error(f"{len(e.failures)} project(s) failed to synchronize.")
        raise typer.Exit(code=e.exit_code) from e
    except SyncAbortedError as e:
        print_error(str(e))
        raise typer.Exit(code=130) from e
    except (WorkspaceError, ManifestError, HistoryError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except VCSError as e:
        print_error(str(e))
        raise typer.Exit(code=e.returncode) from e

    if report.changed or verbose:
        console.print(create_results_table(report, show_unchanged=verbose))
    print_sync_summary(report)


@app.callback(invoke_without_command=True)
def update(
    ctx: typer.Context,
    gc: Annotated[
        bool,
        typer.Option(
            "--gc",
            help="Remove projects that are checked out but no longer declared.",
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
    """Synchronize the workspace with its manifest.

    Resolves the root manifest and all of its imports (fetching remote
    manifests as needed), then clones, updates, and moves projects so that
    the workspace matches. Undeclared projects are reported; with --gc
    they are removed unless they hold local work.

    Examples:
        wsctl update              # Synchronize
        wsctl update --gc         # Also remove undeclared projects
        wsctl update -j 4         # At most four projects at a time
    """
    if ctx.invoked_subcommand is not None:
        return

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    workspace = require_workspace()
    vcs = require_git()

    if not workspace.manifest_path.is_file():
        print_error(f"Manifest not found: {workspace.manifest_path}")
        print_info("Run 'wsctl import <manifest> <remote>' to create one.")
        raise typer.Exit(code=1)

    print_info("Resolving manifest imports...")
    universe = resolve_universe(workspace, vcs, workspace.manifest_path)

    logger.debug("Resolved %d project(s)", len(universe.projects))
    run_synchronization(workspace, vcs, universe, gc=gc, jobs=jobs, verbose=verbose)
