"""Project commands for inspecting and resetting local checkouts.

This module provides the `wsctl project` subcommands.
"""

import re
from pathlib import Path
from typing import Annotated

import typer

from wsctl.cli.types import require_git, require_workspace
from wsctl.core.manifest import ManifestError
from wsctl.core.projects import (
    CheckoutState,
    clean_checkout,
    inspect_checkout,
    scan_local_projects,
)
from wsctl.core.workspace import Workspace, WorkspaceError
from wsctl.models.manifest import Project
from wsctl.utils.formatting import (
    console,
    create_table,
    print_error,
    print_info,
    print_success,
    short_revision,
)
from wsctl.vcs.base import VCS, VCSError

app = typer.Typer(
    name="project",
    help="Inspect projects checked out in the workspace.",
    no_args_is_help=True,
)


def _scan(workspace: Workspace) -> dict[str, Project]:
    try:
        return scan_local_projects(workspace)
    except (WorkspaceError, ManifestError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@app.command("list")
def list_projects(
    remote: Annotated[
        bool,
        typer.Option(
            "--remote",
            "-r",
            help="Show the remote of each project.",
        ),
    ] = False,
) -> None:
    """List local projects and the revisions they are checked out at.

    Examples:
        wsctl project list
        wsctl project list --remote
    """
    workspace = require_workspace()
    vcs = require_git()

    projects = _scan(workspace)
    if not projects:
        print_info("No projects found in the workspace.")
        return

    columns = ["Project", "Path", "Revision", "Branch"]
    if remote:
        columns.append("Remote")
    table = create_table("Projects", *columns)

    for name in sorted(projects):
        project = projects[name]
        directory = workspace.project_dir(project.path)
        try:
            revision = short_revision(vcs.current_revision(directory))
            branch = vcs.current_branch(directory) or "(detached)"
        except VCSError as e:
            revision = "[error]unknown[/error]"
            branch = f"[muted]{e}[/muted]"
        row = [
            f"[project]{name}[/project]",
            project.path,
            f"[revision]{revision}[/revision]",
            branch,
        ]
        if remote:
            row.append(project.remote)
        table.add_row(*row)

    console.print(table)


def _containing(workspace: Workspace, projects: dict[str, Project], cwd: Path) -> Project | None:
    """The project whose checkout holds cwd; the innermost one wins."""
    found = None
    for project in projects.values():
        directory = workspace.project_dir(project.path).resolve()
        if cwd == directory or directory in cwd.parents:
            if found is None or len(project.path) > len(found.path):
                found = project
    return found


def _match(projects: dict[str, Project], patterns: list[str]) -> list[Project]:
    try:
        regexps = [re.compile(p) for p in patterns]
    except re.error as e:
        print_error(f"Invalid project pattern: {e}")
        raise typer.Exit(code=1) from e
    return [projects[n] for n in sorted(projects) if any(r.search(n) for r in regexps)]


def _describe(state: CheckoutState) -> str:
    if state.pristine:
        return "[success]clean[/success]"
    notes = []
    if state.uncommitted:
        notes.append("uncommitted changes")
    if state.untracked:
        notes.append("untracked files")
    if state.local_work:
        notes.append("branches: " + ", ".join(state.local_work))
    if state.branch is not None and not notes:
        notes.append(f"on branch {state.branch}")
    return "[warning]" + "; ".join(notes) + "[/warning]"


@app.command()
def info(
    patterns: Annotated[
        list[str] | None,
        typer.Argument(
            help="Regular expressions matched against project names "
            "(default: the project containing the current directory)."
        ),
    ] = None,
) -> None:
    """Show the state of local projects.

    Examples:
        wsctl project info
        wsctl project info 'tools|third_party'
    """
    workspace = require_workspace()
    vcs = require_git()
    projects = _scan(workspace)

    if patterns:
        selected = _match(projects, patterns)
        if not selected:
            print_info("No projects match.")
            return
    else:
        current = _containing(workspace, projects, Path.cwd().resolve())
        if current is None:
            print_error("The current directory is not inside a project; name one or more.")
            raise typer.Exit(code=1)
        selected = [current]

    failed = False
    for project in selected:
        directory = workspace.project_dir(project.path)
        try:
            state = inspect_checkout(vcs, project, directory)
        except VCSError as e:
            print_error(f"{project.name}: {e}")
            failed = True
            continue
        table = create_table(project.name, "Field", "Value")
        table.add_row("Path", project.path)
        table.add_row("Remote", project.remote)
        table.add_row("Revision", f"[revision]{state.revision}[/revision]")
        table.add_row("Branch", state.branch or "(detached)")
        table.add_row("Branches", ", ".join(state.branches) or "[muted](none)[/muted]")
        table.add_row("Status", _describe(state))
        console.print(table)

    if failed:
        raise typer.Exit(code=1)


def _clean_one(vcs: VCS, workspace: Workspace, project: Project, branches: bool) -> bool:
    try:
        clean_checkout(vcs, project, workspace.project_dir(project.path), branches)
    except (VCSError, OSError) as e:
        print_error(f"Failed to clean {project.name}: {e}")
        return False
    return True


@app.command()
def clean(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Projects to clean (default: all local projects)."),
    ] = None,
    branches: Annotated[
        bool,
        typer.Option(
            "--branches",
            help="Also delete local branches other than the tracked one.",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show which projects would be cleaned.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Restore projects to their declared revisions, discarding local changes.

    Uncommitted changes and untracked files are lost. Local branches are
    kept unless --branches is given.

    Examples:
        wsctl project clean tools
        wsctl project clean --branches --yes
    """
    workspace = require_workspace()
    vcs = require_git()
    projects = _scan(workspace)

    unknown = sorted(set(names or []) - set(projects))
    if unknown:
        print_error("Not a local project: " + ", ".join(unknown))
        raise typer.Exit(code=1)
    selected = [projects[n] for n in sorted(set(names or projects))]
    if not selected:
        print_info("No projects found in the workspace.")
        return

    title = "Projects to Clean (Dry Run)" if dry_run else "Projects to Clean"
    table = create_table(title, "Project", "Path")
    for project in selected:
        table.add_row(f"[project]{project.name}[/project]", project.path)
    console.print(table)

    if dry_run:
        print_info("Dry run: no changes made.")
        return
    if not yes:
        confirmed = typer.confirm(
            f"\nDiscard local changes in {len(selected)} project(s)?",
            default=False,
        )
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)

    cleaned = [p for p in selected if _clean_one(vcs, workspace, p, branches)]
    if len(cleaned) != len(selected):
        raise typer.Exit(code=1)
    print_success(f"{len(cleaned)} project(s) cleaned.")
