"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer

from wsctl import __version__
from wsctl.cli.commands import history, import_, profile, project, rollback, snapshot, update, which
from wsctl.core.workspace import Workspace, WorkspaceError

logger = logging.getLogger(__name__)

# Create main Typer app
app = typer.Typer(
    name="wsctl",
    help="Multi-repository workspace manager.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"wsctl version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """wsctl - Multi-repository workspace manager.

    Keep a tree of git repositories in line with a manifest that can
    import other manifests, and manage per-target build profiles.
    """
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose, quiet)

    # Tools installed in the workspace take precedence, unless WSCTL_PRESERVE_PATH is set
    try:
        Workspace.from_env().prepend_bin_to_path()
    except WorkspaceError as e:
        logger.debug("Not adjusting PATH: %s", e)


# Register commands
app.add_typer(update.app, name="update")
app.command(name="import")(import_.import_manifest)
app.add_typer(profile.app, name="profile")
app.add_typer(history.app, name="history")
app.add_typer(rollback.app, name="rollback")
app.command(name="snapshot")(snapshot.snapshot)
app.add_typer(project.app, name="project")
app.command(name="which")(which.which)


if __name__ == "__main__":
    app()
