"""Profile commands.

This module provides the `wsctl profile` subcommands for installing,
updating, uninstalling, cleaning up and inspecting profiles.
"""

from collections.abc import Callable
from typing import Annotated

import typer

from wsctl.cli.types import parse_targets, require_workspace
from wsctl.core.workspace import Workspace
from wsctl.profiles import (
    ProfileContext,
    ProfileError,
    ProfileRegistry,
    ProfileStateError,
    Target,
    default_registry,
)
from wsctl.profiles.db import ProfileDB
from wsctl.profiles.lifecycle import (
    ProfileAction,
    ProfileBatchError,
    ProfileOutcome,
    ProfileService,
)
from wsctl.profiles.target import TargetError
from wsctl.utils.formatting import (
    console,
    create_table,
    print_error,
    print_info,
    print_success,
)

app = typer.Typer(
    name="profile",
    help="Manage installed profiles.",
    no_args_is_help=True,
)

_ACTION_STYLES = {
    ProfileAction.INSTALL: "created",
    ProfileAction.UPDATE: "updated",
    ProfileAction.REINSTALL: "updated",
    ProfileAction.UNINSTALL: "deleted",
    ProfileAction.UP_TO_DATE: "unchanged",
}

ProfileNames = Annotated[list[str], typer.Argument(help="Profiles to operate on.")]
TargetOption = Annotated[
    list[str] | None,
    typer.Option(
        "--target",
        "-t",
        help="Target as <arch>-<os>[@<version>]; may be repeated (default: host).",
    ),
]
EnvOption = Annotated[
    str,
    typer.Option(
        "--env",
        "-e",
        help="Comma-separated KEY=VALUE environment for the targets.",
    ),
]
FlagOption = Annotated[
    list[str] | None,
    typer.Option(
        "--flag",
        help="Profile-specific setting as <profile>.<key>=<value>; may be repeated.",
    ),
]
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        "-n",
        help="Show what would be done without changing anything.",
    ),
]


def _open_db(workspace: Workspace) -> ProfileDB:
    try:
        return ProfileDB.load(workspace.profile_manifest_path, workspace.lock_path("profiles"))
    except ProfileError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def _build_service(
    workspace: Workspace,
    flags: list[str] | None = None,
    dry_run: bool = False,
    registry: ProfileRegistry | None = None,
) -> ProfileService:
    """Assemble the profile service for a workspace.

    Raises:
        typer.Exit: If a flag is malformed or the profile manifest is unreadable.
    """
    registry = registry or default_registry()
    declared = registry.flags()
    try:
        for assignment in flags or []:
            declared.set(assignment)
    except ProfileError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    context = ProfileContext(root=workspace.profiles_root, flags=declared, dry_run=dry_run)
    return ProfileService(registry, _open_db(workspace), context)


def _print_outcomes(outcomes: list[ProfileOutcome], dry_run: bool) -> None:
    if not outcomes:
        return
    title = "Profiles (Dry Run)" if dry_run else "Profiles"
    table = create_table(title, "Action", "Profile", "Target", "Directory")
    for outcome in outcomes:
        style = _ACTION_STYLES[outcome.action]
        table.add_row(
            f"[{style}]{outcome.action.value}[/{style}]",
            f"[project]{outcome.profile}[/project]",
            str(outcome.target),
            f"[muted]{outcome.target.installation_dir}[/muted]",
        )
    console.print(table)


def _run_batch(service: ProfileService, batch: Callable[[], list[ProfileOutcome]]) -> None:
    """Run one batch and report it.

    Raises:
        typer.Exit: With code 1 if the batch failed, in whole or in part.
    """
    try:
        outcomes = batch()
    except ProfileBatchError as e:
        _print_outcomes(e.outcomes, service.context.dry_run)
        for failure in e.failures:
            print_error(
                f"{failure.action.value} {failure.profile} for {failure.target}: {failure.message}"
            )
        raise typer.Exit(code=1) from e
    except ProfileError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    _print_outcomes(outcomes, service.context.dry_run)
    if service.context.dry_run:
        print_info("Dry run: no changes made.")
    elif not outcomes:
        print_info("Nothing to do.")
    else:
        print_success(f"{len(outcomes)} profile operation(s) completed.")


@app.command()
def install(
    names: ProfileNames,
    target: TargetOption = None,
    env: EnvOption = "",
    flag: FlagOption = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Reinstall profiles that are already installed.",
        ),
    ] = False,
    dry_run: DryRunOption = False,
) -> None:
    """Install profiles for one or more targets.

    Installing a profile that is already installed for a target fails
    unless --force is given, in which case it is reinstalled.

    Examples:
        wsctl profile install native
        wsctl profile install sysroot --target arm64-linux --target amd64-linux
        wsctl profile install native --env CC=clang --flag native.cxx=clang++
    """
    workspace = require_workspace()
    targets = parse_targets(target, env)
    service = _build_service(workspace, flag, dry_run)
    _run_batch(service, lambda: service.install(names, targets, force=force))


@app.command()
def update(
    names: ProfileNames,
    target: TargetOption = None,
    env: EnvOption = "",
    flag: FlagOption = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Reinstall even profiles that are up to date.",
        ),
    ] = False,
    dry_run: DryRunOption = False,
) -> None:
    """Update installed profiles to their default versions.

    Without --target every installed target of each profile is updated.
    Profiles that cannot be updated in place are uninstalled and installed
    again.

    Examples:
        wsctl profile update native
        wsctl profile update sysroot --target arm64-linux
    """
    workspace = require_workspace()
    targets = parse_targets(target, env) if target else None
    service = _build_service(workspace, flag, dry_run)
    _run_batch(service, lambda: service.update(names, targets, force=force))


@app.command()
def uninstall(
    names: ProfileNames,
    target: TargetOption = None,
    all_targets: Annotated[
        bool,
        typer.Option(
            "--all-targets",
            help="Uninstall every installed target of the profiles.",
        ),
    ] = False,
    flag: FlagOption = None,
    dry_run: DryRunOption = False,
) -> None:
    """Uninstall profiles.

    Without --target the profiles are uninstalled for the host target.

    Examples:
        wsctl profile uninstall native
        wsctl profile uninstall sysroot --all-targets
    """
    if all_targets and target:
        print_error("--all-targets and --target cannot be combined.")
        raise typer.Exit(code=1)

    workspace = require_workspace()
    targets = None if all_targets else parse_targets(target)
    service = _build_service(workspace, flag, dry_run)
    _run_batch(service, lambda: service.uninstall(names, targets))


@app.command()
def cleanup(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Profiles to garbage-collect (default: all installed)."),
    ] = None,
    gc: Annotated[
        bool,
        typer.Option(
            "--gc",
            help="Uninstall targets installed at versions older than the default.",
        ),
    ] = False,
    rm_all: Annotated[
        bool,
        typer.Option(
            "--rm-all",
            help="Delete the profile manifest and everything under the profiles root.",
        ),
    ] = False,
    rewrite: Annotated[
        bool,
        typer.Option(
            "--rewrite-profiles-db",
            help="Rewrite the profile manifest in the current schema.",
        ),
    ] = False,
    dry_run: DryRunOption = False,
) -> None:
    """Clean up installed profiles.

    Exactly one of --gc, --rm-all and --rewrite-profiles-db must be given.
    Profile names are only accepted with --gc.

    Examples:
        wsctl profile cleanup --gc
        wsctl profile cleanup --gc sysroot
        wsctl profile cleanup --rm-all
    """
    if sum((gc, rm_all, rewrite)) != 1:
        print_error("Give exactly one of --gc, --rm-all and --rewrite-profiles-db.")
        raise typer.Exit(code=1)
    if names and not gc:
        print_error("Profile names can only be given with --gc.")
        raise typer.Exit(code=1)

    workspace = require_workspace()
    service = _build_service(workspace, dry_run=dry_run)

    if gc:
        _run_batch(service, lambda: service.collect_garbage(names or None))
        return

    try:
        if rm_all:
            service.remove_all()
        else:
            service.rewrite()
    except ProfileError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if dry_run:
        print_info("Dry run: no changes made.")
    elif rm_all:
        print_success(f"Removed all profiles under {workspace.profiles_root}.")
    else:
        print_success(f"Rewrote {service.db.path}.")


@app.command()
def available() -> None:
    """List the profiles that can be installed.

    Examples:
        wsctl profile available
    """
    registry = default_registry()
    table = create_table("Available Profiles", "Profile", "Versions", "Default", "Description")
    for manager in registry.managers():
        versions = manager.versions
        table.add_row(
            f"[project]{manager.name}[/project]",
            ", ".join(versions.ordered()),
            versions.default,
            manager.info,
        )
    console.print(table)

    flags = registry.flags()
    if flags.declared:
        flag_table = create_table("Profile Flags", "Flag", "Default", "Description")
        for name in sorted(flags.declared):
            declared = flags.declared[name]
            flag_table.add_row(name, declared.default or "[muted](empty)[/muted]", declared.help)
        console.print(flag_table)


@app.command("list")
def list_profiles(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Profiles to show (default: all installed)."),
    ] = None,
    show_manifest: Annotated[
        bool,
        typer.Option(
            "--show-manifest",
            help="Print the profile manifest file as it is stored.",
        ),
    ] = False,
) -> None:
    """List installed profiles and their targets.

    Examples:
        wsctl profile list
        wsctl profile list native
        wsctl profile list --show-manifest
    """
    workspace = require_workspace()
    path = workspace.profile_manifest_path

    if show_manifest:
        if not path.is_file():
            print_info(f"No profile manifest at {path}")
            return
        typer.echo(path.read_text(encoding="utf-8"), nl=False)
        return

    db = _open_db(workspace)
    registry = default_registry()
    selected = names or db.profiles()
    rows = [(name, target) for name in selected for target in db.targets(name)]
    if not rows:
        print_info("No profiles installed.")
        return

    table = create_table(
        "Installed Profiles", "Profile", "Target", "Status", "Updated", "Directory"
    )
    for name, target in rows:
        table.add_row(
            f"[project]{name}[/project]",
            str(target),
            _status(registry, name, target),
            target.update_time,
            f"[muted]{target.installation_dir}[/muted]",
        )
    console.print(table)


def _status(registry: ProfileRegistry, name: str, target: Target) -> str:
    if name not in registry:
        return "[warning]unsupported[/warning]"
    if registry.lookup(name).versions.is_older_than_default(target.version):
        return "[warning]out of date[/warning]"
    return "[success]up to date[/success]"


@app.command()
def env(
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            "-p",
            help="Installed profile.",
        ),
    ],
    variables: Annotated[
        list[str] | None,
        typer.Argument(help="Variables to print (default: all)."),
    ] = None,
    target: Annotated[
        str | None,
        typer.Option(
            "--target",
            "-t",
            help="Installed target as <arch>-<os>[@<version>] (default: host).",
        ),
    ] = None,
) -> None:
    """Print the environment of an installed profile.

    Each variable is printed as NAME="VALUE", so the output can be
    evaluated by a shell.

    Examples:
        wsctl profile env --profile native
        wsctl profile env --profile sysroot --target arm64-linux SYSROOT
    """
    workspace = require_workspace()
    try:
        wanted = Target.parse(target) if target else Target.host()
    except TargetError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    service = _build_service(workspace)
    try:
        values = service.env(profile, wanted, variables or [])
    except ProfileStateError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for name, value in values.items():
        typer.echo(f'{name}="{value}"')
