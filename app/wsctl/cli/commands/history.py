"""History command for viewing recorded updates.

This module provides the `wsctl history` command for viewing the
snapshots recorded by successful updates.
"""

import json
from typing import Annotated

import typer
from rich.table import Table

from wsctl.cli.types import require_workspace
from wsctl.core.history import HistoryError, UpdateHistory
from wsctl.models.history import HistoryEntry
from wsctl.utils.formatting import console, print_error, print_info

app = typer.Typer(
    name="history",
    help="View the update history.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    show_all: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="List every recorded entry, not just the latest two.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the update history.

    Every successful 'wsctl update' records a snapshot of the universe it
    converged to. The latest and second-latest snapshots can be restored
    with 'wsctl rollback'.

    Examples:
        wsctl history              # Latest and second-latest entries
        wsctl history --all        # Every entry, newest first
        wsctl history --json       # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    workspace = require_workspace()
    update_history = UpdateHistory(workspace.history_dir)

    try:
        latest = update_history.latest()
        second_latest = update_history.second_latest()
        entries = update_history.entries() if show_all else []
    except HistoryError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not show_all:
        entries = [e for e in (latest, second_latest) if e is not None]

    if not entries:
        if json_output:
            typer.echo("[]")
        else:
            print_info("No update history recorded yet.")
        return

    labels: dict[str, str] = {}
    if latest is not None:
        labels[latest.id] = "latest"
    if second_latest is not None:
        labels[second_latest.id] = "second-latest"

    if json_output:
        _print_json(entries, labels, update_history)
    else:
        _print_table(entries, labels, update_history)


def _print_table(
    entries: list[HistoryEntry], labels: dict[str, str], update_history: UpdateHistory
) -> None:
    """Print history as Rich table.

    Args:
        entries: Entries to display, newest first.
        labels: Pointer names keyed by entry ID.
        update_history: History the entries belong to.
    """
    table = Table(title="Update History")
    table.add_column("ID", style="dim")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Pointer", style="green")
    table.add_column("Projects", style="white", justify="right")

    for entry in entries:
        table.add_row(
            entry.id,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            labels.get(entry.id, ""),
            _project_count(entry, update_history),
        )

    console.print(table)


def _print_json(
    entries: list[HistoryEntry], labels: dict[str, str], update_history: UpdateHistory
) -> None:
    """Print history as JSON for scripting."""
    data = []
    for entry in entries:
        item = entry.to_dict()
        item["pointer"] = labels.get(entry.id)
        item["path"] = str(update_history.entry_path(entry))
        data.append(item)
    typer.echo(json.dumps(data, indent=2))


def _project_count(entry: HistoryEntry, update_history: UpdateHistory) -> str:
    try:
        return str(len(update_history.load(entry).projects))
    except HistoryError:
        return "?"
