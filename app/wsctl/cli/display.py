"""Shared Rich display functions for synchronization results.

Provides the result table and summary printed by the commands that
synchronize the workspace (update, rollback).
"""

from rich.table import Table

from wsctl.core.sync import OperationKind, ProjectFailure, SyncReport
from wsctl.utils.formatting import console, print_error, print_success

_KIND_STYLES = {
    OperationKind.CREATE: "created",
    OperationKind.MOVE: "updated",
    OperationKind.UPDATE: "updated",
    OperationKind.NULL: "unchanged",
    OperationKind.DELETE: "deleted",
    OperationKind.ORPHAN: "warning",
}


def create_results_table(report: SyncReport, show_unchanged: bool = False) -> Table:
    """Create a Rich table displaying what happened to each project.

    Args:
        report: Synchronization report.
        show_unchanged: Include projects that were already current.

    Returns:
        Rich Table with Action, Project, Path and Detail columns.
    """
    table = Table(
        title="Projects",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Action", width=8)
    table.add_column("Project", no_wrap=True)
    table.add_column("Path")
    table.add_column("Detail")

    for result in sorted(report.results, key=lambda r: r.path):
        if result.kind == OperationKind.NULL and not show_unchanged:
            continue
        style = _KIND_STYLES[result.kind]
        table.add_row(
            f"[{style}]{result.kind.value}[/{style}]",
            f"[project]{result.name}[/project]",
            result.path,
            f"[muted]{result.detail}[/muted]",
        )

    return table


def print_sync_summary(report: SyncReport) -> None:
    """Print counts per action, or a single line when nothing changed."""
    if not report.changed:
        print_success(f"All {len(report.results)} project(s) up to date.")
    else:
        parts = []
        for kind in OperationKind:
            count = len(report.by_kind(kind))
            if count:
                parts.append(f"[{_KIND_STYLES[kind]}]{count} {kind.value}[/{_KIND_STYLES[kind]}]")
        console.print(f"\nSummary: {', '.join(parts)}")

    if report.history_entry is not None:
        console.print(f"[muted]Recorded update history entry {report.history_entry.id}[/muted]")


def print_failures(failures: list[ProjectFailure]) -> None:
    """Print one error line per failed project."""
    for failure in failures:
        print_error(f"{failure.name} ({failure.path}): {failure.kind.value}: {failure.message}")
