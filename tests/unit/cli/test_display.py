"""Unit tests for cli/display.py.

Tests for shared Rich display functions used by update and rollback.
"""

import io
from collections.abc import Callable

import pytest
from rich.console import Console
from wsctl.cli.display import create_results_table, print_failures, print_sync_summary
from wsctl.core.sync import OperationKind, ProjectFailure, ProjectResult, SyncReport
from wsctl.core.theme import get_theme
from wsctl.models.history import HistoryEntry


@pytest.fixture
def report() -> SyncReport:
    """A report with one result of several kinds."""
    return SyncReport(
        results=[
            ProjectResult("tools", "tools", OperationKind.CREATE, "cloned"),
            ProjectResult("lib", "lib", OperationKind.NULL),
            ProjectResult("old", "old", OperationKind.ORPHAN, "not declared"),
        ],
        history_entry=HistoryEntry("20261019T100000.000000Z"),
    )


def _capture_console_output(func: Callable[..., None], *args: object) -> str:
    """Capture Rich console output by temporarily replacing the consoles."""
    import wsctl.cli.display as display_mod
    import wsctl.utils.formatting as fmt_mod

    buf = io.StringIO()
    test_console = Console(theme=get_theme(), file=buf, color_system=None, width=120)

    originals = (display_mod.console, fmt_mod.console, fmt_mod.err_console)
    display_mod.console = test_console
    fmt_mod.console = test_console
    fmt_mod.err_console = test_console
    try:
        func(*args)
    finally:
        display_mod.console, fmt_mod.console, fmt_mod.err_console = originals

    return buf.getvalue()


class TestCreateResultsTable:
    """Tests for create_results_table."""

    def test_columns(self, report: SyncReport) -> None:
        """Table has Action, Project, Path and Detail columns."""
        table = create_results_table(report)

        assert [col.header for col in table.columns] == ["Action", "Project", "Path", "Detail"]

    def test_hides_unchanged(self, report: SyncReport) -> None:
        """Projects that were already current are hidden by default."""
        assert create_results_table(report).row_count == 2
        assert create_results_table(report, show_unchanged=True).row_count == 3

    def test_renders_rows(self, report: SyncReport) -> None:
        """Rows show the action and project name."""
        output = _capture_console_output(_print_table, report)

        assert "create" in output
        assert "orphan" in output
        assert "not declared" in output


def _print_table(report: SyncReport) -> None:
    import wsctl.cli.display as display_mod

    display_mod.console.print(create_results_table(report))


class TestPrintSyncSummary:
    """Tests for print_sync_summary."""

    def test_counts(self, report: SyncReport) -> None:
        """Changed runs print counts per action and the history entry."""
        output = _capture_console_output(print_sync_summary, report)

        assert "1 create" in output
        assert "1 orphan" in output
        assert "20261019T100000.000000Z" in output

    def test_nothing_changed(self) -> None:
        """A run without changes prints a single line."""
        report = SyncReport(results=[ProjectResult("lib", "lib", OperationKind.NULL)])

        output = _capture_console_output(print_sync_summary, report)

        assert "All 1 project(s) up to date." in output


class TestPrintFailures:
    """Tests for print_failures."""

    def test_one_line_per_failure(self) -> None:
        """Each failure is printed with its path and message."""
        failures = [
            ProjectFailure("a", "x/a", OperationKind.CREATE, "clone failed", 128),
            ProjectFailure("b", "b", OperationKind.UPDATE, "local branch"),
        ]

        output = _capture_console_output(print_failures, failures)

        assert "a (x/a): create: clone failed" in output
        assert "b (b): update: local branch" in output
