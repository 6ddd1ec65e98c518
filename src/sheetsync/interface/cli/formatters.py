"""
Result formatters for CLI commands.

Rich tables and one-line summaries; no logic beyond presentation.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from sheetsync.domain.models import (
    PullReport,
    PushReport,
    ReconcileReport,
    TrackOutcome,
    TrackResult,
)
from sheetsync.domain.sync_status import SyncStatus

STATUS_STYLES = {
    SyncStatus.NOT_MODIFIED.value: "dim",
    SyncStatus.MODIFIED.value: "yellow",
    SyncStatus.SYNCED.value: "green",
    SyncStatus.ERROR.value: "red",
}


def print_pull_report(console: Console, report: PullReport) -> None:
    console.print(
        f"[green]Pulled {report.records} records[/green] "
        f"({report.rows_written} rows written, tracking column {report.tracking_column})"
    )
    if report.discarded_modified:
        console.print(
            f"[yellow]{report.discarded_modified} unpushed Modified rows were overwritten[/yellow]"
        )


def print_push_report(console: Console, report: PushReport) -> None:
    console.print(
        f"Push: [green]{report.synced} synced[/green], "
        f"[red]{report.failed} failed[/red], {report.skipped} skipped"
    )
    if not report.failed:
        return

    table = Table(title="Failed rows")
    table.add_column("Row", justify="right")
    table.add_column("Record")
    table.add_column("Error", style="red")
    for outcome in report.errors():
        table.add_row(str(outcome.row), outcome.record_id, outcome.detail)
    console.print(table)


def print_scan_results(console: Console, results: list[TrackResult]) -> None:
    if not results:
        console.print("No edited cells found")
        return

    table = Table(title="Tracked edits")
    table.add_column("Record")
    table.add_column("Field")
    table.add_column("Outcome")
    table.add_column("Status")
    for result in results:
        status = result.status.value if result.status else ""
        outcome = result.outcome.value
        if result.outcome is TrackOutcome.IGNORED and result.reason:
            outcome = f"{outcome} ({result.reason})"
        table.add_row(
            result.record_id,
            result.field_name,
            outcome,
            f"[{STATUS_STYLES.get(status, 'white')}]{status}[/]" if status else "",
        )
    console.print(table)


def print_reconcile_report(console: Console, report: ReconcileReport) -> None:
    if report.authoritative is None:
        console.print("[red]Tracking column not found, re-enable two-way sync.[/red]")
        return

    console.print(f"Tracking column: [bold]{report.authoritative}[/bold]")
    if report.drift is not None:
        direction = "left" if report.drift.moved_left else "right"
        console.print(
            f"Moved {direction} from column {report.drift.moved_from} to {report.drift.moved_to}"
        )
    if report.cleaned_columns:
        console.print(f"Cleaned columns: {', '.join(map(str, report.cleaned_columns))}")
    if report.partial_matches:
        console.print(
            f"[yellow]Left untouched (partial match): "
            f"{', '.join(map(str, report.partial_matches))}[/yellow]"
        )


def print_status_summary(console: Console, summary: dict[str, int], errors: dict[str, str]) -> None:
    table = Table(title="Sync status")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    for status in SyncStatus:
        style = STATUS_STYLES[status.value]
        table.add_row(f"[{style}]{status.value}[/]", str(summary.get(status.value, 0)))
    console.print(table)

    if errors:
        console.print("[red]Last push errors:[/red]")
        for record_id, detail in sorted(errors.items()):
            console.print(f"  {record_id}: {detail}")
