"""
CLI Application - typer commands.

Every command loads the JSON config, opens the workbook and the state
database, runs one SyncService operation and saves the workbook when the
operation changed it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from sheetsync.application.service import SyncService
from sheetsync.domain.errors import SheetSyncError
from sheetsync.domain.settings import SyncSettings
from sheetsync.infrastructure.config_loader import DEFAULT_CONFIG_FILE, ConfigLoader
from sheetsync.infrastructure.excel import WorksheetTable
from sheetsync.infrastructure.logging_config import setup_logging
from sheetsync.infrastructure.remote import HttpRecordClient
from sheetsync.infrastructure.sqlite import SqliteKeyValueStore
from sheetsync.interface.cli.formatters import (
    print_pull_report,
    print_push_report,
    print_reconcile_report,
    print_scan_results,
    print_status_summary,
)

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="sheetsync",
    help="Two-way sync between a CRM and an Excel mirror",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


class _Options:
    config_dir: Path = Path("config")
    config_file: str = DEFAULT_CONFIG_FILE


_options = _Options()


@app.callback()
def main_callback(
    config_dir: Path = typer.Option(Path("config"), "--config-dir", "-c", help="Directory holding sync_config.json."),
    config_file: str = typer.Option(DEFAULT_CONFIG_FILE, "--config", help="Config file name or path."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write a DEBUG log to this file."),
) -> None:
    """
    [bold]SheetSync[/bold] keeps an .xlsx mirror of CRM records in sync.

    Pull records, edit the workbook, then [cyan]scan[/cyan] and [cyan]push[/cyan]
    the rows that really changed.
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file)
    _options.config_dir = config_dir
    _options.config_file = config_file


def _load_settings() -> SyncSettings:
    return ConfigLoader(_options.config_dir).load_settings(_options.config_file)


@contextmanager
def _service(needs_client: bool = False, save: bool = True) -> Iterator[SyncService]:
    """Open the workbook and state store, yield a service, save on success."""
    try:
        settings = _load_settings()
        table = WorksheetTable.open(settings.workbook_path, settings.sheet_name)
        client = HttpRecordClient(settings.api) if needs_client else None
        with SqliteKeyValueStore(settings.state_db_path) as kv:
            yield SyncService(settings, table, kv, client)
            if save:
                table.save()
    except SheetSyncError as e:
        logger.error("%s", e)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def pull(
    filter_id: Optional[str] = typer.Option(None, "--filter", "-f", help="Saved filter id (overrides config)."),
) -> None:
    """Fetch records and rewrite the sheet. Unpushed edits are discarded."""
    with _service(needs_client=True) as service:
        report = service.pull(filter_id)
    print_pull_report(console, report)


@app.command()
def push() -> None:
    """Push every row marked [yellow]Modified[/yellow]."""
    with _service(needs_client=True) as service:
        report = service.push()
    print_push_report(console, report)
    if report.failed:
        raise typer.Exit(2)


@app.command()
def scan() -> None:
    """Detect cells edited in the workbook since the last pull/scan."""
    with _service() as service:
        results = service.scan()
    print_scan_results(console, results)


@app.command()
def reconcile() -> None:
    """Find the tracking column and clean stale copies of it."""
    with _service() as service:
        report = service.reconcile_columns()
    print_reconcile_report(console, report)


@app.command()
def enable(
    column: Optional[int] = typer.Option(None, "--column", min=1, help="Column number (default: after the data)."),
) -> None:
    """Install the [bold]Sync Status[/bold] column and start tracking."""
    with _service() as service:
        installed = service.enable_tracking(column)
    console.print(f"[green]Two-way sync enabled[/green] (tracking column {installed})")


@app.command()
def status() -> None:
    """Show row counts per sync status."""
    with _service(save=False) as service:
        summary = service.status_summary()
        errors = service.state.push_errors()
    print_status_summary(console, summary, errors)
