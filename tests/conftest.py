"""
Shared fixtures for SheetSync tests.

Provides an in-memory worksheet, an in-memory SQLite state store, a fake
remote client, a manual clock and a SyncService wired to all of them.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parents[1] / "src"))

import pytest

from sheetsync.application.service import SyncService
from sheetsync.domain.models import EditEvent, UpdateResult
from sheetsync.domain.settings import ColumnSettings, SyncSettings
from sheetsync.infrastructure.excel import WorksheetTable
from sheetsync.infrastructure.sqlite import SqliteKeyValueStore

HEADERS = ["id", "name", "email", "phone.mobile"]
TRACKING_COLUMN = 5

ROWS = [
    [1, "Homer Simpson", "a@gmail.comm", "+1 (555) 010-0001"],
    [2, "Marge Simpson", "marge@example.com", "555-0102"],
    [3, "Ned Flanders", "ned@example.com", "555-0103"],
]


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRecordClient:
    """In-memory RecordClient recording every update call."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.responses = {}
        self.updates = []
        self.fetch_calls = []

    def fetch_records(self, filter_id=None):
        self.fetch_calls.append(filter_id)
        return list(self.records)

    def update_record(self, record_id, field_map):
        self.updates.append((record_id, field_map))
        response = self.responses.get(record_id, UpdateResult(success=True, status_code=200))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def table():
    return WorksheetTable.in_memory("Persons")


@pytest.fixture
def kv():
    store = SqliteKeyValueStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def client():
    return FakeRecordClient()


@pytest.fixture
def settings():
    return SyncSettings(sheet_name="Persons", columns=ColumnSettings(fields=list(HEADERS)))


def fill_sheet(table, rows=ROWS, headers=HEADERS):
    table.set_row(1, list(headers))
    for index, row in enumerate(rows, start=2):
        table.set_row(index, list(row))


@pytest.fixture
def service(settings, table, kv, client, clock):
    """Service over a sheet with three rows and tracking enabled in column 5."""
    fill_sheet(table)
    svc = SyncService(settings, table, kv, client, clock=clock)
    svc.enable_tracking()
    return svc


def edit(svc, clock, row, column, new_value, advance=1.0):
    """Write a cell the way a person would and deliver the edit event."""
    clock.advance(advance)
    old_value = svc.table.get_cell(row, column)
    svc.table.set_cell(row, column, new_value)
    return svc.handle_edit(
        EditEvent(row=row, column=column, old_value=old_value, new_value=new_value, timestamp=clock())
    )
