"""
Tests for the sync service workflows: pull, scan, status summary.
"""

import pytest

from conftest import HEADERS, TRACKING_COLUMN, edit, fill_sheet
from sheetsync.application.edit_detector import diff_snapshots
from sheetsync.application.service import SyncService
from sheetsync.domain.errors import (
    OperationInProgressError,
    SheetSyncError,
    TrackingColumnNotFoundError,
)
from sheetsync.domain.models import TrackOutcome
from sheetsync.domain.sync_status import SyncStatus

REMOTE_RECORDS = [
    {
        "id": 1,
        "name": "Homer Simpson",
        "email": [{"label": "work", "value": "homer@plant.com", "primary": True}],
        "phone": [{"label": "mobile", "value": "555-0001", "primary": True}],
    },
    {
        "id": 4,
        "name": "Apu Nahasapeemapetilon",
        "email": [{"label": "work", "value": "apu@kwikemart.com", "primary": True}],
        "phone": [],
    },
]


class TestPull:
    def test_rewrites_sheet(self, service, client):
        client.records = REMOTE_RECORDS

        report = service.pull()

        assert report.records == 2
        assert report.rows_written == 2
        assert report.tracking_column == TRACKING_COLUMN
        assert service.table.header_row()[:5] == HEADERS + ["Sync Status"]
        assert service.table.get_row(2)[:5] == [1, "Homer Simpson", "homer@plant.com", "555-0001", "Not modified"]
        assert service.table.get_row(3)[:5] == [4, "Apu Nahasapeemapetilon", "apu@kwikemart.com", None, "Not modified"]
        assert service.table.max_row() == 3
        assert service.state.get_status("4") is SyncStatus.NOT_MODIFIED

    def test_unpushed_edits_are_discarded(self, service, clock, client):
        client.records = REMOTE_RECORDS
        edit(service, clock, 2, 2, "Homer J. Simpson")

        report = service.pull()

        assert report.discarded_modified == 1
        assert service.table.get_cell(2, 2) == "Homer Simpson"
        assert service.state.get_originals("1") == {}
        assert service.state.statuses() == {"1": SyncStatus.NOT_MODIFIED, "4": SyncStatus.NOT_MODIFIED}

    def test_filter_passed_to_client(self, service, client):
        service.pull("42")
        assert client.fetch_calls == ["42"]

    def test_single_tracking_column_after_pull(self, service, client):
        client.records = REMOTE_RECORDS
        service.enable_tracking(7)

        service.pull()

        assert [c.column for c in service.columns.find_candidates()] == [TRACKING_COLUMN]

    def test_requires_client(self, settings, table, kv, clock):
        fill_sheet(table)
        service = SyncService(settings, table, kv, clock=clock)
        with pytest.raises(SheetSyncError, match="remote client"):
            service.pull()

    def test_rejected_while_push_running(self, service, clock):
        service.state.begin_operation("push", clock(), 1800)
        with pytest.raises(OperationInProgressError):
            service.pull()

    def test_edits_after_pull_are_tracked(self, service, clock, client):
        client.records = REMOTE_RECORDS
        service.pull()

        result = edit(service, clock, 3, 3, "apu@example.com")

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert service.table.get_cell(3, TRACKING_COLUMN) == "Modified"


class TestScan:
    def test_offline_edits_detected(self, service):
        service.table.set_cell(2, 3, "a@gmail.com")
        service.table.set_cell(3, 2, "Marjorie Simpson")

        results = service.scan()

        assert [(r.record_id, r.field_name, r.outcome) for r in results] == [
            ("1", "email", TrackOutcome.MARKED_MODIFIED),
            ("2", "name", TrackOutcome.MARKED_MODIFIED),
        ]
        assert service.table.get_cell(2, TRACKING_COLUMN) == "Modified"
        assert service.table.get_cell(3, TRACKING_COLUMN) == "Modified"

    def test_second_scan_is_quiet(self, service):
        service.table.set_cell(2, 3, "a@gmail.com")
        service.scan()
        assert service.scan() == []

    def test_offline_undo_detected(self, service, clock):
        service.table.set_cell(2, 3, "a@gmail.com")
        service.scan()

        clock.advance(1)
        service.table.set_cell(2, 3, "a@gmail.comm")
        results = service.scan()

        assert results[0].outcome is TrackOutcome.REVERTED
        assert service.table.get_cell(2, TRACKING_COLUMN) == "Not modified"

    def test_new_rows_produce_no_events(self, service):
        service.table.set_row(5, [9, "Moe Szyslak", "moe@tavern.com", "555-0109"])
        assert service.scan() == []

    def test_reordered_rows_produce_no_events(self, service):
        row2 = service.table.get_row(2)
        row3 = service.table.get_row(3)
        service.table.set_row(2, row3)
        service.table.set_row(3, row2)
        assert service.scan() == []

    def test_requires_tracking_column(self, settings, table, kv, clock):
        fill_sheet(table)
        service = SyncService(settings, table, kv, clock=clock)
        with pytest.raises(TrackingColumnNotFoundError):
            service.scan()
        assert service.state.current_operation() is None


class TestSnapshotDiff:
    def test_changes_and_membership(self):
        old = {"1": {"name": "Homer", "email": "a@x.com"}, "2": {"name": "Marge"}}
        new = {"1": {"name": "Homer", "email": "b@x.com", "phone": "555"}, "3": {"name": "Moe"}}

        diff = diff_snapshots(old, new)

        assert [(c.record_id, c.field_name, c.old_value, c.new_value) for c in diff] == [
            ("1", "email", "a@x.com", "b@x.com")
        ]
        assert diff.added_records == ["3"]
        assert diff.removed_records == ["2"]

    def test_blank_and_none_are_equal(self):
        assert len(diff_snapshots({"1": {"name": None}}, {"1": {"name": ""}})) == 0

    def test_numbers_compare_as_text(self):
        assert len(diff_snapshots({"1": {"n": 5}}, {"1": {"n": "5"}})) == 0


class TestStatusSummary:
    def test_counts(self, service, clock, client):
        edit(service, clock, 2, 2, "Homer J. Simpson")
        edit(service, clock, 3, 2, "Marjorie Simpson")
        service.state.set_status("3", SyncStatus.SYNCED)

        summary = service.status_summary()

        assert summary == {
            "Not modified": 0,
            "Modified": 2,
            "Synced": 1,
            "Error": 0,
            "push_errors": 0,
        }
