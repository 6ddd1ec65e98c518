"""
Tests for pushing Modified rows and recording the outcome.
"""

import pytest

from conftest import TRACKING_COLUMN, edit
from sheetsync.application.push_reconciler import ERROR_NOTE_PREFIX, PushReconciler
from sheetsync.domain.errors import (
    NoRowsToPushError,
    OperationInProgressError,
    TrackingColumnNotFoundError,
)
from sheetsync.domain.models import PushState, UpdateResult
from sheetsync.domain.sync_status import SyncStatus


class TestPushSuccess:
    def test_modified_row_synced(self, service, clock, client):
        edit(service, clock, 2, 3, "homer@example.com")

        report = service.push()

        assert report.synced == 1
        assert report.failed == 0
        assert service.table.get_cell(2, TRACKING_COLUMN) == "Synced"
        assert service.state.get_status("1") is SyncStatus.SYNCED
        assert service.state.get_originals("1") == {}

    def test_payload_is_nested(self, service, clock, client):
        edit(service, clock, 2, 3, "homer@example.com")
        service.push()

        assert client.updates == [
            (
                "1",
                {
                    "name": "Homer Simpson",
                    "email": [{"value": "homer@example.com", "primary": True}],
                    "phone": [{"label": "mobile", "value": "+1 (555) 010-0001", "primary": True}],
                },
            )
        ]

    def test_only_modified_rows_pushed(self, service, clock, client):
        edit(service, clock, 3, 2, "Marjorie Simpson")
        service.push()
        assert [record_id for record_id, _ in client.updates] == ["2"]
        assert service.table.get_cell(2, TRACKING_COLUMN) == "Not modified"

    def test_status_cell_used_when_state_unknown(self, service, client):
        service.state.delete_status("3")
        service.table.set_cell(4, TRACKING_COLUMN, "Modified")

        report = service.push()

        assert report.synced == 1
        assert client.updates[0][0] == "3"

    def test_previous_error_note_cleared(self, service, clock, client):
        client.responses["1"] = UpdateResult(success=False, error="boom")
        edit(service, clock, 2, 2, "Homer J. Simpson")
        service.push()

        client.responses.clear()
        service.state.set_status("1", SyncStatus.MODIFIED)
        service.push()

        assert service.table.get_cell(2, TRACKING_COLUMN) == "Synced"
        assert service.table.get_note(2, TRACKING_COLUMN) == ""
        assert service.state.get_push_error("1") is None


class TestPushFailures:
    def test_remote_error_marks_row(self, service, clock, client):
        client.responses["1"] = UpdateResult(success=False, error="Invalid email", status_code=400)
        edit(service, clock, 2, 3, "not-an-email")

        report = service.push()

        assert report.failed == 1
        assert report.errors()[0].detail == "HTTP 400: Invalid email"
        assert service.table.get_cell(2, TRACKING_COLUMN) == "Error"
        assert service.table.get_note(2, TRACKING_COLUMN) == ERROR_NOTE_PREFIX + "HTTP 400: Invalid email"
        assert service.state.get_push_error("1") == "HTTP 400: Invalid email"
        assert service.status_summary()["push_errors"] == 1

    def test_transport_exception_becomes_row_error(self, service, clock, client):
        client.responses["1"] = ConnectionError("connection reset")
        edit(service, clock, 2, 3, "homer@example.com")

        report = service.push()

        assert report.outcomes[0].state is PushState.ERROR
        assert service.table.get_note(2, TRACKING_COLUMN) == "Push failed: connection reset"

    def test_batch_continues_after_failure(self, service, clock, client):
        client.responses["1"] = UpdateResult(success=False, error="locked record")
        edit(service, clock, 2, 2, "Homer J. Simpson")
        edit(service, clock, 3, 2, "Marjorie Simpson")

        report = service.push()

        assert report.failed == 1
        assert report.synced == 1
        assert [record_id for record_id, _ in client.updates] == ["1", "2"]
        assert service.table.get_cell(3, TRACKING_COLUMN) == "Synced"

    def test_row_without_record_id_skipped(self, service, client):
        service.table.set_row(5, [None, "Orphan", "o@x.com", "555", "Modified"])

        report = service.push()

        assert report.skipped == 1
        assert client.updates == []

    def test_nothing_to_push(self, service):
        with pytest.raises(NoRowsToPushError):
            service.push()

    def test_operation_flag_cleared_after_error(self, service):
        with pytest.raises(NoRowsToPushError):
            service.push()
        assert service.state.current_operation() is None

    def test_concurrent_operation_rejected(self, service, clock):
        service.state.begin_operation("pull", clock(), 1800)
        with pytest.raises(OperationInProgressError, match="pull"):
            service.push()
        assert service.state.current_operation() == "pull"

    def test_missing_tracking_column(self, service, clock):
        edit(service, clock, 2, 2, "Homer J. Simpson")
        service.columns.strip_column(TRACKING_COLUMN)

        with pytest.raises(TrackingColumnNotFoundError):
            service.push()


class TestFieldMap:
    def test_blank_and_reserved_columns_skipped(self, service):
        header = ["id", "name", None, "email", "Sync Status"]
        values = [1, "Ann", "stray", "ann@x.com", "Modified"]
        pusher = PushReconciler(
            service.table, service.state, None, service.columns, service.resolver, service.encoder
        )
        field_map = pusher.build_field_map(header, values, 5)

        assert field_map == {"name": "Ann", "email": [{"value": "ann@x.com", "primary": True}]}
