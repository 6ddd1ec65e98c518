"""
Tests for per-edit row status tracking.

Every test starts from three rows with tracking installed in column 5:

    row 2: id 1, Homer Simpson, a@gmail.comm
    row 3: id 2, Marge Simpson
    row 4: id 3, Ned Flanders
"""

import pytest

from conftest import TRACKING_COLUMN, edit, fill_sheet
from sheetsync.application.service import SyncService
from sheetsync.domain.models import EditEvent, TrackOutcome
from sheetsync.domain.sync_status import SyncStatus

NAME, EMAIL, PHONE = 2, 3, 4


def status_cell(service, row=2):
    return service.table.get_cell(row, TRACKING_COLUMN)


class TestMarkModified:
    def test_first_edit_marks_row_modified(self, service, clock):
        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert result.status is SyncStatus.MODIFIED
        assert result.record_id == "1"
        assert result.field_name == "name"
        assert status_cell(service) == "Modified"
        assert service.state.get_status("1") is SyncStatus.MODIFIED
        assert service.state.get_originals("1") == {"name": "Homer Simpson"}

    def test_other_rows_untouched(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        assert status_cell(service, 3) == "Not modified"
        assert status_cell(service, 4) == "Not modified"

    def test_rewriting_same_value_is_unchanged(self, service, clock):
        result = edit(service, clock, 2, NAME, "Homer Simpson")

        assert result.outcome is TrackOutcome.UNCHANGED
        assert status_cell(service) == "Not modified"
        assert service.state.get_originals("1") == {}

    def test_domain_typo_fix_is_a_real_edit(self, service, clock):
        result = edit(service, clock, 2, EMAIL, "a@gmail.com")

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert status_cell(service) == "Modified"
        assert service.state.get_originals("1") == {"email": "a@gmail.comm"}

    def test_baseline_kept_across_edits(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        edit(service, clock, 2, NAME, "Homer Jay Simpson", advance=10)
        assert service.state.get_originals("1") == {"name": "Homer Simpson"}

    def test_synced_row_reenters_modified(self, service, clock):
        service.state.set_status("1", SyncStatus.SYNCED)
        service.table.set_cell(2, TRACKING_COLUMN, "Synced")

        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert status_cell(service) == "Modified"

    def test_error_note_cleared_on_new_edit(self, service, clock):
        service.state.set_status("1", SyncStatus.ERROR)
        service.state.set_push_error("1", "HTTP 400: bad email")
        service.table.set_cell(2, TRACKING_COLUMN, "Error")
        service.table.set_note(2, TRACKING_COLUMN, "Push failed: HTTP 400: bad email")

        edit(service, clock, 2, EMAIL, "homer@example.com")

        assert status_cell(service) == "Modified"
        assert service.state.get_push_error("1") is None
        assert service.table.get_note(2, TRACKING_COLUMN) == ""


class TestRevert:
    def test_typo_fix_then_undo_restores_not_modified(self, service, clock):
        edit(service, clock, 2, EMAIL, "a@gmail.com")
        result = edit(service, clock, 2, EMAIL, "a@gmail.comm")

        assert result.outcome is TrackOutcome.REVERTED
        assert result.status is SyncStatus.NOT_MODIFIED
        assert status_cell(service) == "Not modified"
        assert service.state.get_originals("1") == {}

    def test_revert_compares_normalized_values(self, service, clock):
        edit(service, clock, 2, PHONE, "15550100001")
        result = edit(service, clock, 2, PHONE, "+1 555 010 0001")

        assert result.outcome is TrackOutcome.REVERTED
        assert status_cell(service) == "Not modified"

    def test_partial_revert_stays_modified(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        edit(service, clock, 2, EMAIL, "homer@example.com", advance=10)

        result = edit(service, clock, 2, NAME, "Homer Simpson", advance=10)

        assert result.outcome is TrackOutcome.STILL_MODIFIED
        assert status_cell(service) == "Modified"

    @pytest.mark.parametrize("order", [(NAME, EMAIL), (EMAIL, NAME)])
    def test_undo_converges_in_any_order(self, service, clock, order):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        edit(service, clock, 2, EMAIL, "homer@example.com")
        originals = {NAME: "Homer Simpson", EMAIL: "a@gmail.comm"}

        first, second = order
        edit(service, clock, 2, first, originals[first])
        assert status_cell(service) == "Modified"

        result = edit(service, clock, 2, second, originals[second])
        assert result.outcome is TrackOutcome.REVERTED
        assert status_cell(service) == "Not modified"
        assert service.state.get_originals("1") == {}

    def test_undo_echo_is_ignored(self, service, clock):
        edit(service, clock, 2, EMAIL, "a@gmail.com")
        edit(service, clock, 2, EMAIL, "a@gmail.comm")

        clock.advance(1)
        echo = EditEvent(
            row=2, column=EMAIL, old_value="a@gmail.com", new_value="a@gmail.comm", timestamp=clock()
        )
        result = service.handle_edit(echo)

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "undo cool-down"
        assert status_cell(service) == "Not modified"

    def test_correction_reapplied_during_cool_down(self, service, clock):
        edit(service, clock, 2, EMAIL, "a@gmail.com")
        edit(service, clock, 2, EMAIL, "a@gmail.comm")

        result = edit(service, clock, 2, EMAIL, "a@gmail.com", advance=3)

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert status_cell(service) == "Modified"
        assert service.state.get_originals("1") == {"email": "a@gmail.comm"}

    def test_undo_guard_expires(self, service, clock):
        edit(service, clock, 2, EMAIL, "a@gmail.com")
        edit(service, clock, 2, EMAIL, "a@gmail.comm")

        result = edit(service, clock, 2, EMAIL, "a@gmail.com", advance=60)

        assert result.outcome is TrackOutcome.MARKED_MODIFIED
        assert status_cell(service) == "Modified"


class TestGuards:
    def test_duplicate_delivery_processed_once(self, service, clock):
        clock.advance(1)
        event = EditEvent(
            row=2, column=NAME, old_value="Homer Simpson", new_value="Homer J. Simpson", timestamp=clock()
        )
        service.table.set_cell(2, NAME, "Homer J. Simpson")

        first = service.handle_edit(event)
        second = service.handle_edit(event)

        assert first.outcome is TrackOutcome.MARKED_MODIFIED
        assert second.outcome is TrackOutcome.IGNORED
        assert second.reason == "duplicate event"
        assert status_cell(service) == "Modified"

    def test_same_status_within_window_is_debounced(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        result = edit(service, clock, 2, NAME, "Homer Jay Simpson", advance=1)

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "debounced"
        assert status_cell(service) == "Modified"

    def test_same_status_after_window_is_processed(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        result = edit(service, clock, 2, NAME, "Homer Jay Simpson", advance=6)
        assert result.outcome is TrackOutcome.STILL_MODIFIED

    def test_tracking_column_edit_ignored(self, service, clock):
        result = edit(service, clock, 2, TRACKING_COLUMN, "Synced")
        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "tracking column edit"
        assert service.state.get_status("1") is SyncStatus.NOT_MODIFIED

    def test_header_row_ignored(self, service, clock):
        result = edit(service, clock, 1, NAME, "full_name")
        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "header row"

    def test_record_id_column_ignored(self, service, clock):
        result = edit(service, clock, 2, 1, 99)
        assert result.reason == "record id column"

    @pytest.mark.parametrize(
        "row_values",
        [
            ["Last synced: 2024-05-01 10:00"],
            ["Updated by import", "x", "y", "z"],
            [7, "lonely"],
        ],
    )
    def test_metadata_rows_ignored(self, service, clock, row_values):
        service.table.set_row(6, row_values)
        result = edit(service, clock, 6, NAME, "changed")

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "metadata row"
        assert service.table.get_cell(6, TRACKING_COLUMN) is None

    def test_row_without_record_id_ignored(self, service, clock):
        service.table.set_row(6, [None, "Nobody", "n@x.com", "555"])
        result = edit(service, clock, 6, NAME, "Somebody")
        assert result.reason == "no record id"

    def test_column_without_header_ignored(self, service, clock):
        result = edit(service, clock, 2, 8, "stray note")
        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "column without header"

    def test_locked_row_skipped(self, service, clock):
        assert service.state.acquire_lock("1", clock(), 60)

        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "row locked"
        assert status_cell(service) == "Not modified"

    def test_lock_released_after_edit(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        assert service.state.acquire_lock("1", clock(), 60)

    def test_edits_ignored_during_operation(self, service, clock):
        service.state.begin_operation("push", clock(), 1800)

        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "push in progress"
        assert status_cell(service) == "Not modified"

    def test_stale_operation_flag_does_not_block(self, service, clock):
        service.state.begin_operation("pull", clock() - 4000, 1800)
        result = edit(service, clock, 2, NAME, "Homer J. Simpson")
        assert result.outcome is TrackOutcome.MARKED_MODIFIED

    def test_missing_tracking_column_ignored(self, settings, table, kv, clock):
        fill_sheet(table)
        service = SyncService(settings, table, kv, clock=clock)

        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.IGNORED
        assert result.reason == "tracking column not found"


class TestFailures:
    def test_internal_error_reported_not_raised(self, service, clock, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("state unavailable")

        monkeypatch.setattr(service.state, "get_cell_state", broken)

        result = edit(service, clock, 2, NAME, "Homer J. Simpson")

        assert result.outcome is TrackOutcome.FAILED
        assert "state unavailable" in result.reason
        assert status_cell(service) == "Not modified"

    def test_lock_released_after_failure(self, service, clock, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("state unavailable")

        monkeypatch.setattr(service.state, "get_cell_state", broken)
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        monkeypatch.undo()

        assert service.state.acquire_lock("1", clock(), 60)

    def test_removed_baseline_column_is_skipped(self, service, clock):
        edit(service, clock, 2, NAME, "Homer J. Simpson")
        edit(service, clock, 2, PHONE, "000", advance=10)
        service.table.set_cell(1, PHONE, None)

        result = edit(service, clock, 2, NAME, "Homer Simpson", advance=10)

        assert result.outcome is TrackOutcome.REVERTED
