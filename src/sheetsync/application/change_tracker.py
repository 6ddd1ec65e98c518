"""
Change Tracker - per-edit row status decisions.

Gathers the facts for one cell edit (row status, baselines, normalized
comparisons), asks the pure state machine what to do, and persists the
result. Every guard that can drop an event is applied here:

    - edits of the tracking column itself, the header row, metadata rows
      and rows without a record id
    - row lock held by a concurrent invocation (check-and-skip)
    - duplicate delivery of an already processed event
    - identical status written for the same cell within the debounce window
    - echoes of a value the row was just reverted to (undo cool-down)

Tracking must never break the host edit pipeline: unexpected errors are
logged and reported as a FAILED result with the status left unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from sheetsync.application.column_tracker import ColumnPositionTracker
from sheetsync.application.normalizer import ValueNormalizer, naive_form
from sheetsync.application.state_store import TrackingStateStore
from sheetsync.domain.field_value import json_safe
from sheetsync.domain.models import CellState, EditEvent, TrackOutcome, TrackResult
from sheetsync.domain.protocols import TabularStore
from sheetsync.domain.row_rules import is_blank, is_metadata_row, without_column
from sheetsync.domain.settings import TrackerSettings
from sheetsync.domain.state_machine import classify_edit
from sheetsync.domain.sync_status import SyncStatus

logger = logging.getLogger(__name__)


class ChangeTracker:
    """
    Applies edit events to the row status state machine.

    Usage:
        tracker = ChangeTracker(table, state, normalizer, columns, settings.tracker)
        result = tracker.handle_edit(EditEvent(row=5, column=3, old_value="a", new_value="b"))
    """

    def __init__(
        self,
        table: TabularStore,
        state: TrackingStateStore,
        normalizer: ValueNormalizer,
        columns: ColumnPositionTracker,
        settings: TrackerSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.table = table
        self.state = state
        self.normalizer = normalizer
        self.columns = columns
        self.settings = settings or TrackerSettings()
        self.clock = clock

    def handle_edit(self, event: EditEvent) -> TrackResult:
        """
        Decide the row status after one cell edit.

        Args:
            event: The edit as delivered by the host

        Returns:
            TrackResult describing the outcome; never raises
        """
        try:
            return self._handle(event)
        except Exception as e:  # must not crash the edit pipeline
            logger.exception("Edit at row %d column %d could not be tracked", event.row, event.column)
            return TrackResult(outcome=TrackOutcome.FAILED, reason=str(e))

    # ========================================================================
    # Guards
    # ========================================================================

    def _handle(self, event: EditEvent) -> TrackResult:
        tracking_column = self.columns.current_column()
        if tracking_column is None:
            return _ignored("tracking column not found")
        if event.column == tracking_column:
            return _ignored("tracking column edit")
        if event.row <= 1:
            return _ignored("header row")

        values = self.table.get_row(event.row)
        if is_metadata_row(
            without_column(values, tracking_column),
            self.settings.metadata_markers,
            self.settings.metadata_min_filled_cells,
        ):
            return _ignored("metadata row")

        if event.column == self.columns.columns.id_column:
            return _ignored("record id column")

        record_id = self.columns.record_id(values)
        if not record_id:
            return _ignored("no record id")

        header = self.table.get_cell(1, event.column)
        if is_blank(header):
            return _ignored("column without header", record_id)
        field_name = str(header).strip()

        now = self.clock()
        if not self.state.acquire_lock(record_id, now, self.settings.debounce_seconds):
            logger.debug("Row %s is locked, skipping edit of %s", record_id, field_name)
            return _ignored("row locked", record_id, field_name)

        try:
            return self._apply(event, record_id, field_name, tracking_column, now)
        finally:
            self.state.release_lock(record_id)

    # ========================================================================
    # Transition
    # ========================================================================

    def _apply(
        self,
        event: EditEvent,
        record_id: str,
        field_name: str,
        tracking_column: int,
        now: float,
    ) -> TrackResult:
        cell = self.state.get_cell_state(record_id, field_name)
        if cell is not None and cell.last_event_id == event.event_id:
            return _ignored("duplicate event", record_id, field_name)

        if (
            cell is not None
            and cell.is_undone
            and cell.is_active(now)
            and naive_form(event.new_value) == naive_form(cell.reverted_value)
        ):
            return _ignored("undo cool-down", record_id, field_name)

        current_status = self.state.get_status(record_id) or SyncStatus.from_string(
            self.table.get_cell(event.row, tracking_column)
        )
        originals = self.state.get_originals(record_id)
        has_baseline = field_name in originals
        matches_baseline = has_baseline and self.normalizer.equivalent(
            event.new_value, originals[field_name], field_name
        )
        all_fields_match = matches_baseline and self._all_fields_match(
            event.row, originals, field_name, event.new_value
        )

        transition = classify_edit(
            current_status=current_status,
            is_unchanged=naive_form(event.old_value) == naive_form(event.new_value),
            has_baseline=has_baseline,
            matches_baseline=matches_baseline,
            all_fields_match=all_fields_match,
        )

        if transition.outcome is TrackOutcome.UNCHANGED:
            logger.debug("Value of %s on %s rewritten unchanged", field_name, record_id)
            return TrackResult(
                outcome=transition.outcome,
                status=current_status,
                record_id=record_id,
                field_name=field_name,
            )

        new_status = transition.new_status
        if (
            cell is not None
            and not cell.is_undone
            and cell.status == new_status.value
            and not transition.capture_baseline
            and now - cell.last_changed_at < self.settings.debounce_seconds
        ):
            return _ignored("debounced", record_id, field_name)

        if transition.capture_baseline:
            originals[field_name] = json_safe(event.old_value)
            self.state.set_originals(record_id, originals)

        if transition.clear_baselines:
            self._mark_reverted(event, record_id, originals, field_name, now)
        else:
            self.state.set_cell_state(
                record_id,
                field_name,
                CellState(
                    status=new_status.value,
                    last_changed_at=now,
                    original_values=dict(originals),
                    last_event_id=event.event_id,
                    expires_at=now + self.settings.debounce_seconds,
                ),
            )

        if new_status is not current_status:
            self._write_status(event.row, tracking_column, record_id, new_status)

        logger.info("Row %s: %s (%s)", record_id, transition.outcome.value, field_name)
        return TrackResult(
            outcome=transition.outcome,
            status=new_status,
            record_id=record_id,
            field_name=field_name,
        )

    def _all_fields_match(
        self,
        row: int,
        originals: dict[str, Any],
        edited_field: str,
        edited_value: Any,
    ) -> bool:
        """Compare every baselined field with the row's live values."""
        header = self.table.header_row()
        positions = {
            str(name).strip(): index
            for index, name in enumerate(header, start=1)
            if not is_blank(name)
        }

        for field_name, baseline in originals.items():
            if field_name == edited_field:
                live = edited_value
            else:
                column = positions.get(field_name)
                if column is None:
                    logger.warning("Baseline column '%s' no longer exists, skipping", field_name)
                    continue
                live = self.table.get_cell(row, column)
            if not self.normalizer.equivalent(live, baseline, field_name):
                return False
        return True

    def _mark_reverted(
        self,
        event: EditEvent,
        record_id: str,
        originals: dict[str, Any],
        edited_field: str,
        now: float,
    ) -> None:
        """Clear baselines and arm the undo guard on every reverted field."""
        self.state.clear_originals(record_id)
        self.state.clear_cell_states(record_id)
        expires_at = now + self.settings.undo_cooldown_seconds
        for field_name, baseline in originals.items():
            self.state.set_cell_state(
                record_id,
                field_name,
                CellState(
                    status=SyncStatus.NOT_MODIFIED.value,
                    last_changed_at=now,
                    original_values=dict(originals),
                    is_undone=True,
                    last_event_id=event.event_id if field_name == edited_field else "",
                    expires_at=expires_at,
                    reverted_value=json_safe(event.new_value) if field_name == edited_field else baseline,
                ),
            )

    def _write_status(self, row: int, column: int, record_id: str, status: SyncStatus) -> None:
        self.state.set_status(record_id, status)
        self.table.set_cell(row, column, status.value)
        if status is SyncStatus.MODIFIED and self.state.get_push_error(record_id) is not None:
            self.state.clear_push_error(record_id)
            self.table.set_note(row, column, None)


def _ignored(reason: str, record_id: str = "", field_name: str = "") -> TrackResult:
    return TrackResult(
        outcome=TrackOutcome.IGNORED,
        record_id=record_id,
        field_name=field_name,
        reason=reason,
    )
