"""
Push Reconciler.

Sends every Modified row back to the remote and records the outcome on
the row:

    success -> Synced (baselines, guards and previous error cleared)
    failure -> Error  (detail stored and attached as a note on the status cell)

Failures are per row; the batch always continues and each Modified row is
attempted exactly once per invocation. Rows without a record id are
skipped.
"""

from __future__ import annotations

import logging
from typing import Any

from sheetsync.application.column_tracker import ColumnPositionTracker
from sheetsync.application.field_paths import FieldPathResolver
from sheetsync.application.payload_encoder import DROP, PayloadEncoder
from sheetsync.application.state_store import TrackingStateStore
from sheetsync.domain.errors import NoRowsToPushError, TrackingColumnNotFoundError
from sheetsync.domain.models import ModifiedRow, PushOutcome, PushReport, PushState, UpdateResult
from sheetsync.domain.protocols import RecordClient, TabularStore
from sheetsync.domain.row_rules import is_blank, is_metadata_row, without_column
from sheetsync.domain.settings import TrackerSettings
from sheetsync.domain.state_machine import is_push_eligible, status_after_push
from sheetsync.domain.sync_status import ERROR_NOTE_PREFIX, SyncStatus

logger = logging.getLogger(__name__)


class PushReconciler:
    """
    Push Modified rows and apply the remote outcome.

    Usage:
        pusher = PushReconciler(table, state, client, columns, resolver, encoder)
        report = pusher.push_all()
    """

    def __init__(
        self,
        table: TabularStore,
        state: TrackingStateStore,
        client: RecordClient,
        columns: ColumnPositionTracker,
        resolver: FieldPathResolver,
        encoder: PayloadEncoder,
        tracker: TrackerSettings | None = None,
    ) -> None:
        self.table = table
        self.state = state
        self.client = client
        self.columns = columns
        self.resolver = resolver
        self.encoder = encoder
        self.tracker = tracker or TrackerSettings()

    # ========================================================================
    # Collection
    # ========================================================================

    def collect_modified_rows(self) -> list[ModifiedRow]:
        """
        Find every row whose status is Modified and build its payload.

        The persisted status wins; the status cell is consulted for rows
        the store does not know (e.g. a status picked from the dropdown).

        Raises:
            TrackingColumnNotFoundError: If no tracking column exists
        """
        tracking_column = self.columns.current_column()
        if tracking_column is None:
            raise TrackingColumnNotFoundError()

        header = self.table.header_row()
        rows: list[ModifiedRow] = []
        for row in range(2, self.table.max_row() + 1):
            values = self.table.get_row(row)
            if is_metadata_row(
                without_column(values, tracking_column),
                self.tracker.metadata_markers,
                self.tracker.metadata_min_filled_cells,
            ):
                continue

            record_id = self.columns.record_id(values)
            status = self.state.get_status(record_id) if record_id else None
            if status is None:
                status = SyncStatus.from_string(self.table.get_cell(row, tracking_column))
            if not is_push_eligible(status):
                continue

            rows.append(
                ModifiedRow(
                    row=row,
                    record_id=record_id,
                    field_map=self.build_field_map(header, values, tracking_column),
                )
            )

        logger.info("Found %d Modified rows in '%s'", len(rows), self.table.name)
        return rows

    def build_field_map(self, header: list[Any], values: list[Any], tracking_column: int) -> dict[str, Any]:
        """Fold every non-tracking, non-id column into one nested payload."""
        field_map: dict[str, Any] = {}
        id_column = self.columns.columns.id_column
        for column, name in enumerate(header, start=1):
            if column in (tracking_column, id_column) or is_blank(name):
                continue
            field_path = str(name).strip()
            value = values[column - 1] if column <= len(values) else None
            encoded = self.encoder.encode(field_path, value)
            if encoded is DROP:
                continue
            fragment = self.resolver.build_partial_record(field_path, encoded)
            self.resolver.merge_fragment(field_map, fragment)
        return field_map

    # ========================================================================
    # Push
    # ========================================================================

    def push(self, row: ModifiedRow) -> PushOutcome:
        """
        Push one row and record the outcome on it.

        Returns:
            PushOutcome (SYNCED, ERROR or SKIPPED)
        """
        if not row.record_id:
            logger.warning("Row %d has no record id, skipping", row.row)
            return PushOutcome(state=PushState.SKIPPED, row=row.row, detail="no record id")

        try:
            result = self.client.update_record(row.record_id, row.field_map)
        except Exception as e:  # transport failures become a per-row Error
            logger.exception("Push of record %s raised", row.record_id)
            result = UpdateResult(success=False, error=str(e) or type(e).__name__)

        status = status_after_push(result.success)
        tracking_column = self.columns.current_column()
        if tracking_column is None:
            raise TrackingColumnNotFoundError()

        self.state.set_status(row.record_id, status)
        self.table.set_cell(row.row, tracking_column, status.value)

        if result.success:
            self.state.reset_row(row.record_id)
            self.table.set_note(row.row, tracking_column, None)
            logger.info("Record %s synced", row.record_id)
            return PushOutcome(state=PushState.SYNCED, record_id=row.record_id, row=row.row)

        detail = result.error or "Unknown remote error"
        if result.status_code is not None:
            detail = f"HTTP {result.status_code}: {detail}"
        self.state.set_push_error(row.record_id, detail)
        self.table.set_note(row.row, tracking_column, ERROR_NOTE_PREFIX + detail)
        logger.error("Record %s push failed: %s", row.record_id, detail)
        return PushOutcome(state=PushState.ERROR, record_id=row.record_id, row=row.row, detail=detail)

    def push_all(self) -> PushReport:
        """
        Push every Modified row once.

        Raises:
            NoRowsToPushError: If no row is Modified
            TrackingColumnNotFoundError: If no tracking column exists
        """
        rows = self.collect_modified_rows()
        if not rows:
            raise NoRowsToPushError()

        report = PushReport()
        for row in rows:
            report.outcomes.append(self.push(row))

        logger.info(
            "Push finished: %d synced, %d failed, %d skipped",
            report.synced,
            report.failed,
            report.skipped,
        )
        return report
