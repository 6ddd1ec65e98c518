"""
Sync Service - Thin Orchestrator for Sync Operations.

Entry point for the CLI commands. Wires the engine components for one
sheet and runs pull/push/scan under the table-level operation guard.

Architecture Note:
    - Normalization is in application/normalizer.py
    - Status decisions are in application/change_tracker.py (pure rules in domain/)
    - Column drift handling is in application/column_tracker.py
    - Outbound payloads are in application/push_reconciler.py
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from sheetsync.application.change_tracker import ChangeTracker
from sheetsync.application.column_tracker import ColumnPositionTracker
from sheetsync.application.edit_detector import EditDetector
from sheetsync.application.field_paths import FieldPathResolver
from sheetsync.application.normalizer import ValueNormalizer
from sheetsync.application.payload_encoder import PayloadEncoder
from sheetsync.application.push_reconciler import PushReconciler
from sheetsync.application.state_store import TrackingStateStore
from sheetsync.domain.errors import (
    OperationInProgressError,
    SheetSyncError,
    TrackingColumnNotFoundError,
)
from sheetsync.domain.models import (
    EditEvent,
    PullReport,
    PushReport,
    ReconcileReport,
    TrackOutcome,
    TrackResult,
)
from sheetsync.domain.protocols import KeyValueStore, RecordClient, TabularStore
from sheetsync.domain.settings import SyncSettings
from sheetsync.domain.sync_status import SyncStatus

logger = logging.getLogger(__name__)


class SyncService:
    """
    Orchestrator for one mirrored sheet.

    Workflow:
    1. pull   - fetch records, rewrite the table, re-seed tracking state
    2. edits  - handle_edit() per event, or scan() for offline edits
    3. push   - send Modified rows, record Synced/Error
    """

    def __init__(
        self,
        settings: SyncSettings,
        table: TabularStore,
        kv: KeyValueStore,
        client: RecordClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.table = table
        self.client = client
        self.clock = clock

        self.state = TrackingStateStore(kv, table.name)
        self.normalizer = ValueNormalizer.from_settings(settings)
        self.resolver = FieldPathResolver(settings.labeled_groups, settings.nested_containers)
        self.encoder = PayloadEncoder.from_settings(settings)
        self.columns = ColumnPositionTracker(table, self.state, settings.columns, settings.tracker)
        self.tracker = ChangeTracker(
            table, self.state, self.normalizer, self.columns, settings.tracker, clock
        )
        self.detector = EditDetector(table, self.state, self.columns)
        logger.debug("SyncService initialized for '%s'", table.name)

    def _require_client(self) -> RecordClient:
        if self.client is None:
            raise SheetSyncError("No remote client configured (set api.api_token)")
        return self.client

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        """
        Hold the table-level operation flag for the duration of a block.

        Raises:
            OperationInProgressError: If another operation holds the flag
        """
        ttl = self.settings.tracker.operation_timeout_seconds
        if not self.state.begin_operation(name, self.clock(), ttl):
            running = self.state.current_operation() or "sync"
            raise OperationInProgressError(self.table.name, running)
        logger.debug("Operation '%s' started on '%s'", name, self.table.name)
        try:
            yield
        finally:
            self.state.end_operation()
            logger.debug("Operation '%s' finished on '%s'", name, self.table.name)

    # ========================================================================
    # Pull
    # ========================================================================

    def pull(self, filter_id: str | None = None) -> PullReport:
        """
        Rewrite the table from the remote and re-seed tracking state.

        Local Modified rows are overwritten; their count is reported.
        """
        client = self._require_client()
        fields = list(self.settings.columns.fields)
        report = PullReport()

        with self.operation("pull"):
            records = client.fetch_records(filter_id or self.settings.filter_id)
            report.records = len(records)

            self.columns.reconcile()
            report.discarded_modified = sum(
                1 for status in self.state.statuses().values() if status is SyncStatus.MODIFIED
            )
            if report.discarded_modified:
                logger.warning(
                    "Pull overwrites %d unpushed Modified rows", report.discarded_modified
                )

            for candidate in self.columns.find_candidates():
                if candidate.is_full_match:
                    self.columns.strip_column(candidate.column)

            self.table.clear_rows(2)
            for column in range(len(fields) + 1, self.table.max_column() + 1):
                self.table.set_cell(1, column, None)
            self.table.set_row(1, fields)

            for index, record in enumerate(records, start=2):
                row = [
                    self.encoder.decode(path, self.resolver.resolve_value(record, path))
                    for path in fields
                ]
                self.table.set_row(index, row)
            report.rows_written = len(records)

            self.state.reset_tracking()
            report.tracking_column = self.columns.install(len(fields) + 1)
            self.detector.capture()

        logger.info(
            "Pulled %d records into '%s' (tracking column %s)",
            report.records,
            self.table.name,
            report.tracking_column,
        )
        return report

    # ========================================================================
    # Push
    # ========================================================================

    def push(self) -> PushReport:
        """
        Push every Modified row.

        Raises:
            NoRowsToPushError: If nothing is Modified
            TrackingColumnNotFoundError: If the tracking column is gone
            OperationInProgressError: If a pull/push is already running
        """
        pusher = PushReconciler(
            self.table,
            self.state,
            self._require_client(),
            self.columns,
            self.resolver,
            self.encoder,
            self.settings.tracker,
        )
        with self.operation("push"):
            if self.columns.reconcile().authoritative is None:
                raise TrackingColumnNotFoundError()
            return pusher.push_all()

    # ========================================================================
    # Edits
    # ========================================================================

    def handle_edit(self, event: EditEvent) -> TrackResult:
        """Track a single cell edit; edits during a pull/push are ignored."""
        running = self.state.current_operation(
            self.clock(), self.settings.tracker.operation_timeout_seconds
        )
        if running:
            logger.debug("Edit ignored while '%s' is running", running)
            return TrackResult(outcome=TrackOutcome.IGNORED, reason=f"{running} in progress")
        return self.tracker.handle_edit(event)

    def scan(self) -> list[TrackResult]:
        """Detect offline edits in the workbook and track each of them."""
        with self.operation("scan"):
            if self.columns.reconcile().authoritative is None:
                raise TrackingColumnNotFoundError()
            events = self.detector.detect(timestamp=self.clock())
            results = [self.tracker.handle_edit(event) for event in events]
            self.detector.capture()

        changed = sum(1 for r in results if r.changed_status)
        logger.info("Scan tracked %d edits (%d status changes)", len(results), changed)
        return results

    # ========================================================================
    # Structure
    # ========================================================================

    def reconcile_columns(self) -> ReconcileReport:
        return self.columns.reconcile()

    def enable_tracking(self, column: int | None = None) -> int:
        """Install (or re-install) the tracking column and snapshot the sheet."""
        installed = self.columns.install(column)
        self.detector.capture()
        return installed

    def status_summary(self) -> dict[str, int]:
        """Row counts per status literal, plus failed pushes."""
        summary = {status.value: 0 for status in SyncStatus}
        for status in self.state.statuses().values():
            summary[status.value] += 1
        summary["push_errors"] = len(self.state.push_errors())
        return summary
