"""
Column Position Tracker.

Locates the tracking (sync status) column, notices when structural edits
moved it, and removes stale tracking artifacts left behind in other
columns.

Signatures of a tracking column:
    header   - header text equals the reserved label, or the header note
               mentions a sync marker
    artifact - sampled data cells hold only status literals, or the
               status validation list is attached

Rules:
    1. The right-most column carrying the reserved label, or else a header
       note backed by an artifact, is authoritative. A note alone is only
       a partial match.
    2. A non-authoritative column is fully cleaned only when it carries
       header AND artifact evidence.
    3. A column whose only evidence is the status validation list loses
       the validation and tracking fills; its cells are never touched.
    4. Anything else (e.g. a data column that happens to hold the four
       literals) is logged as a partial match and left alone.
    5. Moved left: sweep every non-authoritative column.
       Moved right: only the previously remembered column is cleaned.
    6. The authoritative column gets the status validation back if a
       structural edit left it behind.
"""

from __future__ import annotations

import logging

from sheetsync.application.state_store import TrackingStateStore
from sheetsync.domain.models import ColumnCandidate, Drift, ReconcileReport
from sheetsync.domain.protocols import TabularStore
from sheetsync.domain.row_rules import is_blank, is_metadata_row, without_column
from sheetsync.domain.settings import ColumnSettings, TrackerSettings
from sheetsync.domain.sync_status import (
    ERROR_NOTE_PREFIX,
    STATUS_LITERALS,
    SyncStatus,
    is_status_literal,
)

logger = logging.getLogger(__name__)


class ColumnPositionTracker:
    """
    Keeps exactly one authoritative tracking column.

    Usage:
        columns = ColumnPositionTracker(table, state, settings.columns, settings.tracker)
        report = columns.reconcile()
        columns.current_column()
    """

    def __init__(
        self,
        table: TabularStore,
        state: TrackingStateStore,
        columns: ColumnSettings | None = None,
        tracker: TrackerSettings | None = None,
    ) -> None:
        self.table = table
        self.state = state
        self.columns = columns or ColumnSettings()
        self.tracker = tracker or TrackerSettings()

    # ========================================================================
    # Detection
    # ========================================================================

    def _has_label(self, column: int) -> bool:
        header = self.table.get_cell(1, column)
        return isinstance(header, str) and header.strip() == self.columns.tracking_label

    def _has_note(self, column: int) -> bool:
        note = (self.table.get_note(1, column) or "").lower()
        return any(marker in note for marker in self.columns.note_markers)

    def _only_status_cells(self, column: int) -> bool:
        last_row = min(self.table.max_row(), 1 + self.columns.sample_size)
        sampled = [self.table.get_cell(row, column) for row in range(2, last_row + 1)]
        present = [value for value in sampled if not is_blank(value)]
        return bool(present) and all(is_status_literal(value) for value in present)

    def inspect(self, column: int) -> ColumnCandidate:
        return ColumnCandidate(
            column=column,
            header_label=self._has_label(column),
            header_note=self._has_note(column),
            status_cells=self._only_status_cells(column),
            status_validation=self.table.has_status_validation(column),
        )

    def find_candidates(self) -> list[ColumnCandidate]:
        """All columns carrying at least one tracking signature, left to right."""
        # a removed column can leave the remembered one past the grid edge
        last = max(self.table.max_column(), self.state.get_position().column or 0)
        found = []
        for column in range(1, last + 1):
            candidate = self.inspect(column)
            if candidate.header_signature or candidate.artifact_signature:
                found.append(candidate)
        return found

    @staticmethod
    def _authoritative(candidates: list[ColumnCandidate]) -> int | None:
        labeled = [c.column for c in candidates if c.header_label]
        if labeled:
            return max(labeled)
        full = [c.column for c in candidates if c.is_full_match]
        return max(full) if full else None

    def current_column(self) -> int | None:
        """
        Authoritative tracking column.

        The remembered position is trusted while its header still carries
        the reserved label; otherwise the sheet is reconciled.
        """
        remembered = self.state.get_position().column
        if remembered and remembered <= self.table.max_column():
            if self._has_label(remembered):
                if not any(
                    self._has_label(c)
                    for c in range(remembered + 1, self.table.max_column() + 1)
                ):
                    return remembered
        return self.reconcile().authoritative

    def detect_drift(self) -> Drift | None:
        """Compare the remembered position with the authoritative column."""
        remembered = self.state.get_position().column
        authoritative = self._authoritative(self.find_candidates())
        if remembered is None or authoritative is None or remembered == authoritative:
            return None
        return Drift(moved_from=remembered, moved_to=authoritative)

    # ========================================================================
    # Reconciliation
    # ========================================================================

    def reconcile(self) -> ReconcileReport:
        """
        Settle on one authoritative column and clean up the others.

        Returns:
            ReconcileReport with the authoritative column, the drift (if
            any), cleaned and partial-match columns
        """
        candidates = self.find_candidates()
        authoritative = self._authoritative(candidates)
        remembered = self.state.get_position().column

        report = ReconcileReport(authoritative=authoritative)
        if authoritative is None:
            if candidates:
                report.partial_matches = [c.column for c in candidates]
                logger.warning(
                    "No tracking column header found; partial signatures in columns %s",
                    report.partial_matches,
                )
            else:
                logger.debug("No tracking column in '%s'", self.table.name)
            return report

        if remembered is not None and remembered != authoritative:
            report.drift = Drift(moved_from=remembered, moved_to=authoritative)
            logger.info(
                "Tracking column moved %s: %d -> %d",
                "left" if report.drift.moved_left else "right",
                remembered,
                authoritative,
            )

        others = [c for c in candidates if c.column != authoritative]
        if report.drift is not None and not report.drift.moved_left:
            # Inserted columns only shift the old location
            duplicates = [c for c in others if c.header_label and c.column != remembered]
            others = [c for c in others if c.column == remembered] + duplicates

        for candidate in others:
            if candidate.is_full_match:
                self.strip_column(candidate.column)
                report.cleaned_columns.append(candidate.column)
            elif candidate.status_validation and not candidate.header_signature:
                self.table.clear_validation(candidate.column)
                self.table.clear_formatting(candidate.column)
                report.cleaned_columns.append(candidate.column)
            else:
                report.partial_matches.append(candidate.column)
                logger.info(
                    "Column %d has partial tracking signatures, leaving it untouched",
                    candidate.column,
                )

        if not self.table.has_status_validation(authoritative):
            # validations do not follow inserted/removed columns
            self.table.set_validation(authoritative, STATUS_LITERALS, start_row=2)

        self.state.set_position(authoritative)
        if report.cleaned_columns:
            logger.info("Cleaned stale tracking artifacts from columns %s", report.cleaned_columns)
        return report

    def strip_column(self, column: int) -> None:
        """
        Remove tracking artifacts from a column.

        Only the reserved label, the tracking note, status literals, push
        error notes, the status validation and tracking fills are removed.
        """
        if self._has_label(column):
            self.table.set_cell(1, column, None)
        if self._has_note(column):
            self.table.set_note(1, column, None)
        for row in range(2, self.table.max_row() + 1):
            if is_status_literal(self.table.get_cell(row, column)):
                self.table.set_cell(row, column, None)
            if (self.table.get_note(row, column) or "").startswith(ERROR_NOTE_PREFIX):
                self.table.set_note(row, column, None)
        self.table.clear_validation(column)
        self.table.clear_formatting(column)

    # ========================================================================
    # Installation
    # ========================================================================

    def default_column(self) -> int:
        """First free column to the right of the data."""
        header = self.table.header_row()
        last = max((i for i, v in enumerate(header, start=1) if not is_blank(v)), default=0)
        return last + 1

    def install(self, column: int | None = None) -> int:
        """
        Turn a column into the tracking column.

        Writes the reserved header and note, marks untracked data rows
        "Not modified" (state included), and attaches the status list.

        Args:
            column: Target column; defaults to the current tracking column
                or the first free column

        Returns:
            The installed column
        """
        if column is None:
            column = self.current_column() or self.default_column()

        self.table.set_cell(1, column, self.columns.tracking_label)
        self.table.set_note(1, column, self.columns.tracking_note)

        seeded = 0
        for row in range(2, self.table.max_row() + 1):
            values = self.table.get_row(row)
            data_values = without_column(values, column)
            if is_metadata_row(
                data_values,
                self.tracker.metadata_markers,
                self.tracker.metadata_min_filled_cells,
            ):
                continue

            record_id = self.record_id(values)
            current = SyncStatus.from_string(self.table.get_cell(row, column))
            if current is None:
                current = (record_id and self.state.get_status(record_id)) or SyncStatus.NOT_MODIFIED
                self.table.set_cell(row, column, current.value)
                seeded += 1
            if record_id and self.state.get_status(record_id) is None:
                self.state.set_status(record_id, current)

        self.table.set_validation(column, STATUS_LITERALS, start_row=2)
        self.table.apply_status_formatting(column)
        self.state.set_position(column)
        logger.info("Tracking column installed at %d (%d rows seeded)", column, seeded)
        return column

    def record_id(self, values: list) -> str:
        """Record id of a row from its id column, '' if empty."""
        index = self.columns.id_column - 1
        if index >= len(values) or is_blank(values[index]):
            return ""
        value = values[index]
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()
