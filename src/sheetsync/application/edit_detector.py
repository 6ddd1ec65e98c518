"""
Edit Detector - derive edit events from a workbook edited offline.

When the sheet is edited outside this process (a person opens the .xlsx,
changes cells and saves), no per-cell edit events exist. The detector
compares the current rows with the snapshot taken after the last pull,
push or scan and turns every changed cell into an EditEvent whose old
value is the snapshot value.

Rows are matched by record id, so reordered rows do not produce edits.
New record ids and removed rows produce no events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sheetsync.application.column_tracker import ColumnPositionTracker
from sheetsync.application.normalizer import naive_form
from sheetsync.application.state_store import TrackingStateStore
from sheetsync.domain.field_value import json_safe
from sheetsync.domain.models import EditEvent
from sheetsync.domain.protocols import TabularStore
from sheetsync.domain.row_rules import is_blank

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, Any]]


@dataclass(frozen=True, slots=True)
class FieldChange:
    """One cell whose value differs from the snapshot."""

    record_id: str
    field_name: str
    old_value: Any
    new_value: Any


@dataclass
class SnapshotDiff:
    """Result of comparing two snapshots."""

    changes: list[FieldChange] = field(default_factory=list)
    added_records: list[str] = field(default_factory=list)
    removed_records: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self):
        return iter(self.changes)


def diff_snapshots(old: Snapshot, new: Snapshot) -> SnapshotDiff:
    """
    Compare two {record_id: {field: value}} snapshots.

    Values are compared in plain string form; deciding whether a change
    matters is left to the change tracker.
    """
    result = SnapshotDiff()
    result.added_records = sorted(set(new) - set(old))
    result.removed_records = sorted(set(old) - set(new))

    for record_id, new_fields in new.items():
        old_fields = old.get(record_id)
        if old_fields is None:
            continue
        for field_name, new_value in new_fields.items():
            if field_name not in old_fields:
                # column added since the snapshot
                continue
            old_value = old_fields[field_name]
            if naive_form(old_value) != naive_form(new_value):
                result.changes.append(FieldChange(record_id, field_name, old_value, new_value))

    return result


class EditDetector:
    """
    Turns sheet/snapshot differences into edit events.

    Usage:
        detector = EditDetector(table, state, columns)
        events = detector.detect()
        ...  # feed events to the change tracker
        detector.capture()
    """

    def __init__(
        self,
        table: TabularStore,
        state: TrackingStateStore,
        columns: ColumnPositionTracker,
    ) -> None:
        self.table = table
        self.state = state
        self.columns = columns

    def read_rows(self) -> tuple[Snapshot, dict[str, int], dict[str, int]]:
        """
        Read the sheet as a snapshot.

        Returns:
            (snapshot, record_id -> row, field name -> column)
        """
        tracking_column = self.columns.current_column()
        id_column = self.columns.columns.id_column
        fields = {
            str(name).strip(): column
            for column, name in enumerate(self.table.header_row(), start=1)
            if not is_blank(name) and column not in (tracking_column, id_column)
        }

        snapshot: Snapshot = {}
        rows: dict[str, int] = {}
        for row in range(2, self.table.max_row() + 1):
            values = self.table.get_row(row)
            record_id = self.columns.record_id(values)
            if not record_id:
                continue
            if record_id in rows:
                logger.warning("Duplicate record id %s at row %d, keeping row %d", record_id, row, rows[record_id])
                continue
            rows[record_id] = row
            snapshot[record_id] = {
                name: json_safe(values[column - 1]) if column <= len(values) else None
                for name, column in fields.items()
            }
        return snapshot, rows, fields

    def capture(self) -> int:
        """Store the current sheet content as the new snapshot."""
        snapshot, _, _ = self.read_rows()
        self.state.set_snapshot(snapshot)
        logger.debug("Snapshot captured (%d records)", len(snapshot))
        return len(snapshot)

    def detect(self, timestamp: float | None = None) -> list[EditEvent]:
        """
        Edit events for every cell changed since the last snapshot.

        Args:
            timestamp: Scan time stamped on every event, so a value that
                flips back and forth across scans is not seen as a duplicate
        """
        current, rows, fields = self.read_rows()
        diff = diff_snapshots(self.state.get_snapshot(), current)

        if diff.added_records:
            logger.info("%d rows not in the snapshot are not tracked", len(diff.added_records))

        events = [
            EditEvent(
                row=rows[change.record_id],
                column=fields[change.field_name],
                old_value=change.old_value,
                new_value=change.new_value,
                timestamp=timestamp,
            )
            for change in diff
        ]
        logger.info("Detected %d edited cells", len(events))
        return events
