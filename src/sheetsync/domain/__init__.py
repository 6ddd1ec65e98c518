"""
Domain layer package.

Contains pure types and rules with no I/O dependencies.
"""

from sheetsync.domain.sync_status import (
    SyncStatus,
    STATUS_LITERALS,
    is_status_literal,
    ERROR_NOTE_PREFIX,
)
from sheetsync.domain.field_value import (
    Scalar,
    LabeledItem,
    LabeledList,
    NestedBag,
    FieldValue,
    classify,
    display_value,
)
from sheetsync.domain.models import (
    TrackOutcome,
    PushState,
    EditEvent,
    TrackResult,
    Transition,
    CellState,
    TrackingPosition,
    Drift,
    ColumnCandidate,
    ReconcileReport,
    UpdateResult,
    ModifiedRow,
    PushOutcome,
    PushReport,
    PullReport,
)
from sheetsync.domain.row_rules import is_metadata_row, without_column
from sheetsync.domain.state_machine import (
    classify_edit,
    is_push_eligible,
    status_after_push,
)

__all__ = [
    "SyncStatus",
    "STATUS_LITERALS",
    "is_status_literal",
    "ERROR_NOTE_PREFIX",
    "Scalar",
    "LabeledItem",
    "LabeledList",
    "NestedBag",
    "FieldValue",
    "classify",
    "display_value",
    "TrackOutcome",
    "PushState",
    "EditEvent",
    "TrackResult",
    "Transition",
    "CellState",
    "TrackingPosition",
    "Drift",
    "ColumnCandidate",
    "ReconcileReport",
    "UpdateResult",
    "ModifiedRow",
    "PushOutcome",
    "PushReport",
    "PullReport",
    "is_metadata_row",
    "without_column",
    "classify_edit",
    "is_push_eligible",
    "status_after_push",
]
