"""
Domain models for SheetSync.

Pure data classes with no I/O. Persisted models provide
to_dict()/from_dict() so the state store can keep them as JSON blobs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sheetsync.domain.sync_status import SyncStatus


# ============================================================================
# Enums
# ============================================================================


class TrackOutcome(str, Enum):
    """What the change tracker did with an edit event."""

    MARKED_MODIFIED = "marked_modified"  # Row entered Modified
    STILL_MODIFIED = "still_modified"  # Row was and stays Modified
    REVERTED = "reverted"  # Every tracked field back to baseline
    UNCHANGED = "unchanged"  # Cell rewritten with its previous value
    IGNORED = "ignored"  # Rejected by a guard (see reason)
    FAILED = "failed"  # Internal error, status unchanged


class PushState(str, Enum):
    """Result state of pushing a single row."""

    SYNCED = "synced"
    ERROR = "error"
    SKIPPED = "skipped"


# ============================================================================
# Events and Results
# ============================================================================


@dataclass(frozen=True)
class EditEvent:
    """
    A single cell edit delivered by the host.

    Attributes:
        row: 1-based sheet row
        column: 1-based sheet column
        old_value: Value before the edit (None when unknown)
        new_value: Value after the edit
        timestamp: Host timestamp of the edit (epoch seconds), if any
    """

    row: int
    column: int
    old_value: Any = None
    new_value: Any = None
    timestamp: float | None = None

    @property
    def event_id(self) -> str:
        """Stable identity used for duplicate-delivery suppression."""
        if self.timestamp is not None:
            return f"{self.row}:{self.column}:{self.timestamp:.3f}"
        return f"{self.row}:{self.column}:{self.old_value!r}->{self.new_value!r}"


@dataclass(frozen=True)
class TrackResult:
    """
    Result of handling one edit event.

    Attributes:
        outcome: What happened
        status: Row status after the event (None if untracked row)
        record_id: Record the row mirrors
        field_name: Header of the edited column
        reason: Why an event was ignored or failed
    """

    outcome: TrackOutcome
    status: SyncStatus | None = None
    record_id: str = ""
    field_name: str = ""
    reason: str = ""

    @property
    def changed_status(self) -> bool:
        return self.outcome in (TrackOutcome.MARKED_MODIFIED, TrackOutcome.REVERTED)


@dataclass(frozen=True)
class Transition:
    """Pure decision produced by the state machine for one edit."""

    outcome: TrackOutcome
    new_status: SyncStatus | None
    capture_baseline: bool = False
    clear_baselines: bool = False


# ============================================================================
# Persisted State
# ============================================================================


@dataclass
class CellState:
    """
    Short-lived guard for one (record, field) cell.

    Attributes:
        status: Status this cell last set on its row
        last_changed_at: When that status was set (epoch seconds)
        original_values: Row baselines at that moment
        is_undone: True when the row was reverted by the user
        last_event_id: Last processed event for duplicate suppression
        expires_at: Guard expiry; undo guards carry the cool-down here
        reverted_value: Value the cell was reverted to (undo guards only)
    """

    status: str = ""
    last_changed_at: float = 0.0
    original_values: dict[str, Any] = field(default_factory=dict)
    is_undone: bool = False
    last_event_id: str = ""
    expires_at: float = 0.0
    reverted_value: Any = None

    def is_active(self, now: float) -> bool:
        return now < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "last_changed_at": self.last_changed_at,
            "original_values": self.original_values,
            "is_undone": self.is_undone,
            "last_event_id": self.last_event_id,
            "expires_at": self.expires_at,
            "reverted_value": self.reverted_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CellState:
        return cls(
            status=str(data.get("status", "")),
            last_changed_at=float(data.get("last_changed_at", 0.0)),
            original_values=dict(data.get("original_values") or {}),
            is_undone=bool(data.get("is_undone", False)),
            last_event_id=str(data.get("last_event_id", "")),
            expires_at=float(data.get("expires_at", 0.0)),
            reverted_value=data.get("reverted_value"),
        )


@dataclass(frozen=True)
class TrackingPosition:
    """Remembered location of the tracking column."""

    column: int | None = None
    previous: int | None = None


@dataclass(frozen=True)
class Drift:
    """Tracking column moved between two structural states."""

    moved_from: int
    moved_to: int

    @property
    def moved_left(self) -> bool:
        return self.moved_to < self.moved_from


@dataclass(frozen=True)
class ColumnCandidate:
    """
    A column carrying tracking signatures.

    header_signature: header text is the reserved label, or the header note
        carries the sync marker
    artifact_signature: sampled cells hold only status literals, or the
        column has the status validation attached
    """

    column: int
    header_label: bool = False
    header_note: bool = False
    status_cells: bool = False
    status_validation: bool = False

    @property
    def header_signature(self) -> bool:
        return self.header_label or self.header_note

    @property
    def artifact_signature(self) -> bool:
        return self.status_cells or self.status_validation

    @property
    def is_full_match(self) -> bool:
        return self.header_signature and self.artifact_signature


@dataclass
class ReconcileReport:
    """Outcome of a column reconciliation pass."""

    authoritative: int | None = None
    drift: Drift | None = None
    cleaned_columns: list[int] = field(default_factory=list)
    partial_matches: list[int] = field(default_factory=list)


# ============================================================================
# Push
# ============================================================================


@dataclass(frozen=True)
class UpdateResult:
    """Remote acknowledgement of an update call."""

    success: bool
    error: str = ""
    status_code: int | None = None


@dataclass(frozen=True)
class ModifiedRow:
    """A row eligible for push with its remote-shaped payload."""

    row: int
    record_id: str
    field_map: dict[str, Any]


@dataclass(frozen=True)
class PushOutcome:
    """Result of pushing one row."""

    state: PushState
    record_id: str = ""
    row: int = 0
    detail: str = ""

    @property
    def status(self) -> SyncStatus | None:
        if self.state is PushState.SYNCED:
            return SyncStatus.SYNCED
        if self.state is PushState.ERROR:
            return SyncStatus.ERROR
        return None


@dataclass
class PushReport:
    """Aggregate of one push invocation."""

    outcomes: list[PushOutcome] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return sum(1 for o in self.outcomes if o.state is PushState.SYNCED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.state is PushState.ERROR)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.state is PushState.SKIPPED)

    @property
    def attempted(self) -> int:
        return self.synced + self.failed

    def errors(self) -> list[PushOutcome]:
        return [o for o in self.outcomes if o.state is PushState.ERROR]


@dataclass
class PullReport:
    """Aggregate of one pull invocation."""

    records: int = 0
    rows_written: int = 0
    discarded_modified: int = 0
    tracking_column: int | None = None
