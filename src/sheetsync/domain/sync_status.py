"""
Sync Status and Reserved Literals.

This module defines the per-row status enum used by the tracking column.
It is the single source of truth for the four wire-visible status strings.

Architecture Note:
    This is a pure domain module with NO external dependencies.
    The enum values must match the sheet literals exactly.
"""

from __future__ import annotations

from enum import Enum


class SyncStatus(str, Enum):
    """
    Status of a mirrored row.

    Only MODIFIED rows are eligible for push.
    """

    NOT_MODIFIED = "Not modified"  # Matches last pulled/pushed remote state
    MODIFIED = "Modified"  # Edited in the sheet, waiting for push
    SYNCED = "Synced"  # Pushed successfully
    ERROR = "Error"  # Push failed, detail attached

    def is_pending(self) -> bool:
        """Check if this row has local changes not yet on the remote."""
        return self is SyncStatus.MODIFIED

    @classmethod
    def from_string(cls, value: object) -> SyncStatus | None:
        """Parse status from a cell value, tolerating case and whitespace."""
        if value is None:
            return None
        text = " ".join(str(value).split()).lower()
        if not text:
            return None
        for status in cls:
            if status.value.lower() == text:
                return status
        return None


# Reserved literals in display order (used for validation dropdowns)
STATUS_LITERALS: tuple[str, ...] = tuple(s.value for s in SyncStatus)


def is_status_literal(value: object) -> bool:
    """Check if a cell value is exactly one of the reserved status literals."""
    return isinstance(value, str) and value.strip() in STATUS_LITERALS


# Prefix of the cell note written on a failed push
ERROR_NOTE_PREFIX = "Push failed: "
