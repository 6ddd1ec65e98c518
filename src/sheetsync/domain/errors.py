"""
Exception taxonomy for SheetSync.

Only these errors are meant to reach the user. Comparison errors and lock
contention are handled locally and never raised past the engine.
"""

from __future__ import annotations


class SheetSyncError(Exception):
    """Base class for user-visible SheetSync failures."""


class ConfigError(SheetSyncError):
    """Configuration file missing or invalid."""


class OperationInProgressError(SheetSyncError):
    """A pull/push/scan is already running on this table."""

    def __init__(self, table: str, operation: str) -> None:
        super().__init__(
            f"A '{operation}' operation is already in progress on '{table}'. "
            "Wait for it to finish and try again."
        )
        self.table = table
        self.operation = operation


class NoRowsToPushError(SheetSyncError):
    """No row is in the Modified state."""

    def __init__(self) -> None:
        super().__init__("No rows eligible to push (no row is marked 'Modified').")


class TrackingColumnNotFoundError(SheetSyncError):
    """The sync status column cannot be located in the sheet."""

    def __init__(self) -> None:
        super().__init__("Tracking column not found, re-enable two-way sync.")


class RemoteApiError(SheetSyncError):
    """The remote API refused a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
