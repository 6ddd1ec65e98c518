"""
Collaborator Protocols.

The engine only talks to the outside world through these interfaces:
the remote record API, the tabular store, and a durable key-value store.
Concrete implementations live in the infrastructure layer.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from sheetsync.domain.models import UpdateResult


class RecordClient(Protocol):
    """Remote CRM API."""

    def fetch_records(self, filter_id: str | None = None) -> list[dict[str, Any]]:
        """Fetch all records matching a saved filter."""
        ...

    def update_record(self, record_id: str, field_map: dict[str, Any]) -> UpdateResult:
        """Send a partial update for one record."""
        ...


class TabularStore(Protocol):
    """Sheet-like grid addressed by 1-based row/column."""

    @property
    def name(self) -> str: ...

    def max_row(self) -> int: ...

    def max_column(self) -> int: ...

    def header_row(self) -> list[Any]: ...

    def get_cell(self, row: int, column: int) -> Any: ...

    def set_cell(self, row: int, column: int, value: Any) -> None: ...

    def get_row(self, row: int) -> list[Any]: ...

    def set_row(self, row: int, values: list[Any]) -> None: ...

    def clear_rows(self, start_row: int) -> None: ...

    def get_note(self, row: int, column: int) -> str: ...

    def set_note(self, row: int, column: int, text: str | None) -> None: ...

    def set_validation(self, column: int, allowed: Iterable[str], start_row: int = 2) -> None: ...

    def clear_validation(self, column: int) -> None: ...

    def has_status_validation(self, column: int) -> bool: ...

    def apply_status_formatting(self, column: int) -> None: ...

    def clear_formatting(self, column: int) -> None: ...


class KeyValueStore(Protocol):
    """Durable string-keyed storage for JSON-encoded blobs."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def set_if_absent_or_expired(self, key: str, value: str, now: float, ttl: float) -> bool: ...
