"""
Row Classification Rules.

Decides which sheet rows are mirrored records and which are metadata or
separator rows ("Last synced: ...", blank spacer rows, notes typed below
the data). This is best-effort by nature, so the thresholds come from
configuration instead of being fixed here.

Rules:
    1. A row whose first cell contains a metadata marker
       (default: timestamp, last, updated, synced) is metadata.
    2. A row with fewer non-empty cells than `min_filled_cells`
       (default 3) is metadata.
    3. Everything else is a data row.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

DEFAULT_METADATA_MARKERS: tuple[str, ...] = ("timestamp", "last", "updated", "synced")
DEFAULT_MIN_FILLED_CELLS = 3


def is_blank(value: Any) -> bool:
    """None and whitespace-only strings are blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def count_filled(values: Iterable[Any]) -> int:
    return sum(1 for v in values if not is_blank(v))


def is_metadata_row(
    values: Sequence[Any],
    markers: Sequence[str] = DEFAULT_METADATA_MARKERS,
    min_filled_cells: int = DEFAULT_MIN_FILLED_CELLS,
) -> bool:
    """
    Check if a row should be excluded from tracking.

    Args:
        values: Cell values of the row, tracking column excluded
        markers: Lowercase substrings that flag the first cell as metadata
        min_filled_cells: Minimum non-empty cells for a data row

    Returns:
        True if the row is metadata/separator and must not be tracked
    """
    if not values:
        return True

    first = values[0]
    if not is_blank(first) and isinstance(first, str):
        lowered = first.lower()
        if any(marker in lowered for marker in markers):
            return True

    return count_filled(values) < min_filled_cells


def without_column(values: Sequence[Any], column: int | None) -> list[Any]:
    """Drop one 1-based column (the tracking column) from a row."""
    if column is None or column < 1 or column > len(values):
        return list(values)
    return list(values[: column - 1]) + list(values[column:])
