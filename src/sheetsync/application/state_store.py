"""
Tracking State Store - typed repository over the key-value store.

All persisted tracking state for one sheet lives under keys prefixed by
the sheet name:

    {sheet}:status:{record_id}           row SyncStatus
    {sheet}:originals:{record_id}        {field: baseline value}
    {sheet}:cell:{record_id}:{field}     CellState guard
    {sheet}:lock:{record_id}             row lock (expiring claim)
    {sheet}:push_error:{record_id}       last push failure detail
    {sheet}:position                     TrackingPosition
    {sheet}:operation                    operation-in-progress flag
    {sheet}:snapshot                     {record_id: {field: value}}

Components never touch raw keys; they go through this class.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sheetsync.domain.field_value import json_safe
from sheetsync.domain.models import CellState, TrackingPosition
from sheetsync.domain.protocols import KeyValueStore
from sheetsync.domain.sync_status import SyncStatus

logger = logging.getLogger(__name__)


def _default(value: Any) -> Any:
    converted = json_safe(value)
    return str(value) if converted is value else converted


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_default, sort_keys=True)


class TrackingStateStore:
    """
    Per-sheet tracking state.

    Usage:
        state = TrackingStateStore(SqliteKeyValueStore(db_path), "Persons")
        state.set_status("42", SyncStatus.MODIFIED)
        state.get_originals("42")
    """

    def __init__(self, kv: KeyValueStore, sheet_name: str) -> None:
        self.kv = kv
        self.sheet_name = sheet_name
        self._prefix = f"{sheet_name}:"

    def _key(self, *parts: str) -> str:
        return self._prefix + ":".join(parts)

    def _load(self, key: str, default: Any = None) -> Any:
        raw = self.kv.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding malformed state entry %s", key)
            self.kv.delete(key)
            return default

    # ========================================================================
    # Row Status
    # ========================================================================

    def get_status(self, record_id: str) -> SyncStatus | None:
        return SyncStatus.from_string(self._load(self._key("status", record_id)))

    def set_status(self, record_id: str, status: SyncStatus) -> None:
        self.kv.set(self._key("status", record_id), _dumps(status.value))

    def delete_status(self, record_id: str) -> None:
        self.kv.delete(self._key("status", record_id))

    def statuses(self) -> dict[str, SyncStatus]:
        """All persisted row statuses keyed by record id."""
        prefix = self._key("status", "")
        result: dict[str, SyncStatus] = {}
        for key in self.kv.keys(prefix):
            status = SyncStatus.from_string(self._load(key))
            if status is not None:
                result[key[len(prefix):]] = status
        return result

    # ========================================================================
    # Baselines
    # ========================================================================

    def get_originals(self, record_id: str) -> dict[str, Any]:
        data = self._load(self._key("originals", record_id), {})
        return data if isinstance(data, dict) else {}

    def set_originals(self, record_id: str, originals: dict[str, Any]) -> None:
        if not originals:
            self.clear_originals(record_id)
            return
        self.kv.set(self._key("originals", record_id), _dumps(originals))

    def clear_originals(self, record_id: str) -> None:
        self.kv.delete(self._key("originals", record_id))

    # ========================================================================
    # Cell Guards
    # ========================================================================

    def get_cell_state(self, record_id: str, field_name: str) -> CellState | None:
        data = self._load(self._key("cell", record_id, field_name))
        if not isinstance(data, dict):
            return None
        return CellState.from_dict(data)

    def set_cell_state(self, record_id: str, field_name: str, state: CellState) -> None:
        self.kv.set(self._key("cell", record_id, field_name), _dumps(state.to_dict()))

    def clear_cell_states(self, record_id: str) -> None:
        self.kv.delete_prefix(self._key("cell", record_id, ""))

    # ========================================================================
    # Locks
    # ========================================================================

    def acquire_lock(self, record_id: str, now: float, ttl: float) -> bool:
        """Check-and-set row lock. Stale locks (older than ttl) are taken over."""
        return self.kv.set_if_absent_or_expired(
            self._key("lock", record_id), _dumps({"acquired_at": now}), now, ttl
        )

    def release_lock(self, record_id: str) -> None:
        self.kv.delete(self._key("lock", record_id))

    # ========================================================================
    # Push Errors
    # ========================================================================

    def get_push_error(self, record_id: str) -> str | None:
        return self._load(self._key("push_error", record_id))

    def set_push_error(self, record_id: str, detail: str) -> None:
        self.kv.set(self._key("push_error", record_id), _dumps(detail))

    def clear_push_error(self, record_id: str) -> None:
        self.kv.delete(self._key("push_error", record_id))

    def push_errors(self) -> dict[str, str]:
        prefix = self._key("push_error", "")
        return {key[len(prefix):]: self._load(key, "") for key in self.kv.keys(prefix)}

    # ========================================================================
    # Tracking Column Position
    # ========================================================================

    def get_position(self) -> TrackingPosition:
        data = self._load(self._key("position"), {})
        if not isinstance(data, dict):
            return TrackingPosition()
        return TrackingPosition(column=data.get("column"), previous=data.get("previous"))

    def set_position(self, column: int | None) -> TrackingPosition:
        """Remember a new authoritative column; the old one becomes previous."""
        current = self.get_position()
        if current.column == column:
            return current
        position = TrackingPosition(column=column, previous=current.column)
        self.kv.set(
            self._key("position"),
            _dumps({"column": position.column, "previous": position.previous}),
        )
        logger.debug("Tracking column position %s -> %s", current.column, column)
        return position

    # ========================================================================
    # Operation Flag
    # ========================================================================

    def begin_operation(self, operation: str, now: float, ttl: float) -> bool:
        """Set the table-level operation flag. False if another one is live."""
        return self.kv.set_if_absent_or_expired(
            self._key("operation"),
            _dumps({"operation": operation, "started_at": now}),
            now,
            ttl,
        )

    def current_operation(self, now: float | None = None, ttl: float | None = None) -> str | None:
        """
        Name of the running operation, if any.

        When now and ttl are given, a flag older than ttl counts as stale
        and None is returned.
        """
        data = self._load(self._key("operation"))
        if not isinstance(data, dict):
            return None
        if now is not None and ttl is not None:
            started_at = float(data.get("started_at") or 0.0)
            if now - started_at >= ttl:
                return None
        return data.get("operation")

    def end_operation(self) -> None:
        self.kv.delete(self._key("operation"))

    # ========================================================================
    # Snapshot
    # ========================================================================

    def get_snapshot(self) -> dict[str, dict[str, Any]]:
        data = self._load(self._key("snapshot"), {})
        return data if isinstance(data, dict) else {}

    def set_snapshot(self, snapshot: dict[str, dict[str, Any]]) -> None:
        self.kv.set(self._key("snapshot"), _dumps(snapshot))

    # ========================================================================
    # Bulk Reset
    # ========================================================================

    def reset_row(self, record_id: str) -> None:
        """Drop baselines, guards and push error of one row."""
        self.clear_originals(record_id)
        self.clear_cell_states(record_id)
        self.clear_push_error(record_id)

    def reset_tracking(self) -> int:
        """
        Forget all row tracking state (statuses, baselines, guards, errors).

        The tracking column position and snapshot are kept. Used before a
        full resync re-seeds the table.

        Returns:
            Number of entries removed
        """
        removed = 0
        for kind in ("status", "originals", "cell", "push_error", "lock"):
            removed += self.kv.delete_prefix(self._key(kind, ""))
        logger.info("Reset tracking state for '%s' (%d entries)", self.sheet_name, removed)
        return removed
