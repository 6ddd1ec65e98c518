"""
Application layer package.

The sync engine: normalization, path resolution, change tracking,
column reconciliation and push, orchestrated by SyncService.
"""

from sheetsync.application.normalizer import ValueNormalizer, FieldKind
from sheetsync.application.field_paths import FieldPathResolver
from sheetsync.application.state_store import TrackingStateStore
from sheetsync.application.column_tracker import ColumnPositionTracker
from sheetsync.application.change_tracker import ChangeTracker
from sheetsync.application.payload_encoder import PayloadEncoder
from sheetsync.application.push_reconciler import PushReconciler
from sheetsync.application.edit_detector import EditDetector, diff_snapshots
from sheetsync.application.service import SyncService

__all__ = [
    "ValueNormalizer",
    "FieldKind",
    "FieldPathResolver",
    "TrackingStateStore",
    "ColumnPositionTracker",
    "ChangeTracker",
    "PayloadEncoder",
    "PushReconciler",
    "EditDetector",
    "diff_snapshots",
    "SyncService",
]
