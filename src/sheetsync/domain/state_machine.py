"""
State Machine for Row Change Tracking.

This module provides THE authoritative logic for deciding how a single
cell edit moves a row between sync statuses. The change tracker gathers
the facts (normalized comparisons, existing baselines) and asks this
module what to do.

States:
    Not modified -> Modified -> {Synced, Error}
    Modified -> Not modified   (user edited every tracked field back)

Synced and Error rows behave like Not modified for the next edit: their
cells hold the last state the remote knows about.

Architecture Note:
    - Pure domain logic - no I/O, no clock, no store
    - At most one transition per call
"""

from __future__ import annotations

from sheetsync.domain.models import TrackOutcome, Transition
from sheetsync.domain.sync_status import SyncStatus


def classify_edit(
    current_status: SyncStatus | None,
    is_unchanged: bool,
    has_baseline: bool,
    matches_baseline: bool,
    all_fields_match: bool,
) -> Transition:
    """
    Classify a cell edit.

    Args:
        current_status: Row status before the edit (None if blank)
        is_unchanged: The cell was rewritten with its previous value
        has_baseline: A baseline already exists for the edited field
        matches_baseline: New value normalizes equal to that baseline
        all_fields_match: Every baselined field matches its live value

    Returns:
        Transition with the resulting status and baseline instructions

    Rules (in order):
        1. Not pending + unchanged value   -> no transition
        2. Not pending + real edit         -> Modified, capture baseline
        3. Modified + first edit of field  -> stays Modified, capture baseline
        4. Modified + field back to baseline + all match -> Not modified
        5. Modified otherwise              -> stays Modified
    """
    # === CASE: Row has no local changes ===
    if current_status is None or not current_status.is_pending():
        if is_unchanged:
            return Transition(
                outcome=TrackOutcome.UNCHANGED,
                new_status=current_status,
            )
        return Transition(
            outcome=TrackOutcome.MARKED_MODIFIED,
            new_status=SyncStatus.MODIFIED,
            capture_baseline=not has_baseline,
        )

    # === CASE: Row already Modified, field not tracked yet ===
    if not has_baseline:
        if is_unchanged:
            return Transition(
                outcome=TrackOutcome.UNCHANGED,
                new_status=SyncStatus.MODIFIED,
            )
        return Transition(
            outcome=TrackOutcome.STILL_MODIFIED,
            new_status=SyncStatus.MODIFIED,
            capture_baseline=True,
        )

    # === CASE: Field edited back to its baseline ===
    if matches_baseline and all_fields_match:
        return Transition(
            outcome=TrackOutcome.REVERTED,
            new_status=SyncStatus.NOT_MODIFIED,
            clear_baselines=True,
        )

    return Transition(
        outcome=TrackOutcome.STILL_MODIFIED,
        new_status=SyncStatus.MODIFIED,
    )


def is_push_eligible(status: SyncStatus | None) -> bool:
    """Only Modified rows are pushed."""
    return status is SyncStatus.MODIFIED


def status_after_push(success: bool) -> SyncStatus:
    """Map a remote acknowledgement to the row status."""
    return SyncStatus.SYNCED if success else SyncStatus.ERROR
