"""
LabQueue Server - Expiry Scanner

Stateless predicates deciding when a hold or a paused session has run out,
plus finders that select every entity currently due. The transitions
themselves belong to the owning module (queue_ledger.ExpireAssignment,
usage_tracker.AutoCompleteSession); the scanner is applied both lazily on
reads and by the explicit sweep.

Staleness is bounded by how often reads or sweeps happen: an overdue hold
stays assigned in storage until something looks at it.
"""

from datetime import datetime
from typing import List

from models.database import QueueEntry, QueueEntryState, UsageSession
from usage_tracker import ShouldAutoComplete, ListPausedSessions


def ShouldExpireAssignment(entry: QueueEntry, now: datetime) -> bool:
    """Check if an assigned entry's check-in window has passed"""
    if entry.state != QueueEntryState.ASSIGNED or entry.expires_at_utc is None:
        return False
    return now > entry.expires_at_utc


def FindOverdueAssignments(db_session, now: datetime) -> List[QueueEntry]:
    """
    Get assigned entries whose hold has expired, in queue order
    """
    candidates = (
        db_session.query(QueueEntry)
        .filter(QueueEntry.state == QueueEntryState.ASSIGNED, QueueEntry.expires_at_utc < now)
        .order_by(QueueEntry.queue_position.asc(), QueueEntry.entry_id.asc())
        .with_for_update()
        .all()
    )
    return [entry for entry in candidates if ShouldExpireAssignment(entry, now)]


def FindSessionsToAutoComplete(db_session, now: datetime) -> List[UsageSession]:
    """Get paused sessions that have crossed the auto-complete threshold"""
    return [usage for usage in ListPausedSessions(db_session) if ShouldAutoComplete(usage, now)]


__all__ = [
    'ShouldExpireAssignment',
    'ShouldAutoComplete',
    'FindOverdueAssignments',
    'FindSessionsToAutoComplete',
]
