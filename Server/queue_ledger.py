"""
LabQueue Server - Queue Ledger

Owns the queue entry lifecycle (waiting, assigned, expired, completed),
FIFO ordering, and the assignment pass that matches free resources to
waiting students.

Positions: every active (waiting or assigned) entry carries an absolute
queue_position, and the active positions are always exactly 1..N. An entry
keeps its position when it moves from waiting to assigned. The rank a
student sees among waiting entries only is computed on demand
(GetRelativePosition).

Transitions return effects (notifications, assignment-pass triggers)
instead of performing them; lab_service executes them after commit.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models.database import QueueEntry, QueueEntryState, Resource, ResourceState, UsageSession
from models.infrastructure import Effect, NoticeKind
from exceptions import ConflictError, ExpiredError, NotFoundError, StateError, ValidationError
from resource_pool import ClaimResource, ReleaseResource, ListFreeResources
from usage_tracker import StartSession, GetLiveSessionForStudent
from expiry_scanner import ShouldExpireAssignment, FindOverdueAssignments

logger = logging.getLogger(__name__)

# How long an assigned resource is held for check-in
CHECK_IN_WINDOW_MINUTES = 5
CHECK_IN_WINDOW = timedelta(minutes=CHECK_IN_WINDOW_MINUTES)


# ==================== Lookups ====================

def GetQueueEntry(db_session, entry_id: int, for_update: bool = False) -> QueueEntry:
    """
    Get a queue entry by ID

    Raises:
        NotFoundError: If no entry has this ID
    """
    query = db_session.query(QueueEntry).filter(QueueEntry.entry_id == entry_id)
    if for_update:
        query = query.with_for_update()
    entry = query.first()
    if entry is None:
        raise NotFoundError(f"Queue entry {entry_id} not found")
    return entry


def GetActiveEntryForStudent(db_session, student_id: str, for_update: bool = False) -> Optional[QueueEntry]:
    """Get the student's waiting or assigned entry, if any"""
    query = db_session.query(QueueEntry).filter(
        QueueEntry.student_id == student_id,
        QueueEntry.state.in_(QueueEntryState.ACTIVE)
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def ListActiveEntries(db_session) -> List[QueueEntry]:
    """List waiting and assigned entries in queue order"""
    return (
        db_session.query(QueueEntry)
        .filter(QueueEntry.state.in_(QueueEntryState.ACTIVE))
        .order_by(QueueEntry.queue_position.asc(), QueueEntry.entry_id.asc())
        .all()
    )


def ListWaitingEntries(db_session) -> List[QueueEntry]:
    """List waiting entries in FIFO order (lowest position first)"""
    return (
        db_session.query(QueueEntry)
        .filter(QueueEntry.state == QueueEntryState.WAITING)
        .order_by(QueueEntry.queue_position.asc(), QueueEntry.entry_id.asc())
        .with_for_update()
        .all()
    )


def ListAssignedEntries(db_session) -> List[QueueEntry]:
    """List assigned entries, earliest assignment first"""
    return (
        db_session.query(QueueEntry)
        .filter(QueueEntry.state == QueueEntryState.ASSIGNED)
        .order_by(QueueEntry.assigned_at_utc.asc(), QueueEntry.entry_id.asc())
        .all()
    )


def HeadOfLine(db_session) -> Optional[QueueEntry]:
    """Get the waiting entry that will be assigned next, if any"""
    return (
        db_session.query(QueueEntry)
        .filter(QueueEntry.state == QueueEntryState.WAITING)
        .order_by(QueueEntry.queue_position.asc(), QueueEntry.entry_id.asc())
        .first()
    )


def GetRelativePosition(db_session, entry: QueueEntry) -> int:
    """
    Rank of an entry among waiting entries only

    Returns:
        int: 1 for the next student to be assigned, 0 if the entry is not waiting
    """
    if entry.state != QueueEntryState.WAITING:
        return 0

    ahead = (
        db_session.query(func.count(QueueEntry.entry_id))
        .filter(
            QueueEntry.state == QueueEntryState.WAITING,
            QueueEntry.queue_position < entry.queue_position
        )
        .scalar()
    )
    return ahead + 1


def CountEntriesByState(db_session) -> Dict[str, int]:
    """Count queue entries per state (every state present)"""
    counts = {
        QueueEntryState.WAITING: 0,
        QueueEntryState.ASSIGNED: 0,
        QueueEntryState.EXPIRED: 0,
        QueueEntryState.COMPLETED: 0,
    }
    rows = db_session.query(QueueEntry.state, func.count(QueueEntry.entry_id)).group_by(QueueEntry.state).all()
    for state, count in rows:
        counts[state] = count
    return counts


def RemainingHoldSeconds(entry: QueueEntry, now: datetime) -> int:
    """Seconds left in an assigned entry's check-in window (0 otherwise)"""
    if entry.state != QueueEntryState.ASSIGNED or entry.expires_at_utc is None:
        return 0
    return max(0, int((entry.expires_at_utc - now).total_seconds()))


def FormatRemainingTime(seconds: int) -> str:
    """
    Format a remaining hold for display

    Examples: '4m 30s', '45s', 'Expired'
    """
    if seconds <= 0:
        return "Expired"

    minutes, remaining_seconds = divmod(int(seconds), 60)
    if minutes > 0:
        return f"{minutes}m {remaining_seconds}s"
    return f"{remaining_seconds}s"


# ==================== Positions ====================

def NextQueuePosition(db_session) -> int:
    """Tail position: one past the highest active position"""
    highest = (
        db_session.query(func.max(QueueEntry.queue_position))
        .filter(QueueEntry.state.in_(QueueEntryState.ACTIVE))
        .scalar()
    )
    return (highest or 0) + 1


def ReorderQueue(db_session) -> int:
    """
    Re-index active entries as 1..N, keeping their relative order

    Returns:
        int: Number of entries whose position changed
    """
    changed = 0
    for index, entry in enumerate(ListActiveEntries(db_session), start=1):
        if entry.queue_position != index:
            entry.queue_position = index
            changed += 1

    if changed:
        db_session.flush()
        logger.debug(f"Reordered queue: {changed} positions updated")
    return changed


# ==================== Transitions ====================

def Enqueue(db_session, student_id: str, student_name: str, now: datetime) -> Tuple[QueueEntry, List[Effect]]:
    """
    Add a student to the tail of the queue

    Returns:
        (entry, effects): The new waiting entry and an assignment-pass trigger

    Raises:
        ValidationError: If student_id or student_name is empty
        ConflictError: AlreadyQueued or HasActiveSession
    """
    if not student_id or not str(student_id).strip():
        raise ValidationError("student_id must not be empty")
    if not student_name or not student_name.strip():
        raise ValidationError("student_name must not be empty")

    if GetActiveEntryForStudent(db_session, student_id) is not None:
        raise ConflictError(
            f"Student {student_id} is already in the queue",
            kind=ConflictError.ALREADY_QUEUED
        )

    if GetLiveSessionForStudent(db_session, student_id) is not None:
        raise ConflictError(
            f"Student {student_id} already has an active session",
            kind=ConflictError.HAS_ACTIVE_SESSION
        )

    entry = QueueEntry(
        student_id=student_id,
        student_name=student_name.strip(),
        state=QueueEntryState.WAITING,
        queue_position=NextQueuePosition(db_session),
        queued_at_utc=now
    )
    db_session.add(entry)

    try:
        db_session.flush()
    except IntegrityError:
        # A concurrent enqueue for the same student won the unique index
        raise ConflictError(
            f"Student {student_id} is already in the queue",
            kind=ConflictError.ALREADY_QUEUED
        )

    ReorderQueue(db_session)

    logger.info(f"Student {student_id} joined the queue at position {entry.queue_position}")
    return entry, [Effect.ProcessQueue()]


def Leave(db_session, student_id: str, now: datetime) -> List[Effect]:
    """
    Remove a student's active entry from the queue

    An assigned entry hands its held resource back to the pool.

    Returns:
        list: An assignment-pass trigger

    Raises:
        NotFoundError: If the student has no waiting or assigned entry
    """
    entry = GetActiveEntryForStudent(db_session, student_id, for_update=True)
    if entry is None:
        raise NotFoundError(f"Student {student_id} is not in the queue")

    if entry.state == QueueEntryState.ASSIGNED and entry.assigned_resource_id is not None:
        ReleaseResource(db_session, entry.assigned_resource_id, ResourceState.HELD)

    db_session.delete(entry)
    db_session.flush()
    ReorderQueue(db_session)

    logger.info(f"Student {student_id} left the queue (entry {entry.entry_id}, was {entry.state})")
    return [Effect.ProcessQueue()]


def AssignResource(db_session, entry: QueueEntry, resource: Resource, now: datetime) -> Optional[Effect]:
    """
    Hold a free resource for a waiting entry

    Returns:
        Effect: The 'assigned' notification, or None if the resource was
        claimed by someone else first
    """
    if not ClaimResource(db_session, resource.resource_id, ResourceState.FREE, ResourceState.HELD):
        return None

    entry.state = QueueEntryState.ASSIGNED
    entry.assigned_resource_id = resource.resource_id
    entry.assigned_at_utc = now
    entry.expires_at_utc = now + CHECK_IN_WINDOW

    logger.info(
        f"Assigned {resource.display_name} to student {entry.student_id} "
        f"(entry {entry.entry_id}, hold expires {entry.expires_at_utc.isoformat()})"
    )

    return Effect.Notify(
        entry.student_id,
        NoticeKind.ASSIGNED,
        entry_id=entry.entry_id,
        resource_id=resource.resource_id,
        resource_name=resource.display_name,
        expires_at_utc=entry.expires_at_utc.isoformat(),
        check_in_window_minutes=CHECK_IN_WINDOW_MINUTES
    )


def ProcessQueue(db_session, now: datetime) -> List[Effect]:
    """
    Run one assignment pass

    1. Expire overdue holds (each frees its resource and re-enqueues the
       student at the tail).
    2. Pair free resources with waiting entries in FIFO order.

    Safe to call repeatedly: with nothing free or nobody waiting it is a
    no-op. A resource lost to a concurrent pass is skipped, not an error.

    Returns:
        list: 'assigned' notify effects, one per new assignment
    """
    effects = []

    for entry in FindOverdueAssignments(db_session, now):
        ExpireAssignment(db_session, entry, now)

    free_resources = ListFreeResources(db_session)
    if not free_resources:
        return effects

    waiting_entries = ListWaitingEntries(db_session)
    if not waiting_entries:
        return effects

    resources = iter(free_resources)
    for entry in waiting_entries:
        for resource in resources:
            effect = AssignResource(db_session, entry, resource, now)
            if effect is not None:
                effects.append(effect)
                break
        else:
            # No free resources left
            break

    if effects:
        db_session.flush()
        logger.info(f"Queue pass assigned {len(effects)} resource(s)")
    return effects


def ExpireAssignment(db_session, entry: QueueEntry, now: datetime) -> QueueEntry:
    """
    Expire an assigned entry and put the student back at the tail

    The held resource is freed only if it is still held. The expired row is
    kept as history and a new waiting row takes the tail position.

    Returns:
        QueueEntry: The new waiting entry
    """
    # Tail is computed while the expiring entry still counts as active
    tail_position = NextQueuePosition(db_session)

    if entry.assigned_resource_id is not None:
        ReleaseResource(db_session, entry.assigned_resource_id, ResourceState.HELD)

    entry.state = QueueEntryState.EXPIRED
    entry.expired_at_utc = now
    entry.assigned_resource_id = None
    entry.assigned_at_utc = None
    entry.expires_at_utc = None
    db_session.flush()

    requeued = QueueEntry(
        student_id=entry.student_id,
        student_name=entry.student_name,
        state=QueueEntryState.WAITING,
        queue_position=tail_position,
        queued_at_utc=now,
        previous_entry_id=entry.entry_id
    )
    db_session.add(requeued)
    db_session.flush()
    ReorderQueue(db_session)

    logger.info(
        f"Assignment for student {entry.student_id} expired (entry {entry.entry_id}); "
        f"re-queued as entry {requeued.entry_id} at position {requeued.queue_position}"
    )
    return requeued


def ExpireEntry(db_session, entry_id: int, now: datetime) -> Tuple[QueueEntry, List[Effect]]:
    """
    Manually expire an assigned entry, regardless of its remaining time

    Returns:
        (entry, effects): The expired entry and an assignment-pass trigger

    Raises:
        NotFoundError: If the entry does not exist
        StateError: If the entry is not assigned
    """
    entry = GetQueueEntry(db_session, entry_id, for_update=True)
    if entry.state != QueueEntryState.ASSIGNED:
        raise StateError(f"Queue entry {entry_id} is {entry.state}, not assigned")

    ExpireAssignment(db_session, entry, now)
    return entry, [Effect.ProcessQueue()]


def CheckIn(db_session, entry_id: int, now: datetime) -> UsageSession:
    """
    Convert an assigned entry into a usage session on its held resource

    Returns:
        UsageSession: The new active session

    Raises:
        NotFoundError: If the entry does not exist
        StateError: If the entry is not assigned
        ExpiredError: If the check-in window has passed
        ConflictError: If the session cannot be started
    """
    entry = GetQueueEntry(db_session, entry_id, for_update=True)
    if entry.state != QueueEntryState.ASSIGNED:
        raise StateError(f"Queue entry {entry_id} is {entry.state}, not assigned")

    if ShouldExpireAssignment(entry, now):
        raise ExpiredError(f"Check-in window for queue entry {entry_id} has passed")

    usage = StartSession(
        db_session,
        entry.assigned_resource_id,
        entry.student_id,
        entry.student_name,
        now,
        claim_from=ResourceState.HELD,
        queue_entry_id=entry.entry_id
    )

    entry.state = QueueEntryState.COMPLETED
    entry.completed_at_utc = now
    db_session.flush()
    ReorderQueue(db_session)

    logger.info(f"Student {entry.student_id} checked in (entry {entry_id} -> session {usage.session_id})")
    return usage


def NextInLineEffects(db_session, previous_head_id: Optional[int]) -> List[Effect]:
    """
    Notify the new head of the waiting line, if it changed

    Args:
        db_session: SQLAlchemy session
        previous_head_id: entry_id of the head before the operation, or None

    Returns:
        list: A 'next_in_line' notify effect, or nothing
    """
    head = HeadOfLine(db_session)
    if head is None or head.entry_id == previous_head_id:
        return []

    return [Effect.Notify(head.student_id, NoticeKind.NEXT_IN_LINE, entry_id=head.entry_id)]
