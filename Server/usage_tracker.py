"""
LabQueue Server - Usage Tracker

Owns the usage session lifecycle (active, paused, completed, cancelled) and
the lazy elapsed-time formulas. Nothing here runs on a timer: live usage
and pause time are computed from stored timestamps and the caller's
current time, and committed durations are only ever extended.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from models.database import QueueEntry, QueueEntryState, UsageSession, UsageSessionState, ResourceState
from models.infrastructure import Effect
from exceptions import ConflictError, NotFoundError, StateError, ValidationError
from resource_pool import GetResource, ClaimResource, ReleaseResource

logger = logging.getLogger(__name__)

# A session paused this long (continuously) is completed on next touch
PAUSE_AUTO_COMPLETE_SECONDS = 600


# ==================== Elapsed-Time Formulas ====================

def _SecondsBetween(start: Optional[datetime], end: datetime) -> float:
    if start is None:
        return 0.0
    return max(0.0, (end - start).total_seconds())


def CurrentUsageTime(usage: UsageSession, now: datetime) -> float:
    """
    Seconds of actual use, including the running stretch if active

    Pure: never mutates the session.
    """
    running = 0.0
    if usage.state == UsageSessionState.ACTIVE:
        running = _SecondsBetween(usage.last_activity_time_utc, now)
    return (usage.actual_usage_duration or 0.0) + running


def CurrentPauseDuration(usage: UsageSession, now: datetime) -> float:
    """
    Seconds spent paused, including the running pause if paused

    Pure: never mutates the session.
    """
    running = 0.0
    if usage.state == UsageSessionState.PAUSED:
        running = _SecondsBetween(usage.pause_start_time_utc, now)
    return (usage.total_pause_duration or 0.0) + running


def CurrentPauseStretch(usage: UsageSession, now: datetime) -> float:
    """Seconds the current pause has lasted (0 unless paused)"""
    if usage.state != UsageSessionState.PAUSED:
        return 0.0
    return _SecondsBetween(usage.pause_start_time_utc, now)


def ShouldAutoComplete(usage: UsageSession, now: datetime) -> bool:
    """
    Check if a paused session has been paused long enough to force-complete

    Only the current, continuous pause counts toward the threshold.
    """
    if usage.state != UsageSessionState.PAUSED:
        return False
    return CurrentPauseStretch(usage, now) >= PAUSE_AUTO_COMPLETE_SECONDS


# ==================== Lookups ====================

def GetUsageSession(db_session, session_id: int, for_update: bool = False) -> UsageSession:
    """
    Get a usage session by ID

    Raises:
        NotFoundError: If no session has this ID
    """
    query = db_session.query(UsageSession).filter(UsageSession.session_id == session_id)
    if for_update:
        query = query.with_for_update()
    usage = query.first()
    if usage is None:
        raise NotFoundError(f"Usage session {session_id} not found")
    return usage


def GetLiveSessionForStudent(db_session, student_id: str) -> Optional[UsageSession]:
    """Get the student's active or paused session, if any"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.student_id == student_id, UsageSession.state.in_(UsageSessionState.LIVE))
        .first()
    )


def GetLiveSessionForResource(db_session, resource_id: int) -> Optional[UsageSession]:
    """Get the active or paused session running on a resource, if any"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.resource_id == resource_id, UsageSession.state.in_(UsageSessionState.LIVE))
        .first()
    )


def _HasActiveQueueEntry(db_session, student_id: str) -> bool:
    return db_session.query(QueueEntry.entry_id).filter(
        QueueEntry.student_id == student_id,
        QueueEntry.state.in_(QueueEntryState.ACTIVE)
    ).first() is not None


def ListLiveSessions(db_session) -> List[UsageSession]:
    """List all active and paused sessions, oldest first"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.state.in_(UsageSessionState.LIVE))
        .order_by(UsageSession.start_time_utc.asc(), UsageSession.session_id.asc())
        .all()
    )


def ListPausedSessions(db_session) -> List[UsageSession]:
    """List paused sessions (auto-complete candidates)"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.state == UsageSessionState.PAUSED)
        .order_by(UsageSession.session_id.asc())
        .all()
    )


def GetStudentUsageHistory(db_session, student_id: str, limit: int = 50) -> List[UsageSession]:
    """Get a student's sessions, newest first"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.student_id == student_id)
        .order_by(UsageSession.start_time_utc.desc(), UsageSession.session_id.desc())
        .limit(limit)
        .all()
    )


def GetResourceUsageHistory(db_session, resource_id: int, limit: int = 50) -> List[UsageSession]:
    """Get the sessions run on a resource, newest first"""
    return (
        db_session.query(UsageSession)
        .filter(UsageSession.resource_id == resource_id)
        .order_by(UsageSession.start_time_utc.desc(), UsageSession.session_id.desc())
        .limit(limit)
        .all()
    )


# ==================== Transitions ====================

def StartSession(
    db_session,
    resource_id: int,
    student_id: str,
    student_name: str,
    now: datetime,
    claim_from: str = ResourceState.FREE,
    queue_entry_id: Optional[int] = None
) -> UsageSession:
    """
    Start a usage session and mark the resource occupied

    Args:
        db_session: SQLAlchemy session
        resource_id: Resource to occupy
        student_id: Student starting the session
        student_name: Student display name
        now: Current time
        claim_from: State the resource must be in (held when checking in
            from the queue, free for a walk-up start)
        queue_entry_id: Queue entry that was checked in, if any

    Returns:
        UsageSession: The new active session

    Raises:
        ValidationError: If student_id or student_name is empty
        NotFoundError: If the resource does not exist
        ConflictError: ResourceUnavailable, AlreadyActiveSession, or AlreadyQueued
            for a walk-up start by a queued student
    """
    if not student_id or not str(student_id).strip():
        raise ValidationError("student_id must not be empty")
    if not student_name or not student_name.strip():
        raise ValidationError("student_name must not be empty")

    resource = GetResource(db_session, resource_id)
    if resource.state != claim_from:
        raise ConflictError(
            f"Resource {resource.display_name} is {resource.state}",
            kind=ConflictError.RESOURCE_UNAVAILABLE
        )

    if GetLiveSessionForStudent(db_session, student_id) is not None:
        raise ConflictError(
            f"Student {student_id} already has an active session",
            kind=ConflictError.ALREADY_ACTIVE_SESSION
        )

    # A queued student checks in on the held resource instead
    if claim_from == ResourceState.FREE and _HasActiveQueueEntry(db_session, student_id):
        raise ConflictError(
            f"Student {student_id} is in the queue; check in on the assigned resource or leave first",
            kind=ConflictError.ALREADY_QUEUED
        )

    # Lost a race for the resource between the read above and now
    if not ClaimResource(db_session, resource_id, claim_from, ResourceState.OCCUPIED):
        raise ConflictError(
            f"Resource {resource.display_name} was claimed by another request",
            kind=ConflictError.RESOURCE_UNAVAILABLE
        )

    usage = UsageSession(
        resource_id=resource_id,
        student_id=student_id,
        student_name=student_name.strip(),
        state=UsageSessionState.ACTIVE,
        start_time_utc=now,
        last_activity_time_utc=now,
        total_pause_duration=0.0,
        actual_usage_duration=0.0,
        queue_entry_id=queue_entry_id
    )
    db_session.add(usage)
    db_session.flush()

    logger.info(f"Session {usage.session_id} started: student {student_id} on {resource.display_name}")
    return usage


def PauseSession(db_session, session_id: int, now: datetime) -> UsageSession:
    """
    Pause an active session, freezing its usage time

    Raises:
        NotFoundError: If the session does not exist
        StateError: If the session is not active
    """
    usage = GetUsageSession(db_session, session_id, for_update=True)
    if usage.state != UsageSessionState.ACTIVE:
        raise StateError(f"Session {session_id} is {usage.state}; only active sessions can be paused")

    usage.actual_usage_duration = CurrentUsageTime(usage, now)
    usage.pause_start_time_utc = now
    usage.state = UsageSessionState.PAUSED
    db_session.flush()

    logger.info(f"Session {session_id} paused after {usage.actual_usage_duration:.0f}s of use")
    return usage


def ResumeSession(db_session, session_id: int, now: datetime) -> UsageSession:
    """
    Resume a paused session, committing the pause time

    Raises:
        NotFoundError: If the session does not exist
        StateError: If the session is not paused
    """
    usage = GetUsageSession(db_session, session_id, for_update=True)
    if usage.state != UsageSessionState.PAUSED:
        raise StateError(f"Session {session_id} is {usage.state}; only paused sessions can be resumed")

    usage.total_pause_duration = CurrentPauseDuration(usage, now)
    usage.pause_start_time_utc = None
    usage.last_activity_time_utc = now
    usage.state = UsageSessionState.ACTIVE
    db_session.flush()

    logger.info(f"Session {session_id} resumed ({usage.total_pause_duration:.0f}s paused in total)")
    return usage


def _EndSession(db_session, usage: UsageSession, now: datetime, final_state: str) -> List[Effect]:
    # Both values must be computed before the state changes
    usage_seconds = CurrentUsageTime(usage, now)
    pause_seconds = CurrentPauseDuration(usage, now)

    usage.actual_usage_duration = usage_seconds
    usage.total_pause_duration = pause_seconds
    usage.pause_start_time_utc = None
    usage.end_time_utc = now
    usage.state = final_state
    db_session.flush()

    ReleaseResource(db_session, usage.resource_id, ResourceState.OCCUPIED)
    return [Effect.ProcessQueue()]


def _EndLiveSession(db_session, session_id: int, now: datetime, final_state: str) -> Tuple[UsageSession, List[Effect]]:
    usage = GetUsageSession(db_session, session_id, for_update=True)
    if not usage.IsLive():
        raise StateError(f"Session {session_id} is already {usage.state}")

    effects = _EndSession(db_session, usage, now, final_state)
    logger.info(
        f"Session {session_id} {final_state}: {usage.actual_usage_duration:.0f}s used, "
        f"{usage.total_pause_duration:.0f}s paused"
    )
    return usage, effects


def CompleteSession(db_session, session_id: int, now: datetime) -> Tuple[UsageSession, List[Effect]]:
    """
    End a session normally and free its resource

    Returns:
        (usage, effects): The completed session and an assignment-pass trigger

    Raises:
        NotFoundError: If the session does not exist
        StateError: If the session is already completed or cancelled
    """
    return _EndLiveSession(db_session, session_id, now, UsageSessionState.COMPLETED)


def CancelSession(db_session, session_id: int, now: datetime) -> Tuple[UsageSession, List[Effect]]:
    """
    Abort a session and free its resource

    Returns:
        (usage, effects): The cancelled session and an assignment-pass trigger

    Raises:
        NotFoundError: If the session does not exist
        StateError: If the session is already completed or cancelled
    """
    return _EndLiveSession(db_session, session_id, now, UsageSessionState.CANCELLED)


def AutoCompleteSession(db_session, usage: UsageSession, now: datetime) -> List[Effect]:
    """
    Force-complete a session that has been paused past the threshold

    Returns:
        list: Effects to run (empty if the session was not due)
    """
    if not ShouldAutoComplete(usage, now):
        return []

    effects = _EndSession(db_session, usage, now, UsageSessionState.COMPLETED)
    logger.info(
        f"Session {usage.session_id} auto-completed after a pause of "
        f"{PAUSE_AUTO_COMPLETE_SECONDS}s or more ({usage.total_pause_duration:.0f}s paused in total)"
    )
    return effects
