"""
LabQueue Server - Usage Session Endpoints

This module contains endpoints for walk-up session starts, pausing,
resuming and ending sessions, and session history.
"""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from models.api import StartSessionRequest, UsageSessionResponse
from models.database import UsageSession
from exceptions import LabQueueError
from database import GetLabService
from lab_service import LabService
from routes.errors import ToHttpException
from usage_tracker import CurrentUsageTime, CurrentPauseDuration


# Create router instance
router = APIRouter()


def BuildSessionResponse(usage: UsageSession, now: datetime) -> UsageSessionResponse:
    """
    Build a response from a stored session, with live durations as of now

    Args:
        usage: The usage session
        now: Time used for current_usage_seconds / current_pause_seconds

    Returns:
        UsageSessionResponse
    """
    return UsageSessionResponse(
        session_id=usage.session_id,
        resource_id=usage.resource_id,
        student_id=usage.student_id,
        student_name=usage.student_name,
        state=usage.state,
        start_time_utc=usage.start_time_utc,
        end_time_utc=usage.end_time_utc,
        pause_start_time_utc=usage.pause_start_time_utc,
        total_pause_duration=usage.total_pause_duration or 0.0,
        actual_usage_duration=usage.actual_usage_duration or 0.0,
        current_usage_seconds=CurrentUsageTime(usage, now),
        current_pause_seconds=CurrentPauseDuration(usage, now),
        queue_entry_id=usage.queue_entry_id
    )


# ==================== Session Lifecycle Endpoints ====================

@router.post(
    "/sessions",
    response_model=UsageSessionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Sessions"]
)
async def start_session(request: StartSessionRequest, lab_service: LabService = Depends(GetLabService)):
    """
    Start a walk-up session on a free workstation

    Raises:
        HTTPException: 404 unknown workstation, 409 workstation not free or
        student already has a session
    """
    try:
        usage = lab_service.StartSession(request.resource_id, request.student_id, request.student_name)
    except LabQueueError as e:
        raise ToHttpException(e, "Start session")

    return BuildSessionResponse(usage, lab_service.Now())


@router.get("/sessions", response_model=List[UsageSessionResponse], tags=["Sessions"])
async def list_active_sessions(lab_service: LabService = Depends(GetLabService)):
    """
    List all active and paused sessions
    """
    now = lab_service.Now()
    return [BuildSessionResponse(usage, now) for usage in lab_service.ListActiveSessions()]


@router.get("/sessions/{session_id}", response_model=UsageSessionResponse, tags=["Sessions"])
async def get_session(session_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Get a session with its live usage and pause time

    Raises:
        HTTPException: 404 if the session does not exist
    """
    try:
        usage = lab_service.GetSession(session_id)
    except LabQueueError as e:
        raise ToHttpException(e, "Get session")

    return BuildSessionResponse(usage, lab_service.Now())


async def _Transition(operation, session_id: int, label: str, lab_service: LabService) -> UsageSessionResponse:
    try:
        usage = operation(session_id)
    except LabQueueError as e:
        raise ToHttpException(e, label)

    return BuildSessionResponse(usage, lab_service.Now())


@router.post("/sessions/{session_id}/pause", response_model=UsageSessionResponse, tags=["Sessions"])
async def pause_session(session_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Pause an active session

    Raises:
        HTTPException: 404 unknown session, 400 session not active
    """
    return await _Transition(lab_service.PauseSession, session_id, "Pause session", lab_service)


@router.post("/sessions/{session_id}/resume", response_model=UsageSessionResponse, tags=["Sessions"])
async def resume_session(session_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Resume a paused session

    Raises:
        HTTPException: 404 unknown session, 400 session not paused (including
        one auto-completed after a long pause)
    """
    return await _Transition(lab_service.ResumeSession, session_id, "Resume session", lab_service)


@router.post("/sessions/{session_id}/complete", response_model=UsageSessionResponse, tags=["Sessions"])
async def complete_session(session_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Finish a session and free its workstation
    """
    return await _Transition(lab_service.CompleteSession, session_id, "Complete session", lab_service)


@router.post("/sessions/{session_id}/cancel", response_model=UsageSessionResponse, tags=["Sessions"])
async def cancel_session(session_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Abort a session and free its workstation
    """
    return await _Transition(lab_service.CancelSession, session_id, "Cancel session", lab_service)


# ==================== Student Endpoints ====================

@router.get(
    "/students/{student_id}/session",
    response_model=Optional[UsageSessionResponse],
    tags=["Sessions"]
)
async def get_student_active_session(student_id: str, lab_service: LabService = Depends(GetLabService)):
    """
    Get the student's active or paused session

    Returns:
        UsageSessionResponse, or null if the student has none
    """
    usage = lab_service.GetStudentActiveSession(student_id)
    if usage is None:
        return None
    return BuildSessionResponse(usage, lab_service.Now())


@router.get("/students/{student_id}/sessions", response_model=List[UsageSessionResponse], tags=["Sessions"])
async def get_student_usage_history(
    student_id: str,
    limit: int = Query(50, ge=1, le=500),
    lab_service: LabService = Depends(GetLabService)
):
    """
    Get a student's sessions, newest first
    """
    now = lab_service.Now()
    return [BuildSessionResponse(usage, now) for usage in lab_service.GetStudentUsageHistory(student_id, limit)]
