"""
LabQueue Server - Queue Endpoints

This module contains endpoints for joining and leaving the queue, viewing
it, checking in on an assigned workstation, and staff actions (manual
expiry, manual assignment pass).
"""

import logging
from fastapi import APIRouter, Depends, status

from models.api import (
    EnqueueRequest, LeaveQueueRequest,
    QueueEntryResponse, QueueEntryStatus, QueueStatusResponse,
    StudentQueueStatusResponse, QueueMonitorResponse, ProcessQueueResponse,
    UsageSessionResponse
)
from exceptions import LabQueueError
from database import GetLabService
from lab_service import LabService
from routes.errors import ToHttpException
from routes.sessions import BuildSessionResponse


# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


# ==================== Student Endpoints ====================

@router.post(
    "/queue/join",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Queue"]
)
async def join_queue(request: EnqueueRequest, lab_service: LabService = Depends(GetLabService)):
    """
    Join the queue for a workstation

    If a workstation is free the returned entry is already assigned.

    Raises:
        HTTPException: 409 if the student is already queued or has an active session
    """
    try:
        entry = lab_service.Enqueue(request.student_id, request.student_name)
    except LabQueueError as e:
        raise ToHttpException(e, "Join queue")

    return QueueEntryResponse.model_validate(entry)


@router.post("/queue/leave", tags=["Queue"])
async def leave_queue(request: LeaveQueueRequest, lab_service: LabService = Depends(GetLabService)):
    """
    Leave the queue (an assigned workstation is handed back)

    Raises:
        HTTPException: 404 if the student is not in the queue
    """
    try:
        lab_service.Leave(request.student_id)
    except LabQueueError as e:
        raise ToHttpException(e, "Leave queue")

    return {"success": True, "student_id": request.student_id}


@router.get("/queue", response_model=QueueStatusResponse, tags=["Queue"])
async def get_queue_status(lab_service: LabService = Depends(GetLabService)):
    """
    Get every active entry in queue order with availability totals
    """
    return QueueStatusResponse(**lab_service.GetQueueStatus())


@router.get("/queue/students/{student_id}", response_model=StudentQueueStatusResponse, tags=["Queue"])
async def get_student_queue_status(student_id: str, lab_service: LabService = Depends(GetLabService)):
    """
    Get a student's place in the queue

    Returns:
        StudentQueueStatusResponse: in_queue is False if the student has no active entry
    """
    entry = lab_service.GetStudentQueueStatus(student_id)
    if entry is None:
        return StudentQueueStatusResponse(in_queue=False)
    return StudentQueueStatusResponse(in_queue=True, entry=QueueEntryStatus(**entry))


@router.get("/queue/entries/{entry_id}", response_model=QueueEntryResponse, tags=["Queue"])
async def get_queue_entry(entry_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Get a queue entry by ID

    Raises:
        HTTPException: 404 if the entry does not exist
    """
    try:
        entry = lab_service.GetQueueEntry(entry_id)
    except LabQueueError as e:
        raise ToHttpException(e, "Get queue entry")

    return QueueEntryResponse.model_validate(entry)


@router.post(
    "/queue/entries/{entry_id}/check-in",
    response_model=UsageSessionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Queue"]
)
async def check_in(entry_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Check in on an assigned workstation, starting a usage session

    Raises:
        HTTPException: 404 unknown entry, 400 not assigned, 410 hold expired
    """
    try:
        usage = lab_service.CheckIn(entry_id)
    except LabQueueError as e:
        raise ToHttpException(e, "Check-in")

    return BuildSessionResponse(usage, lab_service.Now())


# ==================== Staff Endpoints ====================

@router.get("/queue/monitor", response_model=QueueMonitorResponse, tags=["Queue"])
async def get_queue_monitor(lab_service: LabService = Depends(GetLabService)):
    """
    Get assigned entries (earliest assignment first) and waiting entries
    """
    return QueueMonitorResponse(**lab_service.GetQueueMonitor())


@router.post("/queue/entries/{entry_id}/expire", response_model=QueueEntryResponse, tags=["Queue"])
async def expire_entry(entry_id: int, lab_service: LabService = Depends(GetLabService)):
    """
    Expire an assigned entry now, re-queueing the student at the tail

    Raises:
        HTTPException: 404 unknown entry, 400 not assigned
    """
    try:
        entry = lab_service.ExpireEntry(entry_id)
    except LabQueueError as e:
        raise ToHttpException(e, "Expire entry")

    logger.info(f"Queue entry {entry_id} expired manually")
    return QueueEntryResponse.model_validate(entry)


@router.post("/queue/process", response_model=ProcessQueueResponse, tags=["Queue"])
async def process_queue(lab_service: LabService = Depends(GetLabService)):
    """
    Run one assignment pass

    Returns:
        ProcessQueueResponse: Number of workstations assigned
    """
    effects = lab_service.ProcessQueue()
    return ProcessQueueResponse(assignments=len(effects))
