"""
LabQueue Server - Queue API Models

Pydantic models for queue endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class EnqueueRequest(BaseModel):
    """Request model for joining the queue"""
    student_id: str
    student_name: str


class LeaveQueueRequest(BaseModel):
    """Request model for leaving the queue"""
    student_id: str


class QueueEntryResponse(BaseModel):
    """A queue entry as stored"""
    model_config = ConfigDict(from_attributes=True)

    entry_id: int
    student_id: str
    student_name: str
    state: str  # 'waiting', 'assigned', 'expired' or 'completed'
    queue_position: int
    queued_at_utc: datetime
    assigned_resource_id: Optional[int] = None
    assigned_at_utc: Optional[datetime] = None
    expires_at_utc: Optional[datetime] = None
    expired_at_utc: Optional[datetime] = None
    completed_at_utc: Optional[datetime] = None
    previous_entry_id: Optional[int] = None  # Set on the entry re-queued after an expiry


class QueueEntryStatus(BaseModel):
    """A queue entry with its display fields"""
    entry_id: int
    student_id: str
    student_name: str
    state: str
    queue_position: int  # Absolute position among waiting and assigned entries
    relative_queue_position: int  # Rank among waiting entries only (0 if not waiting)
    queued_at_utc: datetime
    assigned_resource_id: Optional[int] = None
    assigned_resource_name: Optional[str] = None
    assigned_resource_location: Optional[str] = None
    assigned_at_utc: Optional[datetime] = None
    expires_at_utc: Optional[datetime] = None
    remaining_seconds: int = 0
    formatted_remaining_time: str = "Expired"


class QueueStatusResponse(BaseModel):
    """Response model for the whole queue"""
    entries: List[QueueEntryStatus]
    total_in_queue: int
    available_resources: int
    auto_queue_available: bool  # True when no workstation is free


class StudentQueueStatusResponse(BaseModel):
    """Response model for a single student's place in the queue"""
    in_queue: bool
    entry: Optional[QueueEntryStatus] = None


class QueueMonitorResponse(BaseModel):
    """Response model for the staff queue monitor"""
    assigned: List[QueueEntryStatus]
    waiting: List[QueueEntryStatus]
    total_assigned: int
    total_waiting: int


class ProcessQueueResponse(BaseModel):
    """Response model for a manual assignment pass"""
    assignments: int
