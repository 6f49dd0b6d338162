"""
LabQueue Server - Usage Session API Models

Pydantic models for usage session endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class StartSessionRequest(BaseModel):
    """Request model for a walk-up session start"""
    resource_id: int
    student_id: str
    student_name: str


class UsageSessionResponse(BaseModel):
    """
    A usage session with its live durations

    current_usage_seconds and current_pause_seconds include the running
    stretch; the *_duration fields are the committed values.
    """
    session_id: int
    resource_id: int
    student_id: str
    student_name: str
    state: str  # 'active', 'paused', 'completed' or 'cancelled'
    start_time_utc: datetime
    end_time_utc: Optional[datetime] = None
    pause_start_time_utc: Optional[datetime] = None
    total_pause_duration: float
    actual_usage_duration: float
    current_usage_seconds: float
    current_pause_seconds: float
    queue_entry_id: Optional[int] = None
