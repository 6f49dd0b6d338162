"""
LabQueue Server - Resource API Models

Pydantic models for workstation endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class RegisterResourceRequest(BaseModel):
    """Request model for adding a workstation"""
    display_name: str
    location: Optional[str] = None


class ResourceResponse(BaseModel):
    """A workstation as stored"""
    model_config = ConfigDict(from_attributes=True)

    resource_id: int
    display_name: str
    location: Optional[str] = None
    state: str  # 'free', 'held' or 'occupied'
    created_at_utc: datetime


class ResourceStatus(BaseModel):
    """A workstation with whoever holds or occupies it"""
    resource_id: int
    display_name: str
    location: Optional[str] = None
    state: str
    held_for_student_id: Optional[str] = None
    occupied_by_student_id: Optional[str] = None
    session_id: Optional[int] = None
