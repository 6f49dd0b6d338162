"""
LabQueue Server - Statistics API Models
"""

from typing import Dict
from pydantic import BaseModel


class QueueStatisticsResponse(BaseModel):
    """Counts by state across the queue, the resource pool and sessions"""
    queue: Dict[str, int]
    resources: Dict[str, int]
    live_sessions: int


class SweepResponse(BaseModel):
    """Response model for a maintenance sweep"""
    transitioned: int
