"""
LabQueue Server - API Models Package

This package contains Pydantic models for all API endpoints.
"""

from models.api.queue import (
    EnqueueRequest,
    LeaveQueueRequest,
    QueueEntryResponse,
    QueueEntryStatus,
    QueueStatusResponse,
    StudentQueueStatusResponse,
    QueueMonitorResponse,
    ProcessQueueResponse
)
from models.api.sessions import StartSessionRequest, UsageSessionResponse
from models.api.resources import RegisterResourceRequest, ResourceResponse, ResourceStatus
from models.api.statistics import QueueStatisticsResponse, SweepResponse

__all__ = [
    'EnqueueRequest',
    'LeaveQueueRequest',
    'QueueEntryResponse',
    'QueueEntryStatus',
    'QueueStatusResponse',
    'StudentQueueStatusResponse',
    'QueueMonitorResponse',
    'ProcessQueueResponse',
    'StartSessionRequest',
    'UsageSessionResponse',
    'RegisterResourceRequest',
    'ResourceResponse',
    'ResourceStatus',
    'QueueStatisticsResponse',
    'SweepResponse',
]
