"""
LabQueue Server - Status Endpoints

This module contains the health check and queue statistics endpoints.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends

from models.api import QueueStatisticsResponse
from database import GetLabService
from lab_service import LabService


# Create router instance
router = APIRouter()


# ==================== Health Check Endpoint ====================

@router.get("/health", tags=["Status"])
async def health_check():
    """
    Health check endpoint to verify server is running

    Returns:
        dict: Server status information
    """
    return {
        "status": "healthy",
        "service": "LabQueue Server",
        "version": "1.0.0",
        "timestamp_utc": datetime.now(timezone.utc).isoformat()
    }


# ==================== Statistics Endpoints ====================

@router.get("/queue/statistics", response_model=QueueStatisticsResponse, tags=["Status"])
async def get_queue_statistics(lab_service: LabService = Depends(GetLabService)):
    """
    Get counts of queue entries, workstations and live sessions by state

    Returns:
        QueueStatisticsResponse
    """
    return QueueStatisticsResponse(**lab_service.GetQueueStatistics())
