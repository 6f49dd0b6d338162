"""
LabQueue Server - Maintenance Endpoints

Lets an external scheduler drive the expiry / auto-complete sweep over HTTP.
"""

import logging
from fastapi import APIRouter, Depends

from models.api import SweepResponse
from database import GetLabService
from lab_service import LabService


# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


@router.post("/maintenance/sweep", response_model=SweepResponse, tags=["Maintenance"])
async def sweep(lab_service: LabService = Depends(GetLabService)):
    """
    Expire overdue holds, auto-complete long-paused sessions, then run an assignment pass

    Returns:
        SweepResponse: Number of entries and sessions transitioned
    """
    transitioned = lab_service.SweepExpired()
    logger.info(f"Maintenance sweep requested: {transitioned} transitioned")
    return SweepResponse(transitioned=transitioned)
